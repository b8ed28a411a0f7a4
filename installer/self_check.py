"""
Build Agent Installer: Self check platform and version variables
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

import platform

from .objects import Platform


def get_platform() -> Platform:
    """Determine the system platform"""
    system = platform.system()
    windows_version = platform.win32_ver() if system == 'Windows' else tuple()
    return Platform(
        system=system,
        architecture=platform.machine(),
        windows_version=windows_version
    )


def format_platform_info(installer_name: str, installer_version: str, platform_data: Platform) -> str:
    """Return a formatted string of platform summary info"""
    if platform_data.is_windows:
        os_version = platform.version()
        os_description = platform.win32_edition()
    else:
        os_version = platform.release()
        os_description = platform.version()

    return (
        f"{installer_name} {installer_version}; hostname={platform.node()}"
        f" osname={platform_data.system} osvers={os_version} desc={os_description}"
    )
