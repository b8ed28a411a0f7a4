"""
Build Agent Installer: Builds the agent's configuration arguments and runs its configuration executable.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from .exceptions import ConfigurationError, InstallerNotFoundError
from .filesystem import DEFAULT_MARKER_FILE, get_installation
from .helpers import mask_args

if TYPE_CHECKING:
    from .commandrunner import CommandRunner
    from .config import InstallationConfig

DEFAULT_INSTALLER_FILE = 'config.cmd'
AUTH_TYPE = 'PAT'

ARG_TOKEN = '--token'
ARG_WINDOWS_LOGON_PASSWORD = '--windowsLogonPassword'
SECRET_ARGS = (ARG_TOKEN, ARG_WINDOWS_LOGON_PASSWORD)

logger = logging.getLogger(__name__)


def build_config_args(config: InstallationConfig, server_url: str) -> list[str]:
    """
    Builds the unattended configuration arguments.

    Exactly one of the auto-logon or run-as-service flag sets is included. The logon password
    and work directory are only passed when they have a value.
    """
    args = [
        '--unattended',
        '--url', server_url,
        '--auth', AUTH_TYPE,
        ARG_TOKEN, config.token,
        '--pool', config.pool_name,
        '--agent', config.agent_name,
    ]
    if config.run_as_autologon:
        args += ['--runAsAutoLogon', '--overwriteAutoLogon']
    else:
        args += ['--runAsService']
    args += ['--windowsLogonAccount', config.windows_logon_account]
    if config.windows_logon_password:
        args += [ARG_WINDOWS_LOGON_PASSWORD, config.windows_logon_password]
    if config.work_directory:
        args += ['--work', config.work_directory]
    if config.replace_agent:
        args += ['--replace']
    return args


class AgentConfigurator:
    """Runs the agent's own configuration executable from the install directory"""

    def __init__(
            self,
            command_runner: CommandRunner,
            installer_file: str = DEFAULT_INSTALLER_FILE,
            marker_file: str = DEFAULT_MARKER_FILE,
    ):
        self._command_runner = command_runner
        self._installer_file = installer_file
        self._marker_file = marker_file

    def find_installer(self, install_path: str) -> str:
        installer_path = os.path.join(install_path, self._installer_file)
        if not os.path.isfile(installer_path):
            raise InstallerNotFoundError(f"Agent installer '{installer_path}' not found")
        return installer_path

    def configure(self, config: InstallationConfig, server_url: str) -> int:
        installer_path = self.find_installer(config.install_path)
        args = build_config_args(config, server_url)
        logger.info(
            "Configuring agent '%s' as %s", config.agent_name,
            "auto-logon" if config.run_as_autologon else "service"
        )
        logger.debug("Configuration arguments: %s", mask_args(args, SECRET_ARGS))

        previous_dir = os.getcwd()
        try:
            exit_code, error = self._command_runner.run(installer_path, args, config.install_path)
        finally:
            if os.getcwd() != previous_dir:
                os.chdir(previous_dir)

        if error is not None:
            raise ConfigurationError(f"Failed to run agent installer '{installer_path}': {error}", details=error)
        if exit_code != 0:
            raise ConfigurationError(f"Agent installer exited with code {exit_code}", exit_code=exit_code)

        installation = get_installation(config.install_path, self._marker_file)
        if not installation.configured:
            logger.warning("Agent installer succeeded but '%s' was not created", installation.marker_path)
        return exit_code
