"""
Build Agent Installer: Helper classes used by other submodules.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import dataclasses
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any, Optional

    from .exceptions import InstallerError


@dataclasses.dataclass
class AgentPackage:
    path: str
    temp_dir: str
    download_url: str = ''


@dataclasses.dataclass
class AgentInstallation:
    path: str
    marker_file: str
    configured: bool = False

    @property
    def marker_path(self) -> str:
        return os.path.join(self.path, self.marker_file)


@dataclasses.dataclass
class StepResult:
    """The outcome of a single installation step"""
    step: str
    error: Optional[InstallerError] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        if self.ok:
            return f"{self.step}: OK"
        return f"{self.step}: {self.error}"


@dataclasses.dataclass
class Platform:
    system: str
    architecture: str
    windows_version: tuple

    @property
    def is_windows(self) -> bool:
        return bool(self.windows_version)

    def __str__(self) -> str:
        base_str = f"{self.system} ({self.architecture})"
        if self.is_windows:
            return f"{base_str} {self.windows_version}"
        return base_str
