"""
Build Agent Installer: Installer exceptions
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Optional


class InstallerError(Exception):
    """Base class for all errors that terminate an installation run"""

    def __init__(self, message: str, details=None):
        super(InstallerError, self).__init__(message)
        self.details = details


class ValidationError(InstallerError):
    """An installation parameter is malformed"""
    pass


class SettingsError(InstallerError):
    """An error has been encountered in the installer settings file(s)"""
    pass


class CreationError(InstallerError):
    """The install directory could not be created"""
    pass


class AlreadyConfiguredError(InstallerError):
    """An agent is already configured in the install directory"""

    def __init__(self, agent_name: str, details=None):
        super(AlreadyConfiguredError, self).__init__(
            f"Agent '{agent_name}' is already configured in this machine", details
        )
        self.agent_name = agent_name


class DownloadError(InstallerError):
    """The agent package could not be downloaded within the retry budget"""
    pass


class ExtractionError(InstallerError):
    """The agent package could not be extracted"""
    pass


class InstallerNotFoundError(InstallerError):
    """The agent configuration executable is missing from the install directory"""
    pass


class MissingCredentialError(InstallerError):
    """A credential required by the selected run mode was not given"""
    pass


class AutoLogonError(InstallerError):
    """The logon account or its registry state could not be prepared for auto-logon"""
    pass


class ConfigurationError(InstallerError):
    """The agent configuration executable failed"""

    def __init__(self, message: str, exit_code: Optional[int] = None, details=None):
        super(ConfigurationError, self).__init__(message, details)
        self.exit_code = exit_code
