"""
Build Agent Installer: Install directory provisioning, installation guard and package extraction.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import logging
import ntpath
import os
import zipfile
import zlib
from typing import TYPE_CHECKING

from .exceptions import AlreadyConfiguredError, CreationError, ExtractionError
from .objects import AgentInstallation

if TYPE_CHECKING:
    from .objects import AgentPackage

DEFAULT_MARKER_FILE = '.agent'

logger = logging.getLogger(__name__)


def build_install_path(drive: str, agent_name: str) -> str:
    """The agent is installed to '<drive>:\\<agent_name>'"""
    return ntpath.join(f'{drive}:\\', agent_name)


def provision_install_path(path: str) -> str:
    """Creates the install directory if it does not already exist"""
    if os.path.isdir(path):
        logger.info("Install directory '%s' already exists", path)
        return path
    logger.info("Creating install directory '%s'", path)
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as ex:
        raise CreationError(f"Could not create install directory '{path}': {ex}", details=ex)
    return path


def get_installation(path: str, marker_file: str = DEFAULT_MARKER_FILE) -> AgentInstallation:
    return AgentInstallation(
        path=path,
        marker_file=marker_file,
        configured=os.path.isfile(os.path.join(path, marker_file)),
    )


def check_installation_guard(
        path: str, agent_name: str, replace: bool, marker_file: str = DEFAULT_MARKER_FILE
) -> AgentInstallation:
    """
    Refuses to install over an agent that has already been configured in the install directory.
    The check is skipped entirely when the agent is being replaced.
    """
    if replace:
        logger.info("Agent '%s' will be replaced if already configured", agent_name)
        return AgentInstallation(path=path, marker_file=marker_file, configured=False)
    installation = get_installation(path, marker_file)
    if installation.configured:
        raise AlreadyConfiguredError(agent_name, details=installation.marker_path)
    return installation


def extract_package(package: AgentPackage, destination: str) -> list[str]:
    """Extracts every member of the agent package into the destination directory"""
    logger.info("Extracting '%s' to '%s'", package.path, destination)
    try:
        with zipfile.ZipFile(package.path, 'r') as archive:
            members = archive.namelist()
            archive.extractall(destination)
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as ex:
        raise ExtractionError(f"Agent package '{package.path}' is not a valid archive: {ex}", details=ex)
    except OSError as ex:
        raise ExtractionError(f"Failed to extract agent package to '{destination}': {ex}", details=ex)
    logger.debug("Extracted %d entries", len(members))
    return members
