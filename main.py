"""
Build Agent Installer: Main launcher file
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import traceback
from typing import TYPE_CHECKING

from installer.config import (
    InstallationConfig,
    get_settings,
    get_startup_log_path,
    get_version,
)
from installer.exceptions import InstallerError
from installer.logger import init_logging, log_dict
from installer.orchestrator import Orchestrator
from installer.self_check import format_platform_info, get_platform
from returncodes import RETURN_CODE_ERROR, RETURN_CODE_OK

if TYPE_CHECKING:
    from typing import Optional, Sequence

    from installer.config import InstallerSettings
    from installer.objects import StepResult


logger: logging.Logger = None

STARTUP_LOG_FILE = get_startup_log_path()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Installs and configures a build agent on this machine")
    parser.add_argument('--account', required=True, help="Name of the account hosting the agent pool")
    parser.add_argument('--token', default='', help="Personal access token (or set VSTS_AGENT_TOKEN)")
    parser.add_argument('--pool', required=True, help="Name of the pool to add the agent to")
    parser.add_argument('--drive', default='C', help="Drive letter to install the agent on")
    parser.add_argument('--agent-name-suffix', default='', help="Suffix appended to the host name to name the agent")
    parser.add_argument('--server-url', default='', help="Base URL of an on-premises server")
    parser.add_argument('--work-directory', default='', help="Agent work directory")
    parser.add_argument('--windows-logon-account', default='', help="Account the agent runs as ('domain\\user')")
    parser.add_argument('--windows-logon-password', default='', help="Password of the logon account")
    parser.add_argument(
        '--run-as-autologon', action='store_true',
        help="Run the agent in an auto-logon session instead of as a service",
    )
    parser.add_argument('--replace-agent', action='store_true', help="Replace an already configured agent")
    parser.add_argument('--settings-dir', default=None, help="Directory holding the installer settings files")
    return parser


def startup_log(message: str, prefix: str = "[INFO]"):
    """Writes a message to STARTUP_LOG_FILE and stderr"""
    message = f"{prefix} {message}"
    STARTUP_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    with STARTUP_LOG_FILE.open('a') as f:
        for handler in [sys.stderr, f]:
            print(message, file=handler)


def report_failure(result: StepResult) -> int:
    """Reports the failed step and returns the process exit code"""
    logger.error("Installation failed at step '%s': %s", result.step, result.error)
    print(f"ERROR: {result.error}", file=sys.stderr)
    return RETURN_CODE_ERROR


def install(args: argparse.Namespace, settings: InstallerSettings) -> int:
    """Runs the installation, returning the process exit code"""
    config = InstallationConfig.from_args(args, settings)
    log_dict(logging.INFO, config.as_log_dict(), "Installation configuration")
    result = Orchestrator.from_settings(config, settings).run()
    if not result.ok:
        return report_failure(result)
    return RETURN_CODE_OK


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for the Build Agent Installer"""
    global logger

    args = build_arg_parser().parse_args(argv)

    try:
        os.remove(STARTUP_LOG_FILE)
    except FileNotFoundError:
        pass

    exitcode = RETURN_CODE_OK
    try:
        startup_log("Starting Build Agent Installer")
        startup_log(f"Running with Python version '{sys.version.split()[0]}'")
        settings = get_settings(logger=startup_log, config_dir=args.settings_dir)

        startup_log("Initialising logger from settings")
        init_logging(settings.logging)
        logger = logging.getLogger('main')

        platform_data = get_platform()
        logger.info(format_platform_info(settings.installer_name, get_version(), platform_data))
        if not platform_data.is_windows:
            logger.warning("Running on %s. The agent installer expects Windows", platform_data)

        exitcode = install(args, settings)
    except InstallerError as ex:
        if logger:
            logger.error("%s", ex)
        else:
            startup_log(str(ex), "[ERROR]")
        print(f"ERROR: {ex}", file=sys.stderr)
        exitcode = RETURN_CODE_ERROR
    except Exception:
        message = traceback.format_exc()
        if logger:
            logger.error(message)
        else:
            startup_log(message, "[ERROR]")
        exitcode = RETURN_CODE_ERROR
    finally:
        sys.exit(exitcode)


if __name__ == '__main__':
    main()
