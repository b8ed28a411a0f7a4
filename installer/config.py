"""
Build Agent Installer: Read installer settings and build the installation configuration
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import dataclasses
import glob
import os
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from .exceptions import SettingsError, ValidationError
from .helpers import DEFAULT_HOSTING_DOMAIN, MASK, get_agent_name, merge_dictionary

if TYPE_CHECKING:
    from argparse import Namespace
    from typing import Callable, Optional

INSTALLER_NAME = "Build Agent Installer"

RELATIVE_BASE_PATH_SRC = '../'
RELATIVE_BASE_PATH_FROZEN = '../../../'

DEFAULT_SETTINGS_NAME = 'installer.default.yml'
CONFIG_DIR_NAME = 'cfg'
VAR_DIR_NAME = 'var'
USER_SETTINGS_SUBDIR = 'custom'
STARTUP_LOG_REL_PATH = VAR_DIR_NAME + '/startup.log'
YAML_EXTENSIONS = {'yml', 'yaml'}
TRUE_STRINGS = ('true', 'y', 'yes', '1')
VERSION_FILE_NAME = 'VERSION'
DEFAULT_VERSION = '0.0.0'

ENV_DUMP_FINAL_CONFIG = 'INSTALLER_DUMP_FINAL_CONFIG'
ENV_TOKEN = 'VSTS_AGENT_TOKEN'

URL_SCHEMES = ('http://', 'https://')
RE_DRIVE_LETTER = re.compile(r'[A-Za-z]')

startup_log: Callable = None


def read_bool_from_envar(var: str) -> bool:
    """Interpret an environment variable as a Boolean"""
    return os.environ.get(var, '').lower() in TRUE_STRINGS


class AbstractConfig:
    """
    Base abstract Config class.
    Provides a simple from_dict method to be used to spin up instances of its subclasses.
    """
    # noinspection PyArgumentList
    # This should NEVER be called on the Abstract class but allows
    # us to define simple *Config classes below.
    NAME: str = ''

    @classmethod
    def from_dict(cls, config: dict):
        """Build the object from a dict"""
        try:
            return cls(**(config or {}))
        except TypeError as ex:
            # catch common errors and make them meaningful

            # __init__() missing 1 required positional argument: 'max_retries'
            match = re.match(r'.*__init__\(\) missing .*: (.*)$', str(ex))
            if match:
                raise SettingsError(f"Settings missing from '{cls.NAME}': {match.group(1)}")

            # __init__() got an unexpected keyword argument 'foo'
            match = re.match(r".*__init__\(\) got an unexpected .* '(.*)'$", str(ex))
            if match:
                raise SettingsError(f"Unexpected settings in '{cls.NAME}': '{match.group(1)}'")

            # some other error
            raise


@dataclasses.dataclass
class ServiceConfig(AbstractConfig):
    """
    Class to store settings for the build service the agent registers with.
    """
    auth_user: str
    package_platform: str
    api_version: str
    hosting_domain: str = DEFAULT_HOSTING_DOMAIN

    NAME: str = 'service'

    def __post_init__(self):
        self.api_version = str(self.api_version)


@dataclasses.dataclass
class DownloadConfig(AbstractConfig):
    """
    Class to store settings for downloading the agent package.
    """
    max_retries: int
    retry_delay: float
    connection_timeout: int
    network_timeout: int
    block_size: int = 65536

    NAME: str = 'download'

    def __post_init__(self):
        if self.max_retries < 0:
            raise SettingsError(f"'{self.NAME}' max_retries must not be negative: {self.max_retries}")
        if self.retry_delay < 0:
            raise SettingsError(f"'{self.NAME}' retry_delay must not be negative: {self.retry_delay}")


@dataclasses.dataclass
class AutoLogonConfig(AbstractConfig):
    """
    Class to store settings for auto-logon preparation.
    """
    poll_timeout: int
    poll_interval: int
    run_key: str

    NAME: str = 'autologon'

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise SettingsError(f"'{self.NAME}' poll_interval must be positive: {self.poll_interval}")


@dataclasses.dataclass
class AgentPackageConfig(AbstractConfig):
    """
    Class to store settings describing the layout of an extracted agent package.
    """
    marker_file: str
    installer_file: str
    default_logon_account: str

    NAME: str = 'agent'


@dataclasses.dataclass
class InstallerSettings(AbstractConfig):
    """
    Class to store the settings for the entire installer.

    dataclasses.field(repr=False) is used to keep the repr() output of an InstallerSettings short.
    """
    installer_name: str
    agent: AgentPackageConfig = dataclasses.field(repr=False)
    autologon: AutoLogonConfig = dataclasses.field(repr=False)
    download: DownloadConfig = dataclasses.field(repr=False)
    logging: dict = dataclasses.field(repr=False)
    service: ServiceConfig = dataclasses.field(repr=False)

    @classmethod
    def from_dict(cls, config: dict):
        """Build the installer settings from a dict"""
        try:
            return cls(
                installer_name=INSTALLER_NAME,
                agent=AgentPackageConfig.from_dict(config['agent']),
                autologon=AutoLogonConfig.from_dict(config['autologon']),
                download=DownloadConfig.from_dict(config['download']),
                logging=config.get('logging') or {},
                service=ServiceConfig.from_dict(config['service']),
            )
        except KeyError as ex:
            raise SettingsError(f'Missing settings section: {ex}')


@dataclasses.dataclass(frozen=True)
class InstallationConfig:
    """
    The validated parameters of one installation run. Built once and never mutated.
    """
    account: str
    token: str = dataclasses.field(repr=False)
    agent_name: str
    pool_name: str
    install_path: str
    server_url: Optional[str] = None
    work_directory: str = ''
    run_as_autologon: bool = False
    replace_agent: bool = False
    windows_logon_account: str = ''
    windows_logon_password: str = dataclasses.field(default='', repr=False)

    @classmethod
    def from_args(cls, args: Namespace, settings: InstallerSettings) -> InstallationConfig:
        """Validates the command line arguments and builds the installation config from them"""
        from .filesystem import build_install_path

        domain = settings.service.hosting_domain
        validate_account(args.account, domain)
        if args.server_url:
            validate_server_url(args.server_url)
        validate_drive_letter(args.drive)

        token = args.token or os.environ.get(ENV_TOKEN, '')
        if not token:
            raise ValidationError(f"An access token must be given with --token or the {ENV_TOKEN} environment variable")
        if not args.pool:
            raise ValidationError("A pool name must be given")

        agent_name = get_agent_name(args.agent_name_suffix)
        logon_account = args.windows_logon_account
        if not logon_account:
            if args.run_as_autologon:
                raise ValidationError("A Windows logon account must be given when running as auto-logon")
            logon_account = settings.agent.default_logon_account

        return cls(
            account=args.account,
            token=token,
            agent_name=agent_name,
            pool_name=args.pool,
            install_path=build_install_path(args.drive, agent_name),
            server_url=args.server_url or None,
            work_directory=args.work_directory or '',
            run_as_autologon=args.run_as_autologon,
            replace_agent=args.replace_agent,
            windows_logon_account=logon_account,
            windows_logon_password=args.windows_logon_password or '',
        )

    def as_log_dict(self) -> dict:
        """Returns the config as a dict with the secrets masked"""
        config = dataclasses.asdict(self)
        for secret in ('token', 'windows_logon_password'):
            if config[secret]:
                config[secret] = MASK
        return config


def validate_account(account: str, domain: str = DEFAULT_HOSTING_DOMAIN):
    """Account names are bare names, never URLs"""
    if not account:
        raise ValidationError("An account name must be given")
    lowered = account.lower()
    if any(scheme in lowered for scheme in URL_SCHEMES) or domain.lower() in lowered:
        raise ValidationError(f"Account '{account}' must be the account name only, not a URL")


def validate_server_url(url: str):
    if not url.lower().startswith(URL_SCHEMES):
        raise ValidationError(f"Server URL '{url}' must start with {' or '.join(URL_SCHEMES)}")


def validate_drive_letter(drive: str):
    if not drive or not RE_DRIVE_LETTER.fullmatch(drive):
        raise ValidationError(f"Drive '{drive}' must be a single drive letter")


def get_installer_root() -> Path:  # pragma: no cover
    """
    Returns the root dir of the installer.
    This is dependent on whether the installer has been frozen.
    """
    relative_path = RELATIVE_BASE_PATH_FROZEN if getattr(sys, 'frozen', False) else RELATIVE_BASE_PATH_SRC
    base_path = Path(__file__).parent
    return (base_path / relative_path).resolve()


def get_startup_log_path() -> Path:
    """Returns the path of startup.log file"""
    return (get_installer_root() / STARTUP_LOG_REL_PATH).resolve()


def get_settings(logger: Callable, config_dir: Optional[Path] = None) -> InstallerSettings:
    """Reads the settings file(s) and returns an InstallerSettings from the contents within."""
    def open_yaml(path: str):
        startup_log(f"Reading settings file '{path}'")
        with open(path, 'r') as f:
            return yaml.safe_load(f)

    # Set the file's startup_log function
    global startup_log
    startup_log = logger

    config_dir = Path(config_dir) if config_dir else get_installer_root() / CONFIG_DIR_NAME
    default_settings_path = config_dir / DEFAULT_SETTINGS_NAME
    custom_settings_path = (config_dir / USER_SETTINGS_SUBDIR).resolve()

    # Ensure settings files are added in the correct order:
    #  1) installer.default.yml
    #  2) settings files in the custom directory (sorted alphanumerically)
    settings_files = [default_settings_path]
    custom_settings_files: list[str] = []
    for extension in YAML_EXTENSIONS:
        custom_settings_files += glob.glob(f'{custom_settings_path}/*.{extension}')
    settings_files += sorted(custom_settings_files)

    settings: dict = {}
    try:
        for cfg in [d for d in [open_yaml(cfg_path) for cfg_path in settings_files] if d is not None]:
            merge_dictionary(settings, cfg)
    except (OSError, yaml.YAMLError) as ex:
        raise SettingsError(f"Failed to read settings: {ex}")

    if read_bool_from_envar(ENV_DUMP_FINAL_CONFIG):
        startup_log(f"Settings dict = {settings}", prefix='[DEBUG]')

    return InstallerSettings.from_dict(settings)


def get_version(root: Optional[Path] = None) -> str:
    """Reads the version number from the VERSION file."""
    file_path = ((root or get_installer_root()) / VERSION_FILE_NAME).resolve()
    try:
        with open(file_path, 'r') as f_in:
            return f_in.read().strip().partition('-')[0] or DEFAULT_VERSION
    except FileNotFoundError:
        return DEFAULT_VERSION
