"""
Build Agent Installer: Fixtures for all unit tests
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

import logging
import pytest
import yaml

from pathlib import Path

from installer.config import InstallationConfig, InstallerSettings
from installer.objects import Platform

BASE_PATH = Path(__file__).parent
DEFAULT_SETTINGS_RELATIVE_PATH = "../cfg/installer.default.yml"
DEFAULT_SETTINGS_PATH = (BASE_PATH / DEFAULT_SETTINGS_RELATIVE_PATH).resolve()


@pytest.fixture(autouse=True)
def logging_debug(caplog):
    caplog.set_level(logging.DEBUG)


@pytest.fixture()
def settings_dict() -> dict:
    with open(DEFAULT_SETTINGS_PATH, 'r') as f:
        return yaml.safe_load(f)


@pytest.fixture()
def settings(settings_dict) -> InstallerSettings:
    return InstallerSettings.from_dict(settings_dict)


@pytest.fixture()
def installation_config(tmp_path) -> InstallationConfig:
    return InstallationConfig(
        account='fabrikam',
        token='s3cr3t-t0k3n',
        agent_name='BUILD01',
        pool_name='Default',
        install_path=str(tmp_path / 'BUILD01'),
        windows_logon_account='NT AUTHORITY\\NETWORK SERVICE',
    )


@pytest.fixture
def platform_win() -> Platform:
    yield Platform('Windows', 'AMD64', ('10', '10.0.17763', 'SP0', 'Multiprocessor Free'))


@pytest.fixture
def platform_linux() -> Platform:
    yield Platform('Linux', 'x86_64', tuple())
