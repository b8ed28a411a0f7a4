"""
Build Agent Installer: Fixtures for installer unit tests
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

import zipfile

import pytest

from installer.objects import AgentPackage


@pytest.fixture
def agent_package(tmp_path) -> AgentPackage:
    """A minimal agent package holding the configuration executable"""
    temp_dir = tmp_path / 'download'
    temp_dir.mkdir()
    package_path = temp_dir / 'agent.zip'
    with zipfile.ZipFile(package_path, 'w') as archive:
        archive.writestr('config.cmd', '@echo off\r\n')
        archive.writestr('bin/Agent.Listener.exe', 'MZ')
    yield AgentPackage(path=str(package_path), temp_dir=str(temp_dir))
