"""
Build Agent Installer: Setup configuration
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

import os
import sys

FREEZE = any(command in sys.argv for command in ('build_exe', 'bdist_msi'))
SCRIPT_DIR = os.path.dirname(__file__)

if FREEZE:
    from cx_Freeze import Executable, setup
else:
    from setuptools import setup

try:
    with open(os.path.join(SCRIPT_DIR, 'VERSION'), 'r') as f_in:
        VERSION = f_in.read().strip()
except FileNotFoundError:
    VERSION = '0.0.0'  # Probably from `make test` or similar

EXECUTABLE_CONFIG = {
    "copyright": "Copyright 2026 ITRS Group Ltd.",
}

build_exe_options = {
    'excludes': ['asyncio', 'unittest', 'tkinter', 'test', 'mock'],
    'include_files': [('cfg/installer.default.yml', 'cfg/installer.default.yml'), 'VERSION'],
}

extra_options = {}
if FREEZE:
    extra_options['options'] = {'build_exe': build_exe_options}
    extra_options['executables'] = [
        Executable(script="main.py", target_name="vsts-agent-installer.exe", base="Console", **EXECUTABLE_CONFIG)
    ]
    if sys.platform.startswith('win32'):
        build_exe_options['include_msvcr'] = True
else:
    extra_options['entry_points'] = {
        'console_scripts': ['vsts-agent-installer = main:main'],
    }

setup(
    name='vsts-agent-installer',
    version=VERSION,
    description="Build Agent Installer",
    author="ITRS Group Ltd",
    author_email="support@itrsgroup.com",
    url="https://itrsgroup.com/",
    packages=['installer'],
    py_modules=['main', 'returncodes'],
    python_requires='>=3.9',
    install_requires=[
        'gevent',
        'geventhttpclient',
        'PyYAML',
        'pywin32; sys_platform == "win32"',
    ],
    extras_require={
        'test': [
            'coverage',
            'flake8',
            'mock',
            'pytest',
            'pytest-cov',
            'pytest-mock',
        ],
    },
    **extra_options,
)
