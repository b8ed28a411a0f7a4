"""
Build Agent Installer: Helper functions
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import base64
import contextlib
import logging
import os
import platform
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Iterator, Optional, Sequence

DEFAULT_HOSTING_DOMAIN = 'visualstudio.com'
MASK = '********'

logger = logging.getLogger(__name__)


def merge_dictionary(original: dict, updates: dict, merge_lists: tuple[str] = ()):
    """Updates a dict with values from another"""
    if updates:
        for key, value in updates.items():
            if isinstance(value, dict) and isinstance(original.get(key), dict):
                # recursion
                merge_dictionary(original[key], value, merge_lists)
            elif (
                    isinstance(value, list) and
                    key in original and
                    key in merge_lists and
                    type(original[key]) == type(value)
            ):
                # add to existing value
                original[key] += value
            else:
                # overwrite previous value
                original[key] = value


def basic_auth(user: str, password: str) -> str:
    """Formats a basic authorisation HTTP header"""
    try:
        token = f'{user}:{password}'.encode('utf-8')
        auth_str = base64.b64encode(token).decode('utf-8')
    except (UnicodeDecodeError, UnicodeEncodeError):
        logger.warning('Failed to encode user/password')
        auth_str = ''
    return f'Basic {auth_str}'


def resolve_server_url(account: str, base_url: Optional[str] = None, domain: str = DEFAULT_HOSTING_DOMAIN) -> str:
    """
    Builds the service base URL.

    resolve_server_url('fabrikam')                          -> 'https://fabrikam.visualstudio.com'
    resolve_server_url('fabrikam', 'https://tfs.local/tfs') -> 'https://tfs.local/tfs/fabrikam'
    """
    if base_url:
        return f'{base_url.rstrip("/")}/{account}'
    return f'https://{account}.{domain}'


def get_agent_name(suffix: Optional[str] = None, hostname: Optional[str] = None) -> str:
    """Agent names are the machine's host name followed by an optional suffix"""
    hostname = hostname or platform.node()
    return f'{hostname}{suffix or ""}'


def mask_args(args: Sequence[str], secret_flags: Sequence[str]) -> list[str]:
    """Returns a copy of an argument vector with the values following secret flags masked"""
    masked = list(args)
    for i, arg in enumerate(masked[:-1]):
        if arg in secret_flags:
            masked[i + 1] = MASK
    return masked


@contextlib.contextmanager
def working_directory(path: str) -> Iterator[str]:
    """Changes the process's current directory, restoring the previous one on exit"""
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield path
    finally:
        os.chdir(previous)
