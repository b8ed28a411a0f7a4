"""
Build Agent Installer: Windows implementation of the auto-logon environment operations.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import logging

import pywintypes
import win32api
import win32con
import win32security

from .autologon import EnvironmentPreparer
from .exceptions import AutoLogonError

logger = logging.getLogger(__name__)


class WindowsEnvironmentPreparer(EnvironmentPreparer):
    """Uses the HKEY_USERS hive and the local security authority through pywin32"""

    def __init__(self):
        self._hive = None

    def map_user_hive(self) -> bool:
        if self._hive is not None:
            return True
        try:
            # https://timgolden.me.uk/pywin32-docs/win32api__RegConnectRegistry_meth.html
            self._hive = win32api.RegConnectRegistry(None, win32con.HKEY_USERS)
        except pywintypes.error as ex:
            logger.warning("Failed to map HKEY_USERS: %s", ex)
            return False
        return True

    def resolve_security_identifier(self, account: str) -> str:
        try:
            sid, _, _ = win32security.LookupAccountName(None, account)
        except pywintypes.error as ex:
            raise AutoLogonError(f"Windows logon account '{account}' could not be resolved: {ex}", details=ex)
        return win32security.ConvertSidToStringSid(sid)

    def user_hive_exists(self, sid: str) -> bool:
        try:
            key_handle = win32api.RegOpenKeyEx(self._hive, sid, 0, win32con.KEY_READ)
        except pywintypes.error:
            return False
        win32api.RegCloseKey(key_handle)
        return True

    def ensure_autologon_key(self, sid: str, run_key: str) -> bool:
        sub_key = f'{sid}\\{run_key}'
        try:
            key_handle = win32api.RegOpenKeyEx(self._hive, sub_key, 0, win32con.KEY_READ)
        except pywintypes.error:
            logger.debug("Creating registry key 'HKEY_USERS\\%s'", sub_key)
            try:
                key_handle = win32api.RegCreateKey(self._hive, sub_key)
            except pywintypes.error as ex:
                raise AutoLogonError(f"Could not create registry key 'HKEY_USERS\\{sub_key}': {ex}", details=ex)
            win32api.RegCloseKey(key_handle)
            return True
        win32api.RegCloseKey(key_handle)
        return False

    def close(self):
        if self._hive is not None:
            win32api.RegCloseKey(self._hive)
            self._hive = None
