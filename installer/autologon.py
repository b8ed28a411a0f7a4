"""
Build Agent Installer: Prepares the per-user registry state needed to run the agent under auto-logon.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import dataclasses
import logging
import platform
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import gevent

from .exceptions import AutoLogonError, MissingCredentialError

if TYPE_CHECKING:
    from typing import Optional

    from .config import AutoLogonConfig

DEFAULT_RUN_KEY = r'SOFTWARE\Microsoft\Windows\CurrentVersion\Run'

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class PollingPolicy:
    """Polls every `interval` seconds until `timeout` seconds have been used up"""
    timeout: int = 120
    interval: int = 10

    @classmethod
    def from_config(cls, config: AutoLogonConfig) -> PollingPolicy:
        return cls(timeout=config.poll_timeout, interval=config.poll_interval)


class EnvironmentPreparer(ABC):
    """Isolates the OS identity and registry operations needed for auto-logon"""

    @abstractmethod
    def map_user_hive(self) -> bool:
        """Maps the machine's per-user registry hive root, returning False if that is not possible"""

    @abstractmethod
    def resolve_security_identifier(self, account: str) -> str:
        """Returns the security identifier (SID string) of a 'domain\\user' account. Raises AutoLogonError if unknown"""

    @abstractmethod
    def user_hive_exists(self, sid: str) -> bool:
        """Whether the per-user registry root of the SID has been created"""

    @abstractmethod
    def ensure_autologon_key(self, sid: str, run_key: str) -> bool:
        """
        Creates the run-on-logon key under the SID's hive if absent. Returns True if created.
        Raises AutoLogonError if the key cannot be created.
        """

    def close(self):
        """Releases any handles opened by map_user_hive"""


def qualify_account(account: str, machine_name: Optional[str] = None) -> str:
    """Accounts without a domain belong to the local machine"""
    domain, sep, user = account.rpartition('\\')
    if sep and domain and domain != '.':
        return account
    return f"{machine_name or platform.node()}\\{user}"


class AutoLogonPreparer:
    """
    Best-effort preparation of auto-logon state.

    A new machine's user profile (and its registry hive) is created asynchronously by the
    OS, so the hive is polled for. Neither a failure to map the hive nor the hive failing
    to appear in time is an error: the agent's configuration may still succeed later.
    """

    def __init__(
            self,
            environment: EnvironmentPreparer,
            polling_policy: Optional[PollingPolicy] = None,
            run_key: str = DEFAULT_RUN_KEY,
            machine_name: Optional[str] = None,
    ):
        self._environment = environment
        self._polling_policy = polling_policy or PollingPolicy()
        self._run_key = run_key
        self._machine_name = machine_name
        self.checks = 0

    def prepare(self, account: str, password: str) -> bool:
        """Returns True if the auto-logon key is in place, False if preparation was degraded"""
        if not password:
            raise MissingCredentialError("A Windows logon password is required to run the agent as auto-logon")

        if not self._environment.map_user_hive():
            logger.warning("Could not map the user registry hive. Skipping the user profile check")
            return False

        try:
            return self._prepare_user(qualify_account(account, self._machine_name))
        finally:
            self._environment.close()

    def _prepare_user(self, qualified: str) -> bool:
        sid = self._environment.resolve_security_identifier(qualified)
        logger.info("Account '%s' has security identifier '%s'", qualified, sid)

        if not self._wait_for_user_hive(sid):
            logger.warning(
                "User profile for '%s' was not created within %d seconds. Continuing with agent configuration",
                qualified, self._polling_policy.timeout
            )
            return False

        try:
            created = self._environment.ensure_autologon_key(sid, self._run_key)
        except AutoLogonError as ex:
            logger.warning("%s. Continuing with agent configuration", ex)
            return False
        if created:
            logger.info("Created auto-logon key '%s' for '%s'", self._run_key, qualified)
        else:
            logger.debug("Auto-logon key '%s' already exists for '%s'", self._run_key, qualified)
        return True

    def _wait_for_user_hive(self, sid: str) -> bool:
        self.checks = 0
        remaining = self._polling_policy.timeout
        while remaining > 0:
            self.checks += 1
            if self._environment.user_hive_exists(sid):
                return True
            logger.info("Waiting for user profile '%s' to be created (%ds remaining)", sid, remaining)
            gevent.sleep(self._polling_policy.interval)
            remaining -= self._polling_policy.interval
        return False
