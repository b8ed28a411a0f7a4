"""
Build Agent Installer: Sequences the installation steps.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .autologon import AutoLogonPreparer, PollingPolicy
from .commandrunner import SubprocessCommandRunner
from .configurator import SECRET_ARGS, AgentConfigurator
from .exceptions import InstallerError
from .fetcher import AgentPackageFetcher
from .filesystem import check_installation_guard, extract_package, provision_install_path
from .helpers import resolve_server_url
from .objects import StepResult

if TYPE_CHECKING:
    from typing import Callable, Optional

    from .config import InstallationConfig, InstallerSettings
    from .objects import AgentPackage

logger = logging.getLogger(__name__)

STEP_RESOLVE_URL = 'resolve_server_url'
STEP_PROVISION = 'provision_install_path'
STEP_GUARD = 'check_installation'
STEP_FETCH = 'fetch_package'
STEP_EXTRACT = 'extract_package'
STEP_AUTOLOGON = 'prepare_autologon'
STEP_CONFIGURE = 'configure_agent'


class Orchestrator:
    """
    Runs the installation steps strictly in order.

    Every step returns a StepResult; the first failed result stops the run and is
    returned to the caller. Later steps are never started.
    """

    def __init__(
            self,
            config: InstallationConfig,
            settings: InstallerSettings,
            fetcher: AgentPackageFetcher,
            configurator: AgentConfigurator,
            autologon_preparer: Optional[AutoLogonPreparer] = None,
    ):
        self._config = config
        self._settings = settings
        self._fetcher = fetcher
        self._configurator = configurator
        self._autologon_preparer = autologon_preparer
        self.server_url: Optional[str] = None
        self.package: Optional[AgentPackage] = None
        self.completed: list[str] = []

    @classmethod
    def from_settings(cls, config: InstallationConfig, settings: InstallerSettings) -> Orchestrator:
        """Builds an Orchestrator using the real network, process and registry implementations"""
        autologon_preparer = None
        if config.run_as_autologon:
            from .winenv import WindowsEnvironmentPreparer

            autologon_preparer = AutoLogonPreparer(
                WindowsEnvironmentPreparer(),
                polling_policy=PollingPolicy.from_config(settings.autologon),
                run_key=settings.autologon.run_key,
            )
        return cls(
            config,
            settings,
            fetcher=AgentPackageFetcher.from_config(settings.service, settings.download),
            configurator=AgentConfigurator(
                SubprocessCommandRunner(secret_flags=SECRET_ARGS),
                installer_file=settings.agent.installer_file,
                marker_file=settings.agent.marker_file,
            ),
            autologon_preparer=autologon_preparer,
        )

    def steps(self) -> list[tuple[str, Callable[[], StepResult]]]:
        return [
            (STEP_RESOLVE_URL, self.resolve_server_url),
            (STEP_PROVISION, self.provision_install_path),
            (STEP_GUARD, self.check_installation),
            (STEP_FETCH, self.fetch_package),
            (STEP_EXTRACT, self.extract_package),
            (STEP_AUTOLOGON, self.prepare_autologon),
            (STEP_CONFIGURE, self.configure_agent),
        ]

    def run(self) -> StepResult:
        """Runs every step, returning the first failure or the final step's result"""
        result = StepResult(step='')
        for name, step in self.steps():
            logger.info("Running step '%s'", name)
            result = step()
            if not result.ok:
                logger.error("Step '%s' failed: %s", name, result.error)
                return result
            self.completed.append(name)
        logger.info("Agent '%s' installed and configured", self._config.agent_name)
        return result

    def resolve_server_url(self) -> StepResult:
        def _resolve() -> str:
            self.server_url = resolve_server_url(
                self._config.account, self._config.server_url, self._settings.service.hosting_domain
            )
            logger.info("Using server URL '%s'", self.server_url)
            return self.server_url
        return self._run_step(STEP_RESOLVE_URL, _resolve)

    def provision_install_path(self) -> StepResult:
        return self._run_step(STEP_PROVISION, provision_install_path, self._config.install_path)

    def check_installation(self) -> StepResult:
        return self._run_step(
            STEP_GUARD, check_installation_guard,
            self._config.install_path, self._config.agent_name, self._config.replace_agent,
            self._settings.agent.marker_file,
        )

    def fetch_package(self) -> StepResult:
        def _fetch():
            self.package = self._fetcher.fetch(self.server_url, self._config.token)
            return self.package
        return self._run_step(STEP_FETCH, _fetch)

    def extract_package(self) -> StepResult:
        return self._run_step(STEP_EXTRACT, extract_package, self.package, self._config.install_path)

    def prepare_autologon(self) -> StepResult:
        if not self._config.run_as_autologon:
            logger.debug("Running as a service. Skipping auto-logon preparation")
            return StepResult(step=STEP_AUTOLOGON, value=False)
        return self._run_step(
            STEP_AUTOLOGON, self._autologon_preparer.prepare,
            self._config.windows_logon_account, self._config.windows_logon_password,
        )

    def configure_agent(self) -> StepResult:
        return self._run_step(STEP_CONFIGURE, self._configurator.configure, self._config, self.server_url)

    @staticmethod
    def _run_step(name: str, func: Callable, *args) -> StepResult:
        try:
            return StepResult(step=name, value=func(*args))
        except InstallerError as ex:
            return StepResult(step=name, error=ex)
