"""
Build Agent Installer: Authenticated download of the latest agent package.
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from typing import TYPE_CHECKING

import gevent
from geventhttpclient import URL, HTTPClient

from .exceptions import DownloadError
from .helpers import basic_auth
from .objects import AgentPackage

if TYPE_CHECKING:
    from typing import Optional

    from .config import DownloadConfig, ServiceConfig

PACKAGE_LIST_PATH = '/_apis/distributedtask/packages/agent/{platform}?$top=1&api-version={api_version}'
PACKAGE_FILE_NAME = 'agent.zip'
TEMP_DIR_PREFIX = 'vsts-agent-'

logger = logging.getLogger(__name__)


class FetchAttemptError(Exception):
    """A single download attempt failed"""
    pass


@dataclasses.dataclass
class RetryPolicy:
    """Fixed number of retries with a constant delay between attempts"""
    max_retries: int = 3
    delay: float = 1.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_config(cls, config: DownloadConfig) -> RetryPolicy:
        return cls(max_retries=config.max_retries, delay=config.retry_delay)


class AgentPackageFetcher:
    """
    Downloads the latest agent package from the build service.

    The download is a two step sequence: the package listing is queried for the latest
    package's download URL, which is then streamed to a fresh temporary file. A failure
    anywhere in the sequence fails the whole attempt, which is retried according to the
    retry policy.
    """

    DEFAULT_BLOCK_SIZE = 65536

    def __init__(
            self,
            service_config: ServiceConfig,
            retry_policy: Optional[RetryPolicy] = None,
            connection_timeout: Optional[int] = None,
            network_timeout: Optional[int] = None,
            block_size: Optional[int] = None,
    ):
        self._service_config = service_config
        self._retry_policy = retry_policy or RetryPolicy()
        self._connection_timeout = connection_timeout
        self._network_timeout = network_timeout
        self._block_size = block_size or self.DEFAULT_BLOCK_SIZE
        self.attempts = 0

    @classmethod
    def from_config(cls, service_config: ServiceConfig, download_config: DownloadConfig) -> AgentPackageFetcher:
        return cls(
            service_config,
            retry_policy=RetryPolicy.from_config(download_config),
            connection_timeout=download_config.connection_timeout,
            network_timeout=download_config.network_timeout,
            block_size=download_config.block_size,
        )

    def package_list_url(self, server_url: str) -> str:
        return server_url.rstrip('/') + PACKAGE_LIST_PATH.format(
            platform=self._service_config.package_platform,
            api_version=self._service_config.api_version,
        )

    def fetch(self, server_url: str, token: str) -> AgentPackage:
        """Downloads the agent package, returning the local archive"""
        headers = {'Authorization': basic_auth(self._service_config.auth_user, token)}
        list_url = self.package_list_url(server_url)
        self.attempts = 0
        last_error: Optional[Exception] = None

        while self.attempts < self._retry_policy.max_attempts:
            if self.attempts:
                gevent.sleep(self._retry_policy.delay)
            self.attempts += 1
            try:
                download_url = self._get_download_url(list_url, headers)
                package = self._download(download_url, headers)
            except Exception as ex:
                last_error = ex
                logger.warning(
                    "Agent package download attempt %d/%d failed: %s",
                    self.attempts, self._retry_policy.max_attempts, ex
                )
                continue
            logger.info("Downloaded agent package to '%s' (attempt %d)", package.path, self.attempts)
            return package

        raise DownloadError(f"Failed to download agent due to {last_error}", details=last_error)

    def _get_download_url(self, list_url: str, headers: dict[str, str]) -> str:
        logger.debug("Requesting agent package list from '%s'", list_url)
        response_body = self._request(list_url, headers).decode('utf-8')
        try:
            package_list = json.loads(response_body)
        except json.JSONDecodeError as ex:
            raise FetchAttemptError(f"Invalid package list response: {ex}")
        package = package_list.get('value') if isinstance(package_list, dict) else None
        if isinstance(package, list):
            package = package[0] if package else None
        try:
            return package['downloadUrl']
        except (KeyError, TypeError):
            raise FetchAttemptError(f"No agent package download URL in response from '{list_url}'")

    def _request(self, url: str, headers: dict[str, str]) -> bytes:
        client = self._connect(url)
        try:
            response = client.get(URL(url).request_uri, headers=headers)
            body = response.read()
            if response.status_code != 200:
                raise FetchAttemptError(f"Request to '{url}' failed with status {response.status_code}")
            return body
        finally:
            client.close()

    def _download(self, download_url: str, headers: dict[str, str]) -> AgentPackage:
        temp_dir = tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX)
        package_path = os.path.join(temp_dir, PACKAGE_FILE_NAME)
        logger.debug("Downloading agent package from '%s' to '%s'", download_url, package_path)
        client = self._connect(download_url)
        try:
            response = client.get(URL(download_url).request_uri, headers=headers)
            if response.status_code != 200:
                response.read()
                raise FetchAttemptError(f"Download from '{download_url}' failed with status {response.status_code}")
            with open(package_path, 'wb') as f_out:
                while True:
                    block = response.read(self._block_size)
                    if not block:
                        break
                    f_out.write(block)
        finally:
            client.close()
        return AgentPackage(path=package_path, temp_dir=temp_dir, download_url=download_url)

    def _connect(self, url: str) -> HTTPClient:
        kwargs = {'concurrency': 1}
        if self._connection_timeout:
            kwargs['connection_timeout'] = self._connection_timeout
        if self._network_timeout:
            kwargs['network_timeout'] = self._network_timeout
        return HTTPClient.from_url(url, **kwargs)
