"""
Build Agent Installer: Unit tests for the agent package fetcher
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

import base64
import json
import os

import pytest
from mock import call

from installer.exceptions import DownloadError
from installer.fetcher import AgentPackageFetcher, FetchAttemptError, RetryPolicy
from installer.objects import AgentPackage

PATCH_PREFIX = 'installer.fetcher.'
SERVER_URL = 'https://fabrikam.visualstudio.com'
DOWNLOAD_URL = 'https://vstsagentpackage.azureedge.net/agent/2.140.0/vsts-agent-win-x64-2.140.0.zip'


class ResponseStub:
    """Represents the basics of a geventhttpclient response"""

    def __init__(self, status_code=200, body=b''):
        self.status_code = status_code
        self._body = body

    def read(self, amt=None):
        if amt is None:
            data, self._body = self._body, b''
        else:
            data, self._body = self._body[:amt], self._body[amt:]
        return data


@pytest.fixture
def mock_sleep(mocker):
    yield mocker.patch(PATCH_PREFIX + 'gevent.sleep')


@pytest.fixture
def fetcher(settings) -> AgentPackageFetcher:
    yield AgentPackageFetcher.from_config(settings.service, settings.download)


@pytest.fixture
def mock_http(mocker):
    """Patches HTTPClient.from_url, returning clients whose get() replies with the queued responses"""
    responses = []
    client = mocker.Mock()
    client.get.side_effect = lambda *args, **kwargs: responses.pop(0)
    from_url = mocker.patch(PATCH_PREFIX + 'HTTPClient.from_url', return_value=client)
    yield responses, client, from_url


def package_list(value) -> bytes:
    return json.dumps({'count': 1, 'value': value}).encode('utf-8')


def test_retry_policy_from_config(settings):
    policy = RetryPolicy.from_config(settings.download)
    assert policy.max_retries == 3
    assert policy.delay == 1
    assert policy.max_attempts == 4


def test_package_list_url(fetcher):
    assert fetcher.package_list_url(SERVER_URL + '/') == (
        SERVER_URL + '/_apis/distributedtask/packages/agent/win7-x64?$top=1&api-version=3.0'
    )


@pytest.mark.parametrize(
    'value', [
        pytest.param([{'downloadUrl': DOWNLOAD_URL}, {'downloadUrl': 'second'}], id="list"),
        pytest.param({'downloadUrl': DOWNLOAD_URL}, id="object"),
    ])
def test_fetch_success(value, fetcher, mock_http, mock_sleep):
    responses, client, from_url = mock_http
    responses += [
        ResponseStub(body=package_list(value)),
        ResponseStub(body=b'PK\x03\x04' + b'x' * 100000),
    ]
    package = fetcher.fetch(SERVER_URL, 'tok')
    assert isinstance(package, AgentPackage)
    assert package.download_url == DOWNLOAD_URL
    assert os.path.basename(package.path) == 'agent.zip'
    assert os.path.dirname(package.path) == package.temp_dir
    with open(package.path, 'rb') as f_in:
        assert len(f_in.read()) == 100004
    assert fetcher.attempts == 1
    mock_sleep.assert_not_called()
    assert from_url.call_args_list[1][0][0] == DOWNLOAD_URL


def test_fetch_sends_basic_auth(fetcher, mock_http, mock_sleep):
    responses, client, from_url = mock_http
    responses += [
        ResponseStub(body=package_list([{'downloadUrl': DOWNLOAD_URL}])),
        ResponseStub(body=b'PK'),
    ]
    fetcher.fetch(SERVER_URL, 'tok')
    expected = 'Basic ' + base64.b64encode(b'AzureDevTestLabs:tok').decode('utf-8')
    for get_call in client.get.call_args_list:
        assert get_call.kwargs['headers'] == {'Authorization': expected}
    assert client.close.call_count == 2


@pytest.mark.parametrize(
    'responses, message', [
        pytest.param(
            [ResponseStub(status_code=401, body=b'Unauthorized')], 'failed with status 401', id="unauthorised"),
        pytest.param([ResponseStub(body=b'<html>')], 'Invalid package list response', id="not_json"),
        pytest.param([ResponseStub(body=package_list([]))], 'No agent package download URL', id="empty_list"),
        pytest.param([ResponseStub(body=package_list({'version': '2'}))], 'No agent package download URL', id="no_url"),
        pytest.param([ResponseStub(body=b'[]')], 'No agent package download URL', id="not_object"),
        pytest.param(
            [ResponseStub(body=package_list({'downloadUrl': DOWNLOAD_URL})), ResponseStub(status_code=404)],
            'failed with status 404', id="download_not_found"),
    ])
def test_fetch_attempt_failures(responses, message, fetcher, mock_http, mock_sleep):
    queued, client, from_url = mock_http
    fetcher._retry_policy = RetryPolicy(max_retries=0, delay=0)
    queued += responses
    with pytest.raises(DownloadError) as exp:
        fetcher.fetch(SERVER_URL, 'tok')
    assert message in str(exp.value)
    assert isinstance(exp.value.details, FetchAttemptError)


def test_fetch_succeeds_on_third_attempt(fetcher, mocker, mock_sleep, tmp_path):
    package = AgentPackage(path=str(tmp_path / 'agent.zip'), temp_dir=str(tmp_path))
    mock_get_url = mocker.patch.object(
        fetcher, '_get_download_url',
        side_effect=[ConnectionError('reset'), TimeoutError('timed out'), DOWNLOAD_URL],
    )
    mocker.patch.object(fetcher, '_download', return_value=package)
    assert fetcher.fetch(SERVER_URL, 'tok') == package
    assert fetcher.attempts == 3
    assert mock_get_url.call_count == 3
    assert mock_sleep.call_args_list == [call(1), call(1)]


def test_fetch_always_fails(fetcher, mocker, mock_sleep, caplog):
    mock_get_url = mocker.patch.object(
        fetcher, '_get_download_url', side_effect=[ConnectionError(f'reset {i}') for i in range(4)]
    )
    mock_download = mocker.patch.object(fetcher, '_download')
    with pytest.raises(DownloadError) as exp:
        fetcher.fetch(SERVER_URL, 'tok')
    assert fetcher.attempts == 4
    assert mock_get_url.call_count == 4
    mock_download.assert_not_called()
    assert mock_sleep.call_count == 3
    assert 'reset 3' in str(exp.value)
    assert isinstance(exp.value.details, ConnectionError)
    assert "Agent package download attempt 4/4 failed: reset 3" in caplog.text


def test_fetch_download_failure_retries_whole_sequence(fetcher, mocker, mock_sleep, tmp_path):
    package = AgentPackage(path=str(tmp_path / 'agent.zip'), temp_dir=str(tmp_path))
    mock_get_url = mocker.patch.object(fetcher, '_get_download_url', return_value=DOWNLOAD_URL)
    mocker.patch.object(fetcher, '_download', side_effect=[OSError('write failed'), package])
    assert fetcher.fetch(SERVER_URL, 'tok') == package
    assert mock_get_url.call_count == 2


@pytest.mark.parametrize('max_retries, expected_attempts', [
    pytest.param(0, 1, id="no_retries"),
    pytest.param(1, 2, id="one_retry"),
    pytest.param(5, 6, id="five_retries"),
])
def test_fetch_retry_policy(max_retries, expected_attempts, settings, mocker, mock_sleep):
    fetcher = AgentPackageFetcher(settings.service, retry_policy=RetryPolicy(max_retries=max_retries, delay=0))
    mocker.patch.object(fetcher, '_get_download_url', side_effect=ConnectionError('reset'))
    with pytest.raises(DownloadError):
        fetcher.fetch(SERVER_URL, 'tok')
    assert fetcher.attempts == expected_attempts
    assert mock_sleep.call_args_list == [call(0)] * (expected_attempts - 1)


def test_connect_timeouts(fetcher, mocker):
    from_url = mocker.patch(PATCH_PREFIX + 'HTTPClient.from_url')
    fetcher._connect(SERVER_URL)
    from_url.assert_called_once_with(SERVER_URL, concurrency=1, connection_timeout=30, network_timeout=300)
