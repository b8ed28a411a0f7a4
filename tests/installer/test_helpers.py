"""
Build Agent Installer: Unit tests for helper
Copyright (C) 2003-2026 ITRS Group Ltd. All rights reserved
"""

import base64
import os

import pytest

from installer.helpers import (
    MASK,
    basic_auth,
    get_agent_name,
    mask_args,
    merge_dictionary,
    resolve_server_url,
    working_directory,
)


@pytest.mark.parametrize(
    'config, updates, merge_lists, expected', [
        pytest.param({'a': 'one'}, {'b': 'two'}, (), {'a': 'one', 'b': 'two'}, id="simple_merge"),
        pytest.param({'a': 'one'}, {'a': 'ONE'}, (), {'a': 'ONE'}, id="simple_update"),
        pytest.param(
            {'a': 'one', 'b': {'two': 'TWO'}}, {'b': {'three': 'THREE'}}, (),
            {'a': 'one', 'b': {'two': 'TWO', 'three': 'THREE'}},
            id="simple_nesting"),
        pytest.param({'a': None}, {'a': {'b': 1}}, (), {'a': {'b': 1}}, id="dict_over_null"),
        pytest.param({'a': ['old']}, {'a': ['new']}, (), {'a': ['new']}, id="simple_update_over_data"),
        pytest.param({'a': ['old']}, {'a': ['new']}, ('a',), {'a': ['old', 'new']}, id="simple_append_list"),
        pytest.param({'a': 'one'}, None, (), {'a': 'one'}, id="no_updates"),
    ])
def test_helpers_merge_dictionary(config, updates, merge_lists, expected):
    merge_dictionary(config, updates, merge_lists)
    assert config == expected


@pytest.mark.parametrize(
    'account, base_url, expected', [
        pytest.param('fabrikam', None, 'https://fabrikam.visualstudio.com', id="hosted"),
        pytest.param('fabrikam', '', 'https://fabrikam.visualstudio.com', id="hosted_empty_url"),
        pytest.param('fabrikam', 'https://tfs.local/tfs', 'https://tfs.local/tfs/fabrikam', id="on_premises"),
        pytest.param('fabrikam', 'http://tfs.local:8080/tfs/', 'http://tfs.local:8080/tfs/fabrikam', id="trailing"),
    ])
def test_resolve_server_url(account, base_url, expected):
    assert resolve_server_url(account, base_url) == expected


def test_resolve_server_url_domain():
    assert resolve_server_url('fabrikam', domain='example.com') == 'https://fabrikam.example.com'


def test_basic_auth_long_token():
    token = 'x' * 52
    header = basic_auth('AzureDevTestLabs', token)
    assert header == 'Basic ' + base64.b64encode(f'AzureDevTestLabs:{token}'.encode('utf-8')).decode('utf-8')
    assert '\n' not in header


@pytest.mark.parametrize(
    'suffix, expected', [
        pytest.param(None, 'BUILD01', id="no_suffix"),
        pytest.param('', 'BUILD01', id="empty_suffix"),
        pytest.param('-vs2017', 'BUILD01-vs2017', id="suffix"),
    ])
def test_get_agent_name(suffix, expected):
    assert get_agent_name(suffix, hostname='BUILD01') == expected


def test_get_agent_name_uses_hostname(mocker):
    mocker.patch('installer.helpers.platform.node', return_value='HOST')
    assert get_agent_name('-1') == 'HOST-1'


@pytest.mark.parametrize(
    'args, expected', [
        pytest.param(['--token', 'abc', '--pool', 'p'], ['--token', MASK, '--pool', 'p'], id="masked"),
        pytest.param(['--pool', 'p'], ['--pool', 'p'], id="nothing_to_mask"),
        pytest.param(['--pool', '--token'], ['--pool', '--token'], id="trailing_flag"),
    ])
def test_mask_args(args, expected):
    original = list(args)
    assert mask_args(args, ('--token',)) == expected
    assert args == original


def test_working_directory_restored_on_error(tmp_path):
    previous = os.getcwd()
    with pytest.raises(RuntimeError):
        with working_directory(str(tmp_path)):
            assert os.getcwd() == str(tmp_path)
            raise RuntimeError('fail')
    assert os.getcwd() == previous
