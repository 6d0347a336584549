"""Tests for the persisted status record."""

import json
from unittest.mock import patch

from portal_monitor.status import ServiceStatus, StatusStore, format_duration_ago


def test_load_missing_file(tmp_path):
    assert StatusStore(str(tmp_path / 'state.json')).load() == ServiceStatus()


def test_load_corrupt_file(tmp_path):
    path = tmp_path / 'state.json'
    path.write_text('{not json')
    assert StatusStore(str(path)).load() == ServiceStatus()


def test_record_check_and_success(tmp_path):
    path = tmp_path / 'nested' / 'state.json'
    store = StatusStore(str(path))

    with patch('portal_monitor.status.time.time', return_value=1000):
        assert store.record('https://login.example/portal', True)
    with patch('portal_monitor.status.time.time', return_value=2000):
        store.record(None, False)

    status = store.load()
    assert status.last_check_timestamp == 2000
    assert status.last_successful_login_timestamp == 1000
    assert status.last_portal_detected == 'https://login.example/portal'
    assert set(json.loads(path.read_text())) == {
        'last_check_timestamp', 'last_successful_login_timestamp', 'last_portal_detected',
    }


def test_format_duration_ago():
    now = 100000
    assert format_duration_ago(now + 5, now) == 'just now'
    assert format_duration_ago(now - 30, now) == '30 seconds ago'
    assert format_duration_ago(now - 60, now) == '1 minute ago'
    assert format_duration_ago(now - 150, now) == '2 minutes ago'
    assert format_duration_ago(now - 3600, now) == '1 hour ago'
    assert format_duration_ago(now - 7200, now) == '2 hours ago'
    assert format_duration_ago(now - 86400 * 3, now) == '3 days ago'
