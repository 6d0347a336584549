"""Tests for the local HTTP API and the notifier."""

from unittest.mock import MagicMock

import pytest
import requests

from portal_monitor.api import create_app
from portal_monitor.config import Config
from portal_monitor.notifier import NtfyNotifier
from portal_monitor.scheduler import HybridScheduler
from portal_monitor.session import CycleResult, CycleStatus
from portal_monitor.status import StatusStore

from .conftest import make_response


@pytest.fixture
def scheduler():
    return HybridScheduler(MagicMock(), MagicMock(), MagicMock(), trigger_queue_size=1)


@pytest.fixture
def client(scheduler, tmp_path):
    store = StatusStore(str(tmp_path / 'state.json'))
    store.record('https://login.example/portal', True)
    app = create_app(scheduler, store)
    app.config['TESTING'] = True
    return app.test_client()


def test_status_endpoint(client, scheduler):
    scheduler.last_result = CycleResult(CycleStatus.LOGGED_IN, portal_url='https://login.example/portal',
                                        attempts=1)
    data = client.get('/status').get_json()
    assert data['schedule']['current_interval_seconds'] == 10
    assert data['last_result']['status'] == 'logged_in'
    assert data['last_portal_detected'] == 'https://login.example/portal'
    assert data['last_successful_login_timestamp'] is not None


def test_health_endpoint(client):
    assert client.get('/health').get_json()['status'] == 'healthy'


def test_check_endpoint_queues_once(client, scheduler):
    assert client.post('/check').get_json()['status'] == 'queued'
    assert client.post('/check').get_json()['status'] == 'already_pending'
    assert scheduler.triggers.qsize() == 1


def test_notifier_skips_without_topic():
    session = MagicMock(spec=requests.Session)
    assert NtfyNotifier(Config(), session).notify('hello') is False
    session.post.assert_not_called()


def test_notifier_posts_to_topic():
    session = MagicMock(spec=requests.Session)
    session.post.return_value = make_response(200)
    notifier = NtfyNotifier(Config(ntfy_topic='portal'), session)

    assert notifier.notify_login('https://login.example/portal') is True
    args, kwargs = session.post.call_args
    assert args[0] == 'https://ntfy.sh/portal'
    assert kwargs['headers']['Title'] == 'Captive portal login'


def test_notifier_never_raises():
    session = MagicMock(spec=requests.Session)
    session.post.side_effect = requests.ConnectionError('offline')
    assert NtfyNotifier(Config(ntfy_topic='portal'), session).notify('x') is False
