"""Shared fixtures: fake HTTP responses and sessions."""

from unittest.mock import MagicMock

import pytest
import requests

from portal_monitor.portal import ConnectivityProber, Credentials, LoginSubmitter

CHECK_URL = 'http://check.example/generate_204'
PORTAL_HOST = 'login.example'
LOGIN_URL = 'https://login.example:1003/'
LOGOUT_URL = 'https://login.example:1003/logout?'

PORTAL_REDIRECT_HTML = '<html><script>window.location="https://login.example/portal"</script></html>'
PORTAL_PAGE_HTML = (
    '<html><form method="post">'
    '<input type="hidden" name="magic" value="abc123">'
    '<input type="text" name="username"></form></html>'
)


def make_response(status_code=200, text='', headers=None):
    """Build a mock requests.Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.text = text
    resp.content = text.encode('utf-8')
    resp.headers = headers or {}
    return resp


class Scripted:
    """Return (or raise) the scripted items in order."""

    def __init__(self, *items):
        self.items = list(items)
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def prober(session):
    return ConnectivityProber(session, CHECK_URL, timeout=5)


@pytest.fixture
def submitter(session):
    return LoginSubmitter(session, PORTAL_HOST, LOGIN_URL, LOGOUT_URL, timeout=5)


@pytest.fixture
def credentials():
    return Credentials(username='alice', password='s3cret')
