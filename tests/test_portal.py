"""Tests for the connectivity prober and login submitter."""

import requests

from portal_monitor.errors import ProtocolError, TransportError
from portal_monitor.portal import (
    Accepted,
    Ambiguous,
    Clear,
    Credentials,
    PortalDetected,
    PortalToken,
    ProbeFailed,
    Rejected,
    TransportFailure,
)

from .conftest import (
    LOGIN_URL,
    LOGOUT_URL,
    PORTAL_PAGE_HTML,
    PORTAL_REDIRECT_HTML,
    Scripted,
    make_response,
)


class TestProbe:
    def test_no_content_is_clear(self, prober, session):
        session.get.return_value = make_response(204)
        assert prober.probe() == Clear()

    def test_portal_redirect_detected(self, prober, session):
        session.get.return_value = make_response(200, PORTAL_REDIRECT_HTML)
        assert prober.probe() == PortalDetected('https://login.example/portal')

    def test_location_header_redirect_detected(self, prober, session):
        session.get.return_value = make_response(302, headers={'Location': 'http://p.example/'})
        assert prober.probe() == PortalDetected('http://p.example/')

    def test_200_without_marker_is_ambiguous(self, prober, session):
        session.get.return_value = make_response(200, '<html>hello</html>')
        assert isinstance(prober.probe(), Ambiguous)

    def test_server_error_is_protocol_error(self, prober, session):
        session.get.return_value = make_response(503)
        result = prober.probe()
        assert isinstance(result, ProbeFailed)
        assert isinstance(result.cause, ProtocolError)
        assert result.cause.status_code == 503
        assert not result.is_transport

    def test_transport_error(self, prober, session):
        session.get.side_effect = requests.ConnectionError('no route')
        result = prober.probe()
        assert isinstance(result, ProbeFailed)
        assert result.is_transport

    def test_timeout_is_bounded(self, prober, session):
        session.get.return_value = make_response(204)
        prober.probe(timeout=60)
        assert session.get.call_args.kwargs['timeout'] == 5
        assert session.get.call_args.kwargs['allow_redirects'] is False


class TestCheck:
    def test_two_ambiguous_results_are_clear(self, prober, session):
        session.get.side_effect = Scripted(make_response(200, 'x'), make_response(200, 'y'))
        assert prober.check() == Clear(ambiguous=True)
        assert session.get.call_count == 2

    def test_ambiguous_then_portal(self, prober, session):
        session.get.side_effect = Scripted(make_response(200, 'x'),
                                           make_response(200, PORTAL_REDIRECT_HTML))
        assert isinstance(prober.check(), PortalDetected)

    def test_unambiguous_result_probes_once(self, prober, session):
        session.get.return_value = make_response(204)
        assert prober.check() == Clear()
        assert session.get.call_count == 1


class TestSubmitter:
    def test_known_portal_host_posts_to_fixed_endpoint(self, submitter, session, credentials):
        session.post.return_value = make_response(302)
        token = PortalToken(login_url='https://login.example/portal?abc', magic='abc123')

        result = submitter.submit_login(token, credentials)

        assert result == Accepted(302)
        args, kwargs = session.post.call_args
        assert args[0] == LOGIN_URL
        assert kwargs['data'] == {
            'username': 'alice',
            'password': 's3cret',
            '4Tredir': 'https://login.example/portal?abc',
            'magic': 'abc123',
        }

    def test_other_host_posts_to_detected_url(self, submitter, session, credentials):
        session.post.return_value = make_response(200)
        token = PortalToken(login_url='http://other.example/login', magic='m')
        submitter.submit_login(token, credentials)
        assert session.post.call_args.args[0] == 'http://other.example/login'

    def test_rejected_captures_body(self, submitter, session, credentials):
        session.post.return_value = make_response(401, 'bad password')
        token = PortalToken(login_url='https://login.example/', magic='m')
        assert submitter.submit_login(token, credentials) == Rejected(401, 'bad password')

    def test_post_transport_error(self, submitter, session, credentials):
        session.post.side_effect = requests.Timeout('slow')
        token = PortalToken(login_url='https://login.example/', magic='m')
        assert isinstance(submitter.submit_login(token, credentials), TransportFailure)

    def test_fetch_token(self, submitter, session):
        session.get.return_value = make_response(200, PORTAL_PAGE_HTML)
        token = submitter.fetch_token('https://login.example/portal')
        assert token == PortalToken('https://login.example/portal', 'abc123')

    def test_fetch_token_missing(self, submitter, session):
        session.get.return_value = make_response(200, '<html></html>')
        assert submitter.fetch_token('https://login.example/portal') is None

    def test_fetch_token_transport_error(self, submitter, session):
        session.get.side_effect = requests.ConnectionError('down')
        assert isinstance(submitter.fetch_token('https://login.example/portal'), TransportError)

    def test_logout_swallows_errors(self, submitter, session):
        session.get.side_effect = requests.ConnectionError('already logged out')
        assert submitter.logout() is False

    def test_logout_any_response_accepted(self, submitter, session):
        session.get.return_value = make_response(500)
        assert submitter.logout() is True
        assert session.get.call_args.args[0] == LOGOUT_URL


def test_secrets_not_in_repr():
    assert 's3cret' not in repr(Credentials('alice', 's3cret'))
    assert 'abc123' not in repr(PortalToken('https://login.example/', 'abc123'))
