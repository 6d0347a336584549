"""
Captive portal primitives: page parsing, connectivity probing and login submission.

Nothing in here retries. Retry and backoff policy lives in session.py.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urlparse

import requests

from .errors import ProtocolError, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = 'captive-portal-monitor/1.0'

REDIRECT_PATTERN = re.compile(r'window\.location="([^"]*)"')
MAGIC_PATTERN = re.compile(r'<input\s+type="hidden"\s+name="magic"\s+value="([^"]*)"\s*/?>')

# How much of a rejected response body to keep for diagnostics
MAX_BODY_CHARS = 2048


def build_session() -> requests.Session:
    """Create the HTTP session shared by the prober and the submitter."""
    session = requests.Session()
    session.headers.update({'User-Agent': USER_AGENT})
    return session


def _as_text(html: Union[str, bytes]) -> str:
    if isinstance(html, bytes):
        return html.decode('utf-8', errors='replace')
    return html


def extract_redirect_url(html: Union[str, bytes]) -> Optional[str]:
    """Return the first window.location="..." target in the page, if any."""
    match = REDIRECT_PATTERN.search(_as_text(html))
    if match and match.group(1):
        return match.group(1)
    return None


def extract_form_token(html: Union[str, bytes]) -> Optional[str]:
    """Return the hidden "magic" input value. Empty values count as missing."""
    match = MAGIC_PATTERN.search(_as_text(html))
    if match and match.group(1):
        return match.group(1)
    return None


@dataclass(frozen=True)
class PortalToken:
    """A one-time login token scraped from the portal page."""
    login_url: str
    magic: str = field(repr=False)


@dataclass(frozen=True)
class Credentials:
    """Portal username and password."""
    username: str
    password: str = field(repr=False)


# Connectivity results

@dataclass(frozen=True)
class Clear:
    """No portal, internet reachable."""
    ambiguous: bool = False


@dataclass(frozen=True)
class Ambiguous:
    """HTTP 200 from the check URL without a redirect marker."""
    status_code: int = 200


@dataclass(frozen=True)
class PortalDetected:
    redirect_url: str


@dataclass(frozen=True)
class ProbeFailed:
    cause: Exception

    @property
    def is_transport(self) -> bool:
        return isinstance(self.cause, TransportError)


ConnectivityResult = Union[Clear, Ambiguous, PortalDetected, ProbeFailed]


class ConnectivityProber:
    """Classifies the response of the "generate 204" check URL."""

    def __init__(self, session: requests.Session, check_url: str, timeout: float = 10.0):
        self.session = session
        self.check_url = check_url
        self.timeout = timeout

    def probe(self, timeout: Optional[float] = None) -> ConnectivityResult:
        """Issue a single probe. May return Ambiguous."""
        timeout = self.timeout if timeout is None else min(timeout, self.timeout)
        try:
            response = self.session.get(self.check_url, timeout=timeout, allow_redirects=False)
        except requests.RequestException as e:
            logger.debug(f"Connectivity probe transport error: {e}")
            return ProbeFailed(TransportError(str(e)))

        if response.status_code == 204:
            return Clear()

        if 200 <= response.status_code < 300:
            redirect_url = extract_redirect_url(response.content)
            if redirect_url:
                return PortalDetected(redirect_url)
            return Ambiguous(response.status_code)

        if 300 <= response.status_code < 400:
            # Some portals redirect with a Location header instead of a script
            location = response.headers.get('Location')
            if location:
                return PortalDetected(location)

        return ProbeFailed(ProtocolError(response.status_code))

    def check(self, timeout: Optional[float] = None) -> ConnectivityResult:
        """
        Probe, resolving an ambiguous answer by probing once more.

        Two indistinct answers in a row are treated as clear internet.
        """
        result = self.probe(timeout)
        if not isinstance(result, Ambiguous):
            return result

        logger.info("Connectivity check returned 200 without a portal marker, probing again")
        second = self.probe(timeout)
        if isinstance(second, Ambiguous):
            logger.warning("Connectivity check ambiguous twice in a row, assuming no portal")
            return Clear(ambiguous=True)
        return second


# Login outcomes

@dataclass(frozen=True)
class Accepted:
    """Portal accepted the POST (2xx/3xx). Not yet verified."""
    status_code: int


@dataclass(frozen=True)
class Success:
    pass


@dataclass(frozen=True)
class Rejected:
    http_status: int
    body: str


@dataclass(frozen=True)
class VerificationFailed:
    reason: str = 'verification failed'


@dataclass(frozen=True)
class TransportFailure:
    cause: TransportError


LoginOutcome = Union[Success, Rejected, VerificationFailed, TransportFailure]


class LoginSubmitter:
    """Submits the portal login form and the best-effort logout."""

    def __init__(self, session: requests.Session, portal_host: str, login_url: str,
                 logout_url: str, redirect_field: str = '4Tredir', timeout: float = 10.0):
        self.session = session
        self.portal_host = portal_host
        self.login_url = login_url
        self.logout_url = logout_url
        self.redirect_field = redirect_field
        self.timeout = timeout

    def resolve_post_target(self, detected_url: str) -> str:
        """The known portal host always takes the fixed login endpoint."""
        host = urlparse(detected_url).hostname
        if host and host.lower() == self.portal_host.lower():
            return self.login_url
        return detected_url

    def fetch_token(self, portal_url: str, timeout: Optional[float] = None) -> Union[PortalToken, TransportError, None]:
        """
        Fetch the portal page and scrape its magic token.

        Returns a PortalToken, a TransportError if the page could not be fetched,
        or None if the page had no usable token.
        """
        timeout = self.timeout if timeout is None else min(timeout, self.timeout)
        try:
            response = self.session.get(portal_url, timeout=timeout)
        except requests.RequestException as e:
            return TransportError(str(e))

        magic = extract_form_token(response.content)
        if magic is None:
            return None
        return PortalToken(login_url=portal_url, magic=magic)

    def submit_login(self, token: PortalToken, credentials: Credentials,
                     timeout: Optional[float] = None) -> Union[Accepted, Rejected, TransportFailure]:
        """POST the login form. Accepted still needs a connectivity check."""
        timeout = self.timeout if timeout is None else min(timeout, self.timeout)
        target = self.resolve_post_target(token.login_url)
        form = {
            'username': credentials.username,
            'password': credentials.password,
            self.redirect_field: token.login_url,
            'magic': token.magic,
        }
        logger.debug(f"Submitting login form to {target} (token length {len(token.magic)})")
        try:
            response = self.session.post(target, data=form, timeout=timeout, allow_redirects=False)
        except requests.RequestException as e:
            return TransportFailure(TransportError(str(e)))

        if 200 <= response.status_code < 400:
            return Accepted(response.status_code)
        return Rejected(response.status_code, response.text[:MAX_BODY_CHARS])

    def logout(self, timeout: Optional[float] = None) -> bool:
        """Request a logout. Never raises; returns whether a response arrived."""
        timeout = self.timeout if timeout is None else min(timeout, self.timeout)
        try:
            response = self.session.get(self.logout_url, timeout=timeout)
        except requests.RequestException as e:
            logger.debug(f"Logout request failed (ignored): {e}")
            return False
        logger.debug(f"Logout returned HTTP {response.status_code}")
        return True
