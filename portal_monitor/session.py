"""
Session orchestration: probe, fetch token, submit, verify.

One call to SessionOrchestrator.run_cycle() is one guarded pass through the
portal protocol, wrapped in a bounded retry loop with exponential backoff.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .errors import AuthError, ParseError, PortalMonitorError, TransportError
from .portal import (
    Ambiguous,
    Clear,
    ConnectivityProber,
    Credentials,
    LoginOutcome,
    LoginSubmitter,
    PortalDetected,
    ProbeFailed,
    Rejected,
    Success,
    TransportFailure,
    VerificationFailed,
)

logger = logging.getLogger(__name__)


class CycleStatus(Enum):
    NO_PORTAL = 'no_portal'
    LOGGED_IN = 'logged_in'
    FAILED = 'failed'


@dataclass
class CycleResult:
    """Outcome of one orchestrator cycle."""
    status: CycleStatus
    portal_url: Optional[str] = None
    reason: str = ''
    error: Optional[PortalMonitorError] = None
    outcome: Optional[LoginOutcome] = None
    attempts: int = 0
    optimistic: bool = False  # verification probe failed in transit after an accepted login

    @property
    def succeeded(self) -> bool:
        return self.status is not CycleStatus.FAILED

    @property
    def logged_in(self) -> bool:
        return self.status is CycleStatus.LOGGED_IN


@dataclass
class _Attempt:
    result: CycleResult
    retryable: bool


class SessionOrchestrator:
    """Runs the captive portal protocol with bounded retries."""

    def __init__(self, prober: ConnectivityProber, submitter: LoginSubmitter,
                 max_attempts: int = 3, initial_delay: float = 2.0,
                 verify_settle: float = 2.0, sleep: Callable[[float], None] = time.sleep):
        self.prober = prober
        self.submitter = submitter
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.verify_settle = verify_settle
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay after a failed 1-indexed attempt."""
        # Only used between attempts: 3 attempts sleep 2s and 4s, never 8s after the last one
        return self.initial_delay * (2 ** (attempt - 1))

    def run_cycle(self, credentials: Credentials) -> CycleResult:
        """Attempt the whole protocol up to max_attempts times."""
        result = None
        for attempt in range(1, self.max_attempts + 1):
            outcome = self._attempt(credentials)
            result = outcome.result
            result.attempts = attempt

            if result.succeeded:
                return result
            if not outcome.retryable:
                logger.error(f"Portal login failed, not retrying: {result.reason}")
                return result

            if attempt < self.max_attempts:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"Login attempt {attempt}/{self.max_attempts} failed ({result.reason}), "
                    f"logging out and retrying in {delay:.0f}s"
                )
                self.submitter.logout()
                self._sleep(delay)

        logger.error(f"Portal login failed after {self.max_attempts} attempts: {result.reason}")
        return result

    def _attempt(self, credentials: Credentials) -> _Attempt:
        """A single pass of the state machine."""
        # Probing
        probe = self.prober.check()
        if isinstance(probe, Clear):
            logger.info("No captive portal detected")
            return _Attempt(CycleResult(CycleStatus.NO_PORTAL), retryable=False)
        if isinstance(probe, ProbeFailed):
            return _Attempt(
                CycleResult(CycleStatus.FAILED, reason=f"probe failed: {probe.cause}", error=probe.cause),
                retryable=False,
            )

        portal_url = probe.redirect_url
        logger.info(f"Captive portal detected at {portal_url}")

        # TokenFetch
        token = self.submitter.fetch_token(portal_url)
        if isinstance(token, TransportError):
            return _Attempt(
                CycleResult(CycleStatus.FAILED, portal_url=portal_url,
                            reason=f"portal page fetch failed: {token}", error=token,
                            outcome=TransportFailure(token)),
                retryable=True,
            )
        if token is None:
            error = ParseError(f"token extraction failed for {portal_url}")
            return _Attempt(
                CycleResult(CycleStatus.FAILED, portal_url=portal_url,
                            reason='token extraction failed', error=error),
                retryable=False,
            )
        logger.debug(f"Extracted portal token ({len(token.magic)} chars)")

        # Submitting
        submitted = self.submitter.submit_login(token, credentials)
        if isinstance(submitted, TransportFailure):
            return _Attempt(
                CycleResult(CycleStatus.FAILED, portal_url=portal_url,
                            reason=f"login request failed: {submitted.cause}",
                            error=submitted.cause, outcome=submitted),
                retryable=True,
            )
        if isinstance(submitted, Rejected):
            logger.error(f"Portal rejected login with HTTP {submitted.http_status}: {submitted.body[:200]}")
            return _Attempt(
                CycleResult(CycleStatus.FAILED, portal_url=portal_url,
                            reason=f"login rejected with HTTP {submitted.http_status}",
                            outcome=submitted),
                retryable=True,
            )

        # Verifying
        return self._verify(portal_url)

    def _verify(self, portal_url: str) -> _Attempt:
        self._sleep(self.verify_settle)
        verification = self.prober.probe()

        if isinstance(verification, Clear):
            logger.info("Logged into captive portal, internet access verified")
            return _Attempt(
                CycleResult(CycleStatus.LOGGED_IN, portal_url=portal_url, outcome=Success()),
                retryable=False,
            )

        if isinstance(verification, ProbeFailed) and verification.is_transport:
            logger.warning(
                f"Could not verify connectivity after login ({verification.cause}), "
                "assuming the login succeeded"
            )
            return _Attempt(
                CycleResult(CycleStatus.LOGGED_IN, portal_url=portal_url,
                            outcome=Success(), optimistic=True),
                retryable=False,
            )

        if isinstance(verification, (PortalDetected, Ambiguous)):
            detail = 'portal still intercepting traffic'
        else:
            detail = f"verification probe failed: {verification.cause}"
        outcome = VerificationFailed()
        return _Attempt(
            CycleResult(CycleStatus.FAILED, portal_url=portal_url, reason=outcome.reason,
                        error=AuthError(f"{detail}, credentials may be wrong"), outcome=outcome),
            retryable=True,
        )
