"""Error taxonomy shared by the portal client and the daemon."""


class PortalMonitorError(Exception):
    """Base class for all portal monitor errors."""


class TransportError(PortalMonitorError):
    """DNS, TCP, TLS or timeout failure. Always retryable."""


class ProtocolError(PortalMonitorError):
    """The connectivity check endpoint answered with an unexpected status."""

    def __init__(self, status_code: int, message: str = None):
        self.status_code = status_code
        super().__init__(message or f"Unexpected HTTP {status_code} from connectivity check")


class ParseError(PortalMonitorError):
    """An expected marker was missing from a portal page."""


class AuthError(PortalMonitorError):
    """Login was accepted but the portal is still intercepting traffic."""


class ConfigError(PortalMonitorError):
    """Invalid configuration."""


class CredentialsError(PortalMonitorError):
    """Credentials could not be read."""
