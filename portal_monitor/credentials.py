"""Credential provider backed by config, environment or a password file."""

import logging
from pathlib import Path

from .config import Config
from .errors import CredentialsError
from .portal import Credentials

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Supplies portal credentials for one login cycle at a time."""

    def __init__(self, config: Config):
        self.config = config

    def get(self) -> Credentials:
        """Return the configured credentials or raise CredentialsError."""
        username = (self.config.username or '').strip()
        password = self.config.password or ''

        if not password and self.config.password_file:
            path = Path(self.config.password_file).expanduser()
            try:
                password = path.read_text(encoding='utf-8').rstrip('\r\n')
            except OSError as e:
                raise CredentialsError(f"Cannot read password file {path}: {e}") from e

        if not username:
            raise CredentialsError("No username configured (set username or PORTAL_USERNAME)")
        if not password:
            raise CredentialsError(
                "No password configured (set PORTAL_PASSWORD or password_file)"
            )
        return Credentials(username=username, password=password)

    def available(self) -> bool:
        try:
            self.get()
        except CredentialsError:
            return False
        return True
