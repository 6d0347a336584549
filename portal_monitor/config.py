"""Configuration loading from YAML and environment variables."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Upper bound for any single HTTP call so the scheduler always makes progress
MAX_REQUEST_TIMEOUT_SECONDS = 10.0

DEFAULT_STATE_DIR = Path.home() / '.local' / 'share' / 'portal-monitor'


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _coerce(value, field_type):
    """Convert a YAML value to the declared field type."""
    if field_type is bool:
        return _parse_bool(value) if isinstance(value, str) else bool(value)
    if field_type in (int, float, str):
        return field_type(value)
    return value


@dataclass
class Config:
    """Configuration for the portal monitor."""
    # Connectivity check
    check_url: str = 'http://clients3.google.com/generate_204'
    request_timeout_seconds: float = 10.0
    # Portal endpoints. login_url/logout_url are derived from portal_host when empty.
    portal_host: str = 'gateway.example.net'
    login_url: str = ''
    logout_url: str = ''
    redirect_field: str = '4Tredir'
    # Login retries
    max_login_attempts: int = 3
    retry_initial_delay_seconds: float = 2.0
    verify_settle_seconds: float = 2.0
    # Scheduling
    min_interval_seconds: float = 10.0
    max_interval_seconds: float = 1800.0
    network_settle_seconds: float = 3.0
    # Network interface watcher
    watcher_enabled: bool = True
    watcher_poll_seconds: float = 2.0
    watcher_queue_size: int = 10
    # Persistence and logging
    state_file: str = str(DEFAULT_STATE_DIR / 'state.json')
    log_file: str = ''
    log_level: str = 'INFO'
    # Notifications
    ntfy_server_url: str = 'https://ntfy.sh'
    ntfy_topic: str = ''
    # Local HTTP API (0 disables it)
    http_host: str = '127.0.0.1'
    http_port: int = 0
    # Credentials (prefer PORTAL_PASSWORD or password_file over storing it here)
    username: str = ''
    password: str = ''
    password_file: str = ''

    @classmethod
    def load(cls, config_path: Optional[str] = 'config.yaml') -> 'Config':
        """Load configuration from YAML file and environment variables."""
        config = cls()

        # Load from YAML if exists
        if config_path and os.path.exists(config_path):
            try:
                with open(config_path, 'r') as f:
                    yaml_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
            if not isinstance(yaml_config, dict):
                raise ConfigError(f"Config file {config_path} must contain a mapping")
            known = {f.name: f.type for f in fields(cls)}
            for key, value in yaml_config.items():
                if key not in known:
                    logger.warning(f"Ignoring unknown config key: {key}")
                elif value is not None:
                    try:
                        setattr(config, key, _coerce(value, known[key]))
                    except (ValueError, TypeError) as e:
                        raise ConfigError(f"Invalid value for {key} in {config_path}: {e}") from e

        # Override with environment variables
        env_mappings = {
            'CHECK_URL': ('check_url', str),
            'REQUEST_TIMEOUT': ('request_timeout_seconds', float),
            'PORTAL_HOST': ('portal_host', str),
            'LOGIN_URL': ('login_url', str),
            'LOGOUT_URL': ('logout_url', str),
            'MAX_LOGIN_ATTEMPTS': ('max_login_attempts', int),
            'RETRY_INITIAL_DELAY': ('retry_initial_delay_seconds', float),
            'MIN_INTERVAL': ('min_interval_seconds', float),
            'MAX_INTERVAL': ('max_interval_seconds', float),
            'NETWORK_SETTLE': ('network_settle_seconds', float),
            'WATCHER_ENABLED': ('watcher_enabled', _parse_bool),
            'STATE_FILE': ('state_file', str),
            'LOG_FILE': ('log_file', str),
            'LOG_LEVEL': ('log_level', str),
            'NTFY_SERVER_URL': ('ntfy_server_url', str),
            'NTFY_TOPIC': ('ntfy_topic', str),
            'HTTP_PORT': ('http_port', int),
            'PORTAL_USERNAME': ('username', str),
            'PORTAL_PASSWORD': ('password', str),
            'PORTAL_PASSWORD_FILE': ('password_file', str),
        }

        for env_var, (attr, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                try:
                    setattr(config, attr, converter(value))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Invalid value for {env_var}: {e}")

        config.finalize()
        return config

    def finalize(self) -> 'Config':
        """Fill derived endpoints, clamp the request timeout and validate."""
        if not self.login_url:
            self.login_url = f"https://{self.portal_host}:1003/"
        if not self.logout_url:
            self.logout_url = f"https://{self.portal_host}:1003/logout?"
        self.validate()
        if self.request_timeout_seconds > MAX_REQUEST_TIMEOUT_SECONDS:
            logger.warning(
                f"request_timeout_seconds={self.request_timeout_seconds} exceeds "
                f"{MAX_REQUEST_TIMEOUT_SECONDS}s, clamping"
            )
            self.request_timeout_seconds = MAX_REQUEST_TIMEOUT_SECONDS
        return self

    def validate(self):
        """Raise ConfigError if the configuration is unusable."""
        try:
            self._check_ranges()
        except TypeError as e:
            raise ConfigError(f"Invalid config value type: {e}") from e

    def _check_ranges(self):
        if self.min_interval_seconds <= 0 or self.max_interval_seconds <= 0:
            raise ConfigError("Polling intervals must be positive")
        if self.min_interval_seconds > self.max_interval_seconds:
            raise ConfigError(
                f"min_interval_seconds ({self.min_interval_seconds}) is greater than "
                f"max_interval_seconds ({self.max_interval_seconds})"
            )
        if self.max_login_attempts < 1:
            raise ConfigError("max_login_attempts must be at least 1")
        if self.request_timeout_seconds <= 0:
            raise ConfigError("request_timeout_seconds must be positive")
        if self.watcher_queue_size < 1:
            raise ConfigError("watcher_queue_size must be at least 1")
