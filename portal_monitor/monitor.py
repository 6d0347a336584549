#!/usr/bin/env python3
"""
Captive Portal Monitor

Detects an HTTP captive portal, logs in with stored credentials and keeps
checking on an adaptive timer and whenever a network interface comes up.
"""

import argparse
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from . import __version__
from .api import create_app, start_api_server
from .config import Config
from .credentials import CredentialProvider
from .errors import ConfigError, CredentialsError, PortalMonitorError
from .notifier import NtfyNotifier
from .portal import (
    Clear,
    ConnectivityProber,
    LoginSubmitter,
    PortalDetected,
    build_session,
)
from .scheduler import HybridScheduler
from .session import SessionOrchestrator
from .status import StatusStore, format_duration_ago
from .watcher import InterfaceWatcher

logger = logging.getLogger('portal_monitor')

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    """Configure console logging and an optional rotating log file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = os.path.expanduser(log_file)
        os.makedirs(os.path.dirname(log_path) or '.', exist_ok=True)
        handlers.append(RotatingFileHandler(log_path, maxBytes=1024 * 1024, backupCount=5))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # Reduce HTTP client/server logging noise
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)


class PortalMonitor:
    """Wires the portal client, scheduler, watcher and API together."""

    def __init__(self, config: Config):
        self.config = config
        self.session = build_session()
        self.prober = ConnectivityProber(self.session, config.check_url,
                                         timeout=config.request_timeout_seconds)
        self.submitter = LoginSubmitter(
            self.session,
            portal_host=config.portal_host,
            login_url=config.login_url,
            logout_url=config.logout_url,
            redirect_field=config.redirect_field,
            timeout=config.request_timeout_seconds,
        )
        self.orchestrator = SessionOrchestrator(
            self.prober,
            self.submitter,
            max_attempts=config.max_login_attempts,
            initial_delay=config.retry_initial_delay_seconds,
            verify_settle=config.verify_settle_seconds,
        )
        self.credentials = CredentialProvider(config)
        self.status_store = StatusStore(config.state_file)
        self.notifier = NtfyNotifier(config)
        self.scheduler = HybridScheduler(
            self.orchestrator,
            self.credentials,
            self.status_store,
            notifier=self.notifier,
            min_interval=config.min_interval_seconds,
            max_interval=config.max_interval_seconds,
            network_settle=config.network_settle_seconds,
            trigger_queue_size=config.watcher_queue_size,
        )
        self.watcher: Optional[InterfaceWatcher] = None
        if config.watcher_enabled:
            self.watcher = InterfaceWatcher(poll_interval=config.watcher_poll_seconds)
            self.watcher.attach(self.scheduler.triggers)

    def run(self):
        """Run the daemon until stopped."""
        # Fail fast when credentials are unreadable
        self.credentials.get()

        logger.info(f"Captive Portal Monitor {__version__} started")
        logger.info(f"Check URL: {self.config.check_url}")
        logger.info(f"Portal host: {self.config.portal_host}")
        logger.info(
            f"Polling interval: {self.config.min_interval_seconds:.0f}s - "
            f"{self.config.max_interval_seconds:.0f}s"
        )
        logger.info(f"ntfy topic: {self.config.ntfy_topic or '(not configured)'}")

        if self.config.http_port:
            start_api_server(create_app(self.scheduler, self.status_store),
                             self.config.http_host, self.config.http_port)
        if self.watcher:
            self.watcher.start()

        try:
            self.scheduler.run()
        finally:
            if self.watcher:
                self.watcher.stop()
            self.session.close()
        logger.info("Captive Portal Monitor stopped")

    def stop(self):
        """Stop the monitor gracefully."""
        self.scheduler.stop()


def cmd_run(config: Config) -> int:
    monitor = PortalMonitor(config)

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        monitor.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    monitor.run()
    return 0


def cmd_status(config: Config) -> int:
    """Print credentials, live connectivity and the persisted status record."""
    credentials = CredentialProvider(config)
    session = build_session()
    prober = ConnectivityProber(session, config.check_url, timeout=config.request_timeout_seconds)

    if credentials.available():
        print(f"Credentials:        configured (user: {credentials.get().username})")
    else:
        print("Credentials:        not configured")

    result = prober.check()
    if isinstance(result, Clear):
        print("Internet:           connected")
        print("Portal Status:      not detected")
    elif isinstance(result, PortalDetected):
        print("Internet:           not connected")
        print("Portal Status:      detected")
        print(f"Portal URL:         {result.redirect_url}")
    else:
        print("Internet:           not connected")
        print(f"Portal Status:      check failed ({result.cause})")

    record = StatusStore(config.state_file).load()
    if record.last_check_timestamp:
        print(f"Last Check:         {format_duration_ago(record.last_check_timestamp)}")
    if record.last_successful_login_timestamp:
        print(f"Last Login:         {format_duration_ago(record.last_successful_login_timestamp)}")
    if record.last_portal_detected:
        print(f"Last Portal:        {record.last_portal_detected}")
    session.close()
    return 0


def cmd_health(config: Config) -> int:
    """Verify credentials are readable and the check URL answers."""
    try:
        username = CredentialProvider(config).get().username
    except CredentialsError as e:
        logger.error(f"Failed to retrieve credentials: {e}")
        return 1
    logger.info(f"Credentials found for user: {username}")

    session = build_session()
    result = ConnectivityProber(session, config.check_url,
                                timeout=config.request_timeout_seconds).check()
    session.close()
    if isinstance(result, Clear):
        logger.info("No captive portal detected (internet is accessible)")
    elif isinstance(result, PortalDetected):
        logger.info(f"Captive portal detected at: {result.redirect_url}")
    else:
        logger.error(f"Network check failed: {result.cause}")
        return 1
    logger.info("Health check completed successfully")
    return 0


def cmd_logout(config: Config) -> int:
    """Send a logout request to the portal."""
    session = build_session()
    submitter = LoginSubmitter(session, config.portal_host, config.login_url,
                               config.logout_url, config.redirect_field,
                               timeout=config.request_timeout_seconds)
    if submitter.logout():
        logger.info("Logout request sent successfully")
        NtfyNotifier(config, session).notify("Logged out from captive portal.")
    else:
        logger.warning("Logout request failed (expected if not logged in)")
    session.close()
    return 0


COMMANDS = {
    'run': cmd_run,
    'status': cmd_status,
    'health': cmd_health,
    'logout': cmd_logout,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='portal-monitor',
        description='Keep this machine logged in behind a captive portal.',
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('-c', '--config', default=os.environ.get('CONFIG_PATH', 'config.yaml'),
                        help='Path to YAML config file (default: $CONFIG_PATH or config.yaml)')
    parser.add_argument('command', nargs='?', default='run', choices=sorted(COMMANDS),
                        help='run the daemon (default), show status, run a health check, or log out')
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(config.log_level, config.log_file)

    try:
        return COMMANDS[args.command](config)
    except PortalMonitorError as e:
        logger.error(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 0


if __name__ == '__main__':
    sys.exit(main())
