"""Notifications via ntfy."""

import logging

import requests

from .config import Config

logger = logging.getLogger(__name__)

APP_TITLE = 'Captive Portal Monitor'


class NtfyNotifier:
    """Sends notifications via ntfy."""

    def __init__(self, config: Config, session: requests.Session = None):
        self.config = config
        self.session = session or requests.Session()

    def send(self, title: str, message: str, priority: str = 'default',
             tags: list = None) -> bool:
        """Send a notification to ntfy."""
        if not self.config.ntfy_topic:
            logger.debug("No ntfy topic configured, skipping notification")
            return False

        try:
            url = f"{self.config.ntfy_server_url.rstrip('/')}/{self.config.ntfy_topic}"
            headers = {'Title': title, 'Priority': priority}
            if tags:
                headers['Tags'] = ','.join(tags)

            response = self.session.post(
                url,
                data=message.encode('utf-8'),
                headers=headers,
                timeout=10
            )

            if response.status_code == 200:
                logger.info(f"Notification sent: {title}")
                return True
            logger.error(f"Failed to send notification: {response.status_code}")
            return False

        except requests.RequestException as e:
            logger.error(f"Failed to send notification: {e}")
            return False

    def notify(self, message: str) -> bool:
        """Send a plain informational notification."""
        logger.info(f"Sending notification: {message}")
        return self.send(APP_TITLE, message, tags=['globe_with_meridians'])

    def notify_login(self, portal_url: str) -> bool:
        return self.send(
            title='Captive portal login',
            message=f"Logged into captive portal at {portal_url}",
            tags=['white_check_mark', 'globe_with_meridians'],
        )

    def notify_login_failed(self, reason: str) -> bool:
        return self.send(
            title='Captive portal login FAILED',
            message=f"Could not log into the captive portal: {reason}",
            priority='high',
            tags=['warning'],
        )
