"""Persisted service status record."""

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class ServiceStatus:
    """What the daemon last saw."""
    last_check_timestamp: Optional[int] = None
    last_successful_login_timestamp: Optional[int] = None
    last_portal_detected: Optional[str] = None


class StatusStore:
    """Reads and writes the JSON status file."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def load(self) -> ServiceStatus:
        """Load the status record. A missing or corrupt file yields an empty record."""
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return ServiceStatus()
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable status file {self.path}: {e}")
            return ServiceStatus()
        if not isinstance(data, dict):
            return ServiceStatus()
        return ServiceStatus(
            last_check_timestamp=data.get('last_check_timestamp'),
            last_successful_login_timestamp=data.get('last_successful_login_timestamp'),
            last_portal_detected=data.get('last_portal_detected'),
        )

    def record(self, portal_url: Optional[str], success: bool) -> bool:
        """Record a check. Returns False if the file could not be written."""
        with self._lock:
            status = self.load()
            now = int(time.time())
            status.last_check_timestamp = now
            if success:
                status.last_successful_login_timestamp = now
            if portal_url:
                status.last_portal_detected = portal_url

            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix('.tmp')
                tmp_path.write_text(json.dumps(asdict(status), indent=2), encoding='utf-8')
                tmp_path.replace(self.path)
            except OSError as e:
                logger.error(f"Failed to write status file {self.path}: {e}")
                return False
            return True


def format_duration_ago(timestamp: float, now: Optional[float] = None) -> str:
    """Human readable age of a unix timestamp."""
    if now is None:
        now = time.time()
    if now < timestamp:
        return 'just now'

    diff = int(now - timestamp)
    if diff < 60:
        return f"{diff} seconds ago"
    if diff < 3600:
        mins = diff // 60
        return f"{mins} minute{'' if mins == 1 else 's'} ago"
    if diff < 86400:
        hours = diff // 3600
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    days = diff // 86400
    return f"{days} day{'' if days == 1 else 's'} ago"
