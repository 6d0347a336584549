"""
Hybrid scheduler: adaptive polling plus event-driven checks.

The loop is strictly sequential. Each iteration waits for the first of
shutdown, a trigger from the watcher queue, or the polling timer, in that
priority order, then runs one orchestrator cycle to completion.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .notifier import NtfyNotifier
from .session import CycleResult, CycleStatus, SessionOrchestrator
from .status import StatusStore

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 10.0
MAX_INTERVAL_SECONDS = 1800.0

# Granularity at which a pending timer wait re-checks for shutdown
WAIT_TICK_SECONDS = 1.0


class Wakeup(Enum):
    SHUTDOWN = 'shutdown'
    NETWORK_CHANGE = 'network_change'
    TIMER = 'timer'


@dataclass
class ScheduleState:
    """How soon to check again. min_interval <= current_interval <= max_interval."""
    min_interval: float = MIN_INTERVAL_SECONDS
    max_interval: float = MAX_INTERVAL_SECONDS
    current_interval: float = MIN_INTERVAL_SECONDS
    last_outcome: Optional[bool] = None

    def __post_init__(self):
        self.current_interval = min(max(self.current_interval, self.min_interval), self.max_interval)

    def record_success(self):
        """Online: back off hard."""
        self.last_outcome = True
        self.current_interval = self.max_interval

    def record_failure(self):
        """Failed or inconclusive: probe increasingly often."""
        self.last_outcome = False
        self.current_interval = max(self.current_interval / 2, self.min_interval)

    def as_dict(self) -> dict:
        return {
            'current_interval_seconds': self.current_interval,
            'min_interval_seconds': self.min_interval,
            'max_interval_seconds': self.max_interval,
            'last_outcome': self.last_outcome,
        }


class HybridScheduler:
    """The daemon's event loop."""

    def __init__(self, orchestrator: SessionOrchestrator, credential_provider,
                 status_store: StatusStore, notifier: Optional[NtfyNotifier] = None,
                 min_interval: float = MIN_INTERVAL_SECONDS,
                 max_interval: float = MAX_INTERVAL_SECONDS,
                 network_settle: float = 3.0, trigger_queue_size: int = 10,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.orchestrator = orchestrator
        self.credential_provider = credential_provider
        self.status_store = status_store
        self.notifier = notifier
        self.network_settle = network_settle
        self.state = ScheduleState(min_interval=min_interval, max_interval=max_interval,
                                   current_interval=min_interval)
        self.triggers: queue.Queue = queue.Queue(maxsize=trigger_queue_size)
        self.last_result: Optional[CycleResult] = None
        self.cycles = 0
        self._sleep = sleep
        self._clock = clock
        self._shutdown_event = threading.Event()
        self._cycle_lock = threading.Lock()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def stop(self):
        """Request a graceful shutdown at the next iteration boundary."""
        self._shutdown_event.set()

    def request_check(self, reason=None) -> bool:
        """Queue an immediate check. Returns False if one is already pending."""
        try:
            self.triggers.put_nowait(reason)
        except queue.Full:
            logger.debug("Check request dropped, one is already pending")
            return False
        return True

    def _drain_triggers(self):
        while True:
            try:
                self.triggers.get_nowait()
            except queue.Empty:
                return

    def wait_for_event(self, timeout: float) -> Wakeup:
        """Block until shutdown, a trigger or the timer, checking shutdown first."""
        deadline = self._clock() + timeout
        while True:
            if self._shutdown_event.is_set():
                return Wakeup.SHUTDOWN
            remaining = deadline - self._clock()
            if remaining <= 0:
                # A trigger that raced the deadline still wins over the timer
                try:
                    self.triggers.get_nowait()
                except queue.Empty:
                    return Wakeup.TIMER
                return Wakeup.NETWORK_CHANGE
            try:
                self.triggers.get(timeout=min(remaining, WAIT_TICK_SECONDS))
            except queue.Empty:
                continue
            if self._shutdown_event.is_set():
                return Wakeup.SHUTDOWN
            return Wakeup.NETWORK_CHANGE

    def run_cycle(self) -> Optional[CycleResult]:
        """Run one orchestrator cycle and fold its result into the schedule."""
        with self._cycle_lock:
            self.cycles += 1
            try:
                credentials = self.credential_provider.get()
                result = self.orchestrator.run_cycle(credentials)
            except Exception as e:
                logger.exception(f"Unexpected error during portal check: {e}")
                result = CycleResult(CycleStatus.FAILED, reason=f"unexpected error: {e}")

            self.last_result = result
            if result.succeeded:
                self.state.record_success()
            else:
                self.state.record_failure()

            self.status_store.record(result.portal_url, result.logged_in)

            if self.notifier and result.logged_in:
                self.notifier.notify_login(result.portal_url)
            elif self.notifier and result.portal_url and not result.succeeded:
                self.notifier.notify_login_failed(result.reason)
            return result

    def run(self):
        """Main loop. Returns after a shutdown request."""
        logger.info("Performing initial check for captive portal on startup...")
        self.run_cycle()

        logger.info("Starting hybrid network watcher and polling loop...")
        while True:
            logger.info(f"Next poll in {self.state.current_interval:.0f} seconds")
            wakeup = self.wait_for_event(self.state.current_interval)

            if wakeup is Wakeup.SHUTDOWN:
                logger.info("Shutdown signal received, updating state and exiting...")
                self.status_store.record(None, False)
                break

            if wakeup is Wakeup.NETWORK_CHANGE:
                logger.info(f"Network change detected, checking in {self.network_settle:.0f}s")
                self._sleep(self.network_settle)
                # Anything that arrived while settling is covered by this check
                self._drain_triggers()
            else:
                logger.info("Polling interval elapsed. Checking for captive portal...")
                self._drain_triggers()

            self.run_cycle()

        logger.info("Scheduler stopped")
