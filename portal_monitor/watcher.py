"""
Network interface watcher.

Polls psutil.net_if_addrs() on a background thread and pushes a
NetworkChange into each subscriber's bounded queue whenever an interface
or an address appears. Removals are ignored. A full queue drops the event,
so bursts of interface churn collapse into one pending check.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional

import psutil

logger = logging.getLogger(__name__)

Snapshot = Dict[str, FrozenSet[str]]


@dataclass(frozen=True)
class NetworkChange:
    """Interfaces and addresses that appeared since the previous snapshot."""
    added_interfaces: FrozenSet[str] = frozenset()
    added_addresses: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    removed_interfaces: FrozenSet[str] = frozenset()
    timestamp: float = field(default_factory=time.time)

    @property
    def is_relevant(self) -> bool:
        return bool(self.added_interfaces or self.added_addresses)


def take_snapshot() -> Snapshot:
    """Current interface -> addresses mapping."""
    return {
        name: frozenset(addr.address for addr in addrs if addr.address)
        for name, addrs in psutil.net_if_addrs().items()
    }


def diff_snapshots(old: Snapshot, new: Snapshot) -> NetworkChange:
    """Compute what appeared (and disappeared) between two snapshots."""
    added_interfaces = frozenset(set(new) - set(old))
    removed_interfaces = frozenset(set(old) - set(new))
    added_addresses = {}
    for name in set(new) & set(old):
        gained = new[name] - old[name]
        if gained:
            added_addresses[name] = frozenset(gained)
    return NetworkChange(
        added_interfaces=added_interfaces,
        added_addresses=added_addresses,
        removed_interfaces=removed_interfaces,
    )


class InterfaceWatcher:
    """Background producer of network change events."""

    def __init__(self, poll_interval: float = 2.0,
                 snapshot_fn: Callable[[], Snapshot] = take_snapshot):
        self.poll_interval = poll_interval
        self._snapshot_fn = snapshot_fn
        self._subscribers: List[queue.Queue] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last: Optional[Snapshot] = None

    def subscribe(self, maxsize: int = 10) -> queue.Queue:
        """Register a bounded queue that receives NetworkChange events."""
        q = queue.Queue(maxsize=maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def attach(self, q: queue.Queue):
        """Deliver events into an existing queue."""
        with self._lock:
            self._subscribers.append(q)

    def publish(self, change: NetworkChange):
        """Offer a change to every subscriber without blocking."""
        with self._lock:
            subscribers = list(self._subscribers)
        for q in subscribers:
            try:
                q.put_nowait(change)
            except queue.Full:
                logger.debug("Network change dropped, a check is already pending")

    def poll_once(self) -> Optional[NetworkChange]:
        """Take one snapshot and publish if something relevant appeared."""
        snapshot = self._snapshot_fn()
        if self._last is None:
            self._last = snapshot
            logger.info(f"Watcher initialized with {len(snapshot)} interfaces")
            return None

        previous = self._last
        change = diff_snapshots(previous, snapshot)
        self._last = snapshot

        if change.is_relevant:
            logger.info(
                f"Relevant network change: new interfaces {sorted(change.added_interfaces)}, "
                f"new addresses on {sorted(change.added_addresses)}"
            )
            self.publish(change)
            return change
        if snapshot != previous:
            logger.debug("Ignoring network change without additions")
        return None

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.error(f"Error polling network interfaces: {e}")
            self._stop_event.wait(self.poll_interval)

    def start(self):
        """Start the watcher thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name='interface-watcher', daemon=True)
        self._thread.start()
        logger.info(f"Network interface watcher started (poll every {self.poll_interval}s)")

    def stop(self):
        """Stop the watcher thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self.poll_interval + 1)
            self._thread = None
