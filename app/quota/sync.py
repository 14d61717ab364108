"""
Keeps one instance's view of quota state in step with the shared store.

Each observer re-reads the full snapshot for (user, today) on a fixed
interval, and right away when the store reports a write touching that user.
There is no change log: the latest snapshot read wins.
"""

import logging
import threading
from typing import Callable, List, Optional

from .gate import LimitGate
from .keys import parse_key
from .models import UsageSnapshot

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[UsageSnapshot], None]


class SyncObserver:
    """Polling/notification loop over one user's quota state."""

    def __init__(self, gate: LimitGate, user: str, interval: float = 1.0):
        """
        Initialize SyncObserver.

        Args:
            gate: Gate whose ledger/viewed set are read on each tick
            user: User whose state is mirrored
            interval: Seconds between polls
        """
        if not user:
            raise ValueError("user is required")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.gate = gate
        self.user = user
        self.interval = interval

        self._lock = threading.Lock()
        self._snapshot: Optional[UsageSnapshot] = None
        self._callbacks: List[SnapshotCallback] = []
        self._wake = threading.Event()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._listener = None

    @property
    def snapshot(self) -> Optional[UsageSnapshot]:
        """Last snapshot read, or None before the first tick."""
        with self._lock:
            return self._snapshot

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def on_change(self, callback: SnapshotCallback) -> SnapshotCallback:
        """Register a callback fired whenever a tick reads a different state."""
        with self._lock:
            self._callbacks.append(callback)
        return callback

    def refresh(self) -> UsageSnapshot:
        """Run one tick synchronously and return the fresh snapshot."""
        day = self.gate.today()
        current = self.gate.current_usage(self.user, day)

        with self._lock:
            previous = self._snapshot
            self._snapshot = current
            callbacks = list(self._callbacks)

        if not current.same_state(previous):
            logger.debug(
                f"Quota state changed for {self.user}: day={current.day}, "
                f"used={current.used}/{current.cap}, reached={current.limit_reached}"
            )
            for callback in callbacks:
                try:
                    callback(current)
                except Exception as e:
                    logger.error(f"Snapshot callback failed: {e}", exc_info=True)

        return current

    def notify(self, changed_keys: Optional[List[str]] = None) -> None:
        """
        Signal an external mutation so the next tick runs immediately.

        Args:
            changed_keys: Keys reported by the store; writes for other users are ignored
        """
        if changed_keys is not None:
            relevant = False
            for key in changed_keys:
                parsed = parse_key(key)
                if parsed is not None and parsed.user == self.user:
                    relevant = True
                    break
            if not relevant:
                return
        self._wake.set()

    def start(self) -> None:
        """Start polling on a daemon thread and subscribe to store notifications."""
        with self._lock:
            if self._listener is None:
                self._listener = self.gate.store.subscribe(self.notify)

            # A thread that outlived an earlier stop() is put back to work
            self._stopping.clear()
            if self._thread is not None and self._thread.is_alive():
                return

            self._thread = threading.Thread(
                target=self._run, name=f"quota-sync-{self.user}", daemon=True
            )
            self._thread.start()
        logger.info(f"Started quota sync for {self.user} every {self.interval}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the polling thread and unsubscribe from the store.

        If the thread does not finish within ``timeout`` it stays tracked, so
        a later start() reuses it instead of launching a second poller.
        """
        with self._lock:
            listener, self._listener = self._listener, None
            self._stopping.set()
            self._wake.set()
            thread = self._thread
        if listener is not None:
            self.gate.store.unsubscribe(listener)

        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"Quota sync thread for {self.user} did not stop within {timeout}s")
                return
            with self._lock:
                if self._thread is thread:
                    self._thread = None
        logger.info(f"Stopped quota sync for {self.user}")

    def _run(self) -> None:
        while True:
            with self._lock:
                if self._stopping.is_set():
                    if self._thread is threading.current_thread():
                        self._thread = None
                    return
            self._wake.clear()
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Quota sync tick failed for {self.user}: {e}", exc_info=True)

            self._wake.wait(self.interval)

    def __enter__(self) -> "SyncObserver":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
