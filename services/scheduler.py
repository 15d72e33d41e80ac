"""Reminder Scheduling Module

This module provides:
1. ReminderScheduler - at most one pending reminder per identity, kept in a
   heap of (fire time, token, identity) that is polled rather than armed
2. SchedulerLoop - a daemon thread that calls a tick function on a fixed period

Cancelling or replacing a reminder drops its token from the live map; stale
heap entries are discarded when they surface. A due reminder only fires if
``claim`` still finds its token, so a cancel that wins the race always
prevents delivery.
"""
import heapq
import itertools
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Timer registry for deferred reminders."""

    def __init__(self):
        self._queue: List[Tuple[datetime, int, str]] = []
        self._pending: Dict[str, Tuple[int, datetime]] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()

    def schedule(self, identity: str, delay: timedelta, now: datetime) -> int:
        """Replace any pending reminder for ``identity`` with one due at ``now + delay``."""
        fire_at = now + delay
        with self._lock:
            token = next(self._tokens)
            self._pending[identity] = (token, fire_at)
            heapq.heappush(self._queue, (fire_at, token, identity))
        logger.info(f"Reminder scheduled for {identity} at {fire_at.isoformat()}")
        return token

    def cancel(self, identity: str) -> bool:
        """Drop the pending reminder, if any. Safe to call repeatedly."""
        with self._lock:
            cancelled = self._pending.pop(identity, None) is not None
        if cancelled:
            logger.info(f"Reminder cancelled for {identity}")
        return cancelled

    def is_pending(self, identity: str) -> bool:
        with self._lock:
            return identity in self._pending

    def next_fire_time(self) -> Optional[datetime]:
        with self._lock:
            self._discard_stale()
            return self._queue[0][0] if self._queue else None

    def due(self, now: datetime) -> List[Tuple[str, int]]:
        """Pop every live reminder due at or before ``now``.

        Returned reminders are still pending; the caller must ``claim`` each
        one under the identity lock before delivering it.
        """
        ready = []
        with self._lock:
            while self._queue and self._queue[0][0] <= now:
                _, token, identity = heapq.heappop(self._queue)
                live = self._pending.get(identity)
                if live is not None and live[0] == token:
                    ready.append((identity, token))
        return ready

    def claim(self, identity: str, token: int) -> bool:
        """Atomically take ownership of a due reminder."""
        with self._lock:
            live = self._pending.get(identity)
            if live is None or live[0] != token:
                return False
            del self._pending[identity]
            return True

    def _discard_stale(self):
        while self._queue:
            _, token, identity = self._queue[0]
            live = self._pending.get(identity)
            if live is not None and live[0] == token:
                return
            heapq.heappop(self._queue)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


class SchedulerLoop:
    """Background thread calling ``tick(now)`` every ``interval_seconds``."""

    def __init__(self, tick: Callable[[datetime], None], interval_seconds: float,
                 clock: Callable[[], datetime] = datetime.now):
        self._tick = tick
        self._interval = interval_seconds
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="aliya-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Scheduler loop started (every {self._interval:g}s)")

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Scheduler loop stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        while not self._stop.is_set():
            try:
                self._tick(self._clock())
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            self._stop.wait(self._interval)
