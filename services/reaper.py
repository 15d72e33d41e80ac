"""Idle session expiry."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from config.settings import IDLE_SESSION_TIMEOUT, REAPER_INTERVAL
from services.scheduler import ReminderScheduler
from services.session_service import SessionStore

logger = logging.getLogger(__name__)


class IdleReaper:
    """Destroys sessions idle for longer than ``threshold``.

    A session idle for exactly ``threshold`` survives the sweep.
    """

    def __init__(self, sessions: SessionStore, reminders: ReminderScheduler,
                 threshold: timedelta = IDLE_SESSION_TIMEOUT,
                 interval: timedelta = REAPER_INTERVAL):
        self.sessions = sessions
        self.reminders = reminders
        self.threshold = threshold
        self.interval = interval
        self.last_sweep: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        return self.last_sweep is None or now - self.last_sweep >= self.interval

    def sweep(self, now: datetime) -> List[str]:
        """Expire idle sessions. Returns the identities that were cleared."""
        self.last_sweep = now
        expired = []
        for identity in self.sessions.identities():
            with self.sessions.lock(identity):
                session = self.sessions.get(identity)
                if session is None or now - session.last_activity <= self.threshold:
                    continue
                self.sessions.delete(identity)
                self.reminders.cancel(identity)
                expired.append(identity)

        if expired:
            logger.info(f"Idle sweep cleared {len(expired)} session(s)")
        return expired
