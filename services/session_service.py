"""Session Service Module

This module provides:
1. The session store interface the router reads and writes through
2. An in-memory implementation with one lock per identity

Sessions live only in memory; a restart starts every user afresh.
"""
import logging
import threading
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, List, Optional

from models.session import Session

logger = logging.getLogger(__name__)


class SessionStore:
    """get / save / delete over sessions, plus per-identity serialization.

    Callers hold ``lock(identity)`` around any read-modify-write of that
    identity's session.
    """

    def lock(self, identity: str) -> ContextManager[None]:
        raise NotImplementedError

    def get(self, identity: str) -> Optional[Session]:
        raise NotImplementedError

    def save(self, session: Session) -> None:
        raise NotImplementedError

    def delete(self, identity: str) -> bool:
        raise NotImplementedError

    def identities(self) -> List[str]:
        raise NotImplementedError


class _IdentityLock:
    """A reentrant lock plus the number of callers holding or waiting on it."""

    def __init__(self):
        self.mutex = threading.RLock()
        self.holders = 0


class InMemorySessionService(SessionStore):
    """
    Dict-backed session store.

    Features:
    - Get/Save/Delete sessions
    - Lazy eviction: saving an empty session removes it
    - A reentrant lock per identity; different identities never contend
    - Lock entries exist only while someone holds or waits on them
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, _IdentityLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lock(self, identity: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(identity)
            if entry is None:
                entry = self._locks[identity] = _IdentityLock()
            entry.holders += 1

        try:
            with entry.mutex:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[identity]

    def lock_count(self) -> int:
        """Identities with a live lock entry."""
        with self._guard:
            return len(self._locks)

    def get(self, identity: str) -> Optional[Session]:
        with self._guard:
            return self._sessions.get(identity)

    def save(self, session: Session) -> None:
        if session.is_empty:
            self.delete(session.identity)
            return
        with self._guard:
            self._sessions[session.identity] = session

    def delete(self, identity: str) -> bool:
        with self._guard:
            removed = self._sessions.pop(identity, None)
        if removed is not None:
            logger.info(f"Session cleared for {identity}")
            return True
        return False

    def identities(self) -> List[str]:
        """Snapshot of the identities currently holding a session."""
        with self._guard:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def __contains__(self, identity: str) -> bool:
        with self._guard:
            return identity in self._sessions
