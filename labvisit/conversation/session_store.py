"""
In-memory arena of live conversation sessions, keyed by session ID.

Sessions are created on the first turn and removed on a terminal step or
idle expiry. Nothing here touches the datastore: no appointment row exists
until a booking is confirmed.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Optional, Union

from labvisit.exceptions import NotFound
from labvisit.schemas.conversation_schema import BookingSession, CancellationSession
from labvisit.utils import KeyedLock

logger = logging.getLogger(__name__)

Session = Union[BookingSession, CancellationSession]


class SessionStore:
    """Thread-safe session arena with per-session turn locks."""

    def __init__(self, idle_timeout_seconds: int = 120) -> None:
        self._sessions: dict[str, Session] = {}
        self._guard = threading.Lock()
        self._turn_locks = KeyedLock()
        self._idle_timeout = timedelta(seconds=idle_timeout_seconds)

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def new_booking(self, customer_id: str, now: datetime) -> BookingSession:
        session = BookingSession(
            session_id=str(uuid.uuid4()),
            customer_id=customer_id,
            created_at=now,
            last_activity=now,
        )
        self._add(session)
        return session

    def new_cancellation(
        self, customer_id: str, appointment_id: Optional[str], now: datetime
    ) -> CancellationSession:
        session = CancellationSession(
            session_id=str(uuid.uuid4()),
            customer_id=customer_id,
            appointment_id=appointment_id,
            created_at=now,
            last_activity=now,
        )
        self._add(session)
        return session

    def _add(self, session: Session) -> None:
        with self._guard:
            self._sessions[session.session_id] = session
        logger.debug("Session opened: %s (%s)", session.session_id, type(session).__name__)

    def get(self, session_id: str) -> Session:
        with self._guard:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFound("Session", session_id)
        return session

    def turn_lock(self, session_id: str) -> threading.Lock:
        """Lock serializing the turns of one session."""
        return self._turn_locks(session_id)

    def discard(self, session_id: str) -> None:
        with self._guard:
            removed = self._sessions.pop(session_id, None)
        self._turn_locks.discard(session_id)
        if removed is not None:
            logger.debug("Session closed: %s", session_id)

    def expire_idle(self, now: datetime) -> list[str]:
        """Drop sessions idle for longer than the timeout and return their IDs."""
        cutoff = now - self._idle_timeout
        with self._guard:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.last_activity < cutoff
            ]
            for session_id in expired:
                del self._sessions[session_id]
        for session_id in expired:
            self._turn_locks.discard(session_id)
        if expired:
            logger.info("Expired %d idle session(s)", len(expired))
        return expired
