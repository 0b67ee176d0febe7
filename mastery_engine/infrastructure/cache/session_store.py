# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Live session stores.

Live sessions are short-lived: each stored session carries a time to
live and silently disappears once it expires.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from mastery_engine.core.exceptions import SessionNotFound
from mastery_engine.core.orchestration.session import SessionState
from mastery_engine.utils.datetime import Clock, SystemClock

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Keyed storage of live session state with expiry."""

    @abstractmethod
    def get(self, session_id: str) -> SessionState | None:
        """Load a session, or None if missing or expired."""
        ...

    @abstractmethod
    def put(self, session: SessionState, ttl_seconds: int) -> None:
        """Store a session, replacing any previous state and resetting its TTL."""
        ...

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session.

        Returns:
            True if a session was removed.
        """
        ...

    def require(self, session_id: str) -> SessionState:
        """Load a session that must exist.

        Raises:
            SessionNotFound: If the session is missing or expired.
        """
        session = self.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session


class InMemorySessionStore(SessionStore):
    """Dictionary-backed session store with clock-driven expiry."""

    def __init__(self, clock: Clock | None = None) -> None:
        """Initialize the store.

        Args:
            clock: Time source used for expiry (system clock if omitted).
        """
        self.clock = clock or SystemClock()
        self._sessions: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> SessionState | None:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            payload, expires_at = entry
            if self.clock.now() >= expires_at:
                del self._sessions[session_id]
                logger.debug("Session %s expired", session_id)
                return None
        return SessionState.model_validate_json(payload)

    def put(self, session: SessionState, ttl_seconds: int) -> None:
        expires_at = self.clock.now() + timedelta(seconds=ttl_seconds)
        payload = session.model_dump_json()
        with self._lock:
            self._sessions[session.session_id] = (payload, expires_at)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None
