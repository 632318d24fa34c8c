from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from pos_session.application.ports.clock_port import Clock, SystemClock
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.domain.entities.session import Session, SessionMetadata
from pos_session.domain.errors import ExpiredSession, SessionNotFound


class InMemorySessionStore(SessionStorePort):
    """Simple in-memory store for development and tests. Not persistent.

    Rows are kept as history; updates by id are serialized with a lock.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._rows: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or SystemClock()

    async def create_session(
        self,
        user_id: str,
        role: str,
        *,
        lifetime: timedelta,
        metadata: SessionMetadata | None = None,
    ) -> Session:
        session = Session.open(
            user_id, role, now=self._clock.now(), lifetime=lifetime, metadata=metadata
        )
        async with self._lock:
            self._rows[session.id] = session
        return session

    async def fetch_latest_valid_session(self, user_id: str, now: datetime) -> Session | None:
        candidates = [
            row
            for row in self._rows.values()
            if row.user_id == user_id and row.is_valid and row.expires_at > now
        ]
        return max(candidates, key=lambda r: (r.created_at, r.expires_at), default=None)

    async def extend_session(self, session_id: str, *, lifetime: timedelta) -> Session:
        async with self._lock:
            row = self._get(session_id)
            now = self._clock.now()
            if not row.is_valid:
                raise ExpiredSession(f"session {session_id} was invalidated")
            if row.expires_at <= now:
                raise ExpiredSession(f"session {session_id} expired at {row.expires_at.isoformat()}")
            extended = row.extended(now=now, lifetime=lifetime)
            self._rows[session_id] = extended
        return extended

    async def invalidate_session(self, session_id: str) -> None:
        async with self._lock:
            row = self._get(session_id)
            self._rows[session_id] = row.invalidated(now=self._clock.now())

    def get(self, session_id: str) -> Session | None:
        return self._rows.get(session_id)

    def rows(self, user_id: str | None = None) -> list[Session]:
        return [r for r in self._rows.values() if user_id is None or r.user_id == user_id]

    def put(self, session: Session) -> None:
        """Seed or overwrite a row directly (fixtures, imports)."""
        self._rows[session.id] = session

    def _get(self, session_id: str) -> Session:
        row = self._rows.get(session_id)
        if row is None:
            raise SessionNotFound(session_id)
        return row
