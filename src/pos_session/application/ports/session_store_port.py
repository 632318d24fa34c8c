from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from pos_session.domain.entities.session import Session, SessionMetadata


class SessionStorePort(Protocol):
    """Row-oriented persistence for session records.

    Implementations raise StoreUnavailable (or SessionNotFound) on failure.
    """

    async def create_session(
        self,
        user_id: str,
        role: str,
        *,
        lifetime: timedelta,
        metadata: SessionMetadata | None = None,
    ) -> Session:
        """Insert a new valid row expiring `lifetime` from now."""
        ...

    async def fetch_latest_valid_session(self, user_id: str, now: datetime) -> Session | None:
        """Most recent row for the user with is_valid and expires_at > now."""
        ...

    async def extend_session(self, session_id: str, *, lifetime: timedelta) -> Session:
        """
        Atomically push expires_at to now + lifetime and increment
        extension_count. Raises ExpiredSession if the row was invalidated.
        """
        ...

    async def invalidate_session(self, session_id: str) -> None:
        """Set is_valid = false and clamp expires_at to now."""
        ...
