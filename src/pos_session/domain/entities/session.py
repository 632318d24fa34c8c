from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from pos_session.domain.value_objects.role import Role
from pos_session.domain.value_objects.session_id import SessionId


@dataclass(frozen=True)
class SessionMetadata:
    ip_address: str = "unknown"
    user_agent: str | None = None


@dataclass(frozen=True)
class Session:
    """One persisted period of authenticated access.

    Several rows may exist per user; only the newest valid, non-expired one is
    authoritative.
    """

    id: SessionId
    user_id: str
    role: Role
    expires_at: datetime
    created_at: datetime
    last_activity: datetime
    is_valid: bool = True
    extension_count: int = 0
    ip_address: str = "unknown"
    user_agent: str | None = None

    @classmethod
    def open(
        cls,
        user_id: str,
        role: str,
        *,
        now: datetime,
        lifetime: timedelta,
        metadata: SessionMetadata | None = None,
    ) -> "Session":
        meta = metadata or SessionMetadata()
        return cls(
            id=SessionId.new(),
            user_id=user_id,
            role=Role(role),
            expires_at=now + lifetime,
            created_at=now,
            last_activity=now,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

    def extended(self, *, now: datetime, lifetime: timedelta) -> "Session":
        return replace(
            self,
            expires_at=now + lifetime,
            last_activity=now,
            extension_count=self.extension_count + 1,
        )

    def invalidated(self, *, now: datetime) -> "Session":
        return replace(self, is_valid=False, expires_at=min(self.expires_at, now))

    def is_fresher_than(self, other: "Session") -> bool:
        """True when this row carries a later state of the same session."""
        if self.id != other.id:
            return self.created_at >= other.created_at
        return (self.extension_count, self.expires_at) >= (other.extension_count, other.expires_at)
