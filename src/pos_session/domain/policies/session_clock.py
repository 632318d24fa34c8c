from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pos_session.domain.entities.session import Session

DEFAULT_NEAR_EXPIRY = timedelta(minutes=1)


class SessionHealth(str, Enum):
    EXPIRED = "expired"
    NEAR_EXPIRY = "near_expiry"
    HEALTHY = "healthy"


class SessionClock:
    """Pure classification of a session's remaining lifetime."""

    def __init__(self, near_expiry: timedelta = DEFAULT_NEAR_EXPIRY) -> None:
        self.near_expiry = near_expiry

    def classify(self, now: datetime, expires_at: datetime) -> SessionHealth:
        remaining = expires_at - now
        if remaining <= timedelta(0):
            return SessionHealth.EXPIRED
        if remaining <= self.near_expiry:
            return SessionHealth.NEAR_EXPIRY
        return SessionHealth.HEALTHY

    @staticmethod
    def minutes_remaining(now: datetime, expires_at: datetime) -> float:
        return (expires_at - now).total_seconds() / 60.0

    def evaluate(self, session: Session, now: datetime) -> SessionHealth:
        """Like classify, but an invalidated row is always EXPIRED."""
        if not session.is_valid:
            return SessionHealth.EXPIRED
        return self.classify(now, session.expires_at)

    def is_expired(self, session: Session, now: datetime) -> bool:
        return self.evaluate(session, now) is SessionHealth.EXPIRED
