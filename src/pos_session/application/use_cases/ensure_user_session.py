from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta

from pos_session.application.ports.clock_port import Clock, SystemClock
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.domain.entities.identity import Identity
from pos_session.domain.entities.session import Session, SessionMetadata
from pos_session.domain.errors import StoreUnavailable
from pos_session.infrastructure import metrics
from pos_session.infrastructure.logging.logger import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnsureSessionResult:
    # "ALREADY_ACTIVE" | "CREATED" | "NOT_FOUND" | "UNAVAILABLE" | "ERROR"
    status: str
    session: Session | None
    message: str


class EnsureUserSessionUseCase:
    """Returns the user's authoritative session row, creating one if none is valid.

    Fetch-then-create runs under a lock so overlapping callers never insert
    two rows for the same user. With ``create=False`` the use case only
    revalidates: NOT_FOUND means the store holds no valid row, UNAVAILABLE
    means the store could not be read.
    """

    def __init__(
        self,
        store: SessionStorePort,
        *,
        lifetime: timedelta = timedelta(minutes=15),
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.lifetime = lifetime
        self.clock = clock or SystemClock()
        self._lock = asyncio.Lock()

    async def execute(
        self,
        identity: Identity,
        metadata: SessionMetadata | None = None,
        *,
        create: bool = True,
    ) -> EnsureSessionResult:
        async with self._lock:
            try:
                existing = await self.store.fetch_latest_valid_session(
                    identity.user_id, self.clock.now()
                )
            except StoreUnavailable as e:
                metrics.store_errors.labels(operation="fetch").inc()
                self._log("fetch_failed", user_id=identity.user_id, error=str(e))
                if not create:
                    return EnsureSessionResult("UNAVAILABLE", None, "Session store unavailable")
                # a failed read counts as "no session"
                existing = None
            if existing is not None:
                return EnsureSessionResult("ALREADY_ACTIVE", existing, "Valid session from store")
            if not create:
                return EnsureSessionResult("NOT_FOUND", None, "No valid session in store")
            try:
                created = await self.store.create_session(
                    identity.user_id,
                    identity.role,
                    lifetime=self.lifetime,
                    metadata=metadata,
                )
            except StoreUnavailable as e:
                metrics.store_errors.labels(operation="create").inc()
                self._log("create_failed", user_id=identity.user_id, error=str(e))
                return EnsureSessionResult("ERROR", None, f"Session creation failed: {e}")
        metrics.sessions_created.inc()
        self._log(
            "session_created",
            user_id=identity.user_id,
            session_id=created.id,
            expires_at=created.expires_at.isoformat(),
        )
        return EnsureSessionResult("CREATED", created, "New session created")

    def _log(self, event: str, **fields: object) -> None:
        log_event(logger, "EnsureUserSessionUseCase", event, **fields)
