from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.domain.entities.identity import Identity
from pos_session.domain.entities.session import Session
from pos_session.domain.errors import ExpiredSession, RoleRestricted, StoreUnavailable
from pos_session.domain.policies.extension_policy import ExtensionPolicy
from pos_session.infrastructure import metrics
from pos_session.infrastructure.logging.logger import get_logger, log_event

logger = get_logger(__name__)

EXTEND_FAILED_MESSAGE = "No se pudo extender la sesión. Se mantiene la expiración actual."
NO_SESSION_MESSAGE = "No hay una sesión activa para extender."


@dataclass(frozen=True)
class ExtendSessionResult:
    status: str  # "EXTENDED" | "RESTRICTED" | "NO_SESSION" | "EXPIRED" | "ERROR"
    session: Session | None
    message: str | None = None


class ExtendUserSessionUseCase:
    def __init__(
        self,
        store: SessionStorePort,
        policy: ExtensionPolicy,
        *,
        lifetime: timedelta = timedelta(minutes=15),
    ) -> None:
        self.store = store
        self.policy = policy
        self.lifetime = lifetime

    async def execute(self, identity: Identity, session: Session | None) -> ExtendSessionResult:
        if not self.policy.can_self_extend(identity.role):
            self._log("extension_restricted", user_id=identity.user_id, error=str(RoleRestricted(identity.role)))
            return ExtendSessionResult("RESTRICTED", session, self.policy.advisory_for(identity.role))
        if session is None:
            return ExtendSessionResult("NO_SESSION", None, NO_SESSION_MESSAGE)
        try:
            extended = await self.store.extend_session(session.id, lifetime=self.lifetime)
        except ExpiredSession as e:
            self._log("extension_refused", user_id=identity.user_id, session_id=session.id, error=str(e))
            return ExtendSessionResult("EXPIRED", session)
        except StoreUnavailable as e:
            metrics.store_errors.labels(operation="extend").inc()
            self._log("extension_failed", user_id=identity.user_id, session_id=session.id, error=str(e))
            return ExtendSessionResult("ERROR", session, EXTEND_FAILED_MESSAGE)
        metrics.sessions_extended.inc()
        self._log(
            "session_extended",
            user_id=identity.user_id,
            session_id=extended.id,
            expires_at=extended.expires_at.isoformat(),
            extension_count=extended.extension_count,
        )
        return ExtendSessionResult("EXTENDED", extended)

    def _log(self, event: str, **fields: object) -> None:
        log_event(logger, "ExtendUserSessionUseCase", event, **fields)
