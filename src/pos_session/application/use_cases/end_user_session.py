from __future__ import annotations

import logging
from dataclasses import dataclass

from pos_session.application.ports.auth_provider_port import AuthProviderPort
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.domain.entities.session import Session
from pos_session.domain.errors import AuthUnavailable, StoreUnavailable
from pos_session.infrastructure import metrics
from pos_session.infrastructure.logging.logger import get_logger, log_event

logger = get_logger(__name__)


@dataclass(frozen=True)
class EndSessionResult:
    signed_out: bool
    invalidated: bool


class EndUserSessionUseCase:
    """Signs out and invalidates the bound row. Best effort: each step runs even if the other fails."""

    def __init__(self, store: SessionStorePort, auth: AuthProviderPort) -> None:
        self.store = store
        self.auth = auth

    async def execute(self, session: Session | None, *, sign_out: bool = True) -> EndSessionResult:
        signed_out = False
        if sign_out:
            try:
                await self.auth.sign_out()
                signed_out = True
            except AuthUnavailable as e:
                self._log("sign_out_failed", error=str(e))
        invalidated = False
        if session is not None:
            try:
                await self.store.invalidate_session(session.id)
                invalidated = True
            except StoreUnavailable as e:
                metrics.store_errors.labels(operation="invalidate").inc()
                self._log("invalidate_failed", session_id=session.id, error=str(e))
        return EndSessionResult(signed_out=signed_out, invalidated=invalidated)

    def _log(self, event: str, **fields: object) -> None:
        log_event(logger, "EndUserSessionUseCase", event, level=logging.WARNING, **fields)
