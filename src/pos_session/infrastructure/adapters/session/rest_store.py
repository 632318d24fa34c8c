from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from pos_session.application.ports.clock_port import Clock, SystemClock
from pos_session.application.ports.http_client_port import AsyncHttpClientPort, HttpResponse
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.domain.entities.session import Session, SessionMetadata
from pos_session.domain.errors import ExpiredSession, SessionNotFound, StoreUnavailable
from pos_session.domain.value_objects.role import Role
from pos_session.domain.value_objects.session_id import SessionId
from pos_session.infrastructure.adapters.http.httpx_client import HttpTemporaryError

TABLE_PATH = "/rest/v1/sessions"
EXTEND_RPC_PATH = "/rest/v1/rpc/extend_session"
RETURN_ROWS = {"Prefer": "return=representation"}


def _iso(value: datetime) -> str:
    return value.astimezone(UTC).isoformat()


def _parse(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class RestSessionStore(SessionStorePort):
    """Session rows kept in the hosted backend's `sessions` table (PostgREST dialect).

    Expiry extension goes through the `extend_session` RPC so that the
    increment of extension_count happens server-side in one statement.
    """

    def __init__(self, http: AsyncHttpClientPort, clock: Clock | None = None) -> None:
        self.http = http
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
        resp = await self._call(
            "create", "POST", TABLE_PATH, json_body=self._to_row(session), headers=RETURN_ROWS
        )
        rows = self._rows(resp, "create")
        return self._from_row(rows[0]) if rows else session

    async def fetch_latest_valid_session(self, user_id: str, now: datetime) -> Session | None:
        params = {
            "select": "*",
            "user_id": f"eq.{user_id}",
            "is_valid": "eq.true",
            "expires_at": f"gt.{_iso(now)}",
            "order": "created_at.desc",
            "limit": "1",
        }
        resp = await self._call("fetch", "GET", TABLE_PATH, params=params)
        rows = self._rows(resp, "fetch")
        return self._from_row(rows[0]) if rows else None

    async def extend_session(self, session_id: str, *, lifetime: timedelta) -> Session:
        body = {"p_session_id": session_id, "p_lifetime_seconds": int(lifetime.total_seconds())}
        resp = await self._call("extend", "POST", EXTEND_RPC_PATH, json_body=body)
        data = resp.json() if resp.text else None
        rows = data if isinstance(data, list) else [data] if data else []
        if not rows:
            raise SessionNotFound(session_id)
        extended = self._from_row(rows[0])
        if not extended.is_valid:
            raise ExpiredSession(f"session {session_id} was invalidated")
        return extended

    async def invalidate_session(self, session_id: str) -> None:
        body = {"is_valid": False, "last_activity": _iso(self._clock.now())}
        resp = await self._call(
            "invalidate",
            "PATCH",
            TABLE_PATH,
            params={"id": f"eq.{session_id}"},
            json_body=body,
            headers=RETURN_ROWS,
        )
        if not self._rows(resp, "invalidate"):
            raise SessionNotFound(session_id)

    # ---------- helpers ----------
    async def _call(self, operation: str, method: str, path: str, **kwargs: Any) -> HttpResponse:
        try:
            resp = await self.http.request(method, path, **kwargs)
        except HttpTemporaryError as e:
            raise StoreUnavailable(operation, str(e)) from e
        if not resp.ok:
            raise StoreUnavailable(operation, f"HTTP {resp.status_code}")
        return resp

    @staticmethod
    def _rows(resp: HttpResponse, operation: str) -> list[dict[str, Any]]:
        if not resp.text:
            return []
        try:
            data = resp.json()
        except ValueError as e:
            raise StoreUnavailable(operation, "invalid JSON") from e
        return data if isinstance(data, list) else [data]

    @staticmethod
    def _to_row(session: Session) -> dict[str, Any]:
        return {
            "id": session.id,
            "user_id": session.user_id,
            "role": str(session.role),
            "expires_at": _iso(session.expires_at),
            "is_valid": session.is_valid,
            "extension_count": session.extension_count,
            "created_at": _iso(session.created_at),
            "last_activity": _iso(session.last_activity),
            "ip_address": session.ip_address,
            "user_agent": session.user_agent,
        }

    @staticmethod
    def _from_row(row: dict[str, Any]) -> Session:
        created = _parse(row["created_at"]) if row.get("created_at") else _parse(row["expires_at"])
        return Session(
            id=SessionId(row["id"]),
            user_id=row["user_id"],
            role=Role(row.get("role")),
            expires_at=_parse(row["expires_at"]),
            created_at=created,
            last_activity=_parse(row["last_activity"]) if row.get("last_activity") else created,
            is_valid=bool(row.get("is_valid", True)),
            extension_count=int(row.get("extension_count") or 0),
            ip_address=row.get("ip_address") or "unknown",
            user_agent=row.get("user_agent"),
        )
