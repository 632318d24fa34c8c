from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

from pos_session.application.ports.clock_port import Clock, SystemClock
from pos_session.application.ports.session_store_port import SessionStorePort
from pos_session.domain.entities.session import Session, SessionMetadata
from pos_session.domain.errors import ExpiredSession, SessionNotFound, StoreUnavailable
from pos_session.domain.value_objects.role import Role
from pos_session.domain.value_objects.session_id import SessionId

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
  id TEXT PRIMARY KEY,
  user_id TEXT NOT NULL,
  role TEXT NOT NULL DEFAULT '',
  expires_at TEXT NOT NULL,
  is_valid INTEGER NOT NULL DEFAULT 1,
  extension_count INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  last_activity TEXT NOT NULL,
  ip_address TEXT NOT NULL DEFAULT 'unknown',
  user_agent TEXT
);
CREATE INDEX IF NOT EXISTS idx_sessions_user_created ON sessions (user_id, created_at);
"""

COLUMNS = (
    "id, user_id, role, expires_at, is_valid, extension_count, "
    "created_at, last_activity, ip_address, user_agent"
)


def _to_iso(value: datetime) -> str:
    # fixed width so that TEXT comparison in SQL matches time order
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SQLiteSessionStore(SessionStorePort):
    """SQLite-backed session store. Persists session rows across restarts.

    File path configurable (":memory:" for tests); creates schema on first use.
    Every update is a single UPDATE ... WHERE id=? statement.
    """

    def __init__(self, db_path: str = ".pos_sessions.sqlite", clock: Clock | None = None) -> None:
        self._path = db_path if db_path == ":memory:" else str(Path(db_path))
        self._clock = clock or SystemClock()
        try:
            self._conn = sqlite3.connect(self._path)
            if self._path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable("open", str(e)) from e

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
        try:
            self._conn.execute(
                f"INSERT INTO sessions ({COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.user_id,
                    str(session.role),
                    _to_iso(session.expires_at),
                    1,
                    0,
                    _to_iso(session.created_at),
                    _to_iso(session.last_activity),
                    session.ip_address,
                    session.user_agent,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable("create", str(e)) from e
        return session

    async def fetch_latest_valid_session(self, user_id: str, now: datetime) -> Session | None:
        try:
            cur = self._conn.execute(
                f"SELECT {COLUMNS} FROM sessions "
                "WHERE user_id=? AND is_valid=1 AND expires_at > ? "
                "ORDER BY created_at DESC, expires_at DESC LIMIT 1",
                (user_id, _to_iso(now)),
            )
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailable("fetch", str(e)) from e
        return self._row_to_session(row) if row else None

    async def extend_session(self, session_id: str, *, lifetime: timedelta) -> Session:
        now = self._clock.now()
        try:
            cur = self._conn.execute(
                "UPDATE sessions SET expires_at=?, last_activity=?, "
                "extension_count=extension_count+1 WHERE id=? AND is_valid=1 AND expires_at > ?",
                (_to_iso(now + lifetime), _to_iso(now), session_id, _to_iso(now)),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable("extend", str(e)) from e
        if cur.rowcount == 0:
            if self.get(session_id) is None:
                raise SessionNotFound(session_id)
            raise ExpiredSession(f"session {session_id} expired or was invalidated")
        extended = self.get(session_id)
        if extended is None:
            raise SessionNotFound(session_id)
        return extended

    async def invalidate_session(self, session_id: str) -> None:
        now_iso = _to_iso(self._clock.now())
        try:
            cur = self._conn.execute(
                "UPDATE sessions SET is_valid=0, expires_at=MIN(expires_at, ?) WHERE id=?",
                (now_iso, session_id),
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable("invalidate", str(e)) from e
        if cur.rowcount == 0:
            raise SessionNotFound(session_id)

    def get(self, session_id: str) -> Session | None:
        try:
            cur = self._conn.execute(f"SELECT {COLUMNS} FROM sessions WHERE id=?", (session_id,))
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailable("get", str(e)) from e
        return self._row_to_session(row) if row else None

    def history(self, user_id: str) -> list[Session]:
        try:
            cur = self._conn.execute(
                f"SELECT {COLUMNS} FROM sessions WHERE user_id=? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = cur.fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable("history", str(e)) from e
        return [self._row_to_session(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_session(row: tuple) -> Session:
        (sid, user_id, role, expires, valid, count, created, activity, ip, agent) = row
        return Session(
            id=SessionId(sid),
            user_id=user_id,
            role=Role(role),
            expires_at=_from_iso(expires),
            created_at=_from_iso(created),
            last_activity=_from_iso(activity),
            is_valid=bool(valid),
            extension_count=int(count),
            ip_address=ip,
            user_agent=agent,
        )
