from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from pos_session.application.dtos.session_timing_dto import SessionTiming
from pos_session.domain.policies.extension_policy import (
    DEFAULT_EXTENSION_ROLES,
    DEFAULT_RESTRICTED_ROLES,
)

# Load .env if present
load_dotenv()

STORE_BACKENDS = ("memory", "sqlite", "rest")


def _roles(raw: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if raw is None:
        return default
    return tuple(r.strip().lower() for r in raw.split(",") if r.strip())


@dataclass(frozen=True)
class Settings:
    session_lifetime_minutes: float = 15
    poll_interval_seconds: float = 300
    near_expiry_seconds: float = 60
    prompt_grace_seconds: float = 60
    logout_message_seconds: float = 5
    activity_debounce_seconds: float = 30
    login_route: str = "/auth/login"
    auth_route_prefix: str = "/auth"
    restricted_roles: tuple[str, ...] = DEFAULT_RESTRICTED_ROLES
    extension_roles: tuple[str, ...] = DEFAULT_EXTENSION_ROLES
    store_backend: str = "memory"
    sqlite_path: str = ".pos_sessions.sqlite"
    backend_url: str = ""
    backend_api_key: str = ""
    http_timeout: float = 15.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.getenv
        return cls(
            session_lifetime_minutes=float(env("SESSION_LIFETIME_MINUTES", "15")),
            poll_interval_seconds=float(env("SESSION_POLL_INTERVAL_SECONDS", "300")),
            near_expiry_seconds=float(env("SESSION_NEAR_EXPIRY_SECONDS", "60")),
            prompt_grace_seconds=float(env("SESSION_PROMPT_GRACE_SECONDS", "60")),
            logout_message_seconds=float(env("SESSION_LOGOUT_MESSAGE_SECONDS", "5")),
            activity_debounce_seconds=float(env("SESSION_ACTIVITY_DEBOUNCE_SECONDS", "30")),
            login_route=env("SESSION_LOGIN_ROUTE", "/auth/login"),
            auth_route_prefix=env("SESSION_AUTH_ROUTE_PREFIX", "/auth"),
            restricted_roles=_roles(env("SESSION_RESTRICTED_ROLES"), DEFAULT_RESTRICTED_ROLES),
            extension_roles=_roles(env("SESSION_EXTENSION_ROLES"), DEFAULT_EXTENSION_ROLES),
            store_backend=env("SESSION_STORE_BACKEND", "memory").strip().lower(),
            sqlite_path=env("SESSION_SQLITE_PATH", ".pos_sessions.sqlite"),
            backend_url=env("BACKEND_URL", ""),
            backend_api_key=env("BACKEND_API_KEY", ""),
            http_timeout=float(env("HTTP_TIMEOUT", "15")),
            log_level=env("LOG_LEVEL", "INFO").upper(),
        )

    def timing(self) -> SessionTiming:
        """Coordinator timing built from these settings (validated)."""
        return SessionTiming(
            lifetime_seconds=self.session_lifetime_minutes * 60,
            poll_interval_seconds=self.poll_interval_seconds,
            near_expiry_seconds=self.near_expiry_seconds,
            prompt_grace_seconds=self.prompt_grace_seconds,
            logout_message_seconds=self.logout_message_seconds,
            activity_debounce_seconds=self.activity_debounce_seconds,
            login_route=self.login_route,
            auth_route_prefix=self.auth_route_prefix,
            extension_roles=self.extension_roles,
            restricted_roles=self.restricted_roles,
        ).validate()


settings = Settings.from_env()
