from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from pos_session.domain.policies.extension_policy import (
    DEFAULT_EXTENSION_ROLES,
    DEFAULT_RESTRICTED_ROLES,
)


@dataclass(frozen=True)
class SessionTiming:
    """Timing and routing knobs of the coordinator. Durations in seconds."""

    lifetime_seconds: float = 15 * 60
    poll_interval_seconds: float = 5 * 60
    near_expiry_seconds: float = 60
    prompt_grace_seconds: float = 60
    logout_message_seconds: float = 5
    activity_debounce_seconds: float = 30
    login_route: str = "/auth/login"
    auth_route_prefix: str = "/auth"
    extension_roles: tuple[str, ...] = DEFAULT_EXTENSION_ROLES
    restricted_roles: tuple[str, ...] = DEFAULT_RESTRICTED_ROLES

    @property
    def lifetime(self) -> timedelta:
        return timedelta(seconds=self.lifetime_seconds)

    @property
    def near_expiry(self) -> timedelta:
        return timedelta(seconds=self.near_expiry_seconds)

    @property
    def expired_login_route(self) -> str:
        return f"{self.login_route}?error=session_expired"

    def validate(self) -> "SessionTiming":
        for name in (
            "lifetime_seconds",
            "poll_interval_seconds",
            "near_expiry_seconds",
            "prompt_grace_seconds",
            "logout_message_seconds",
            "activity_debounce_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} debe ser mayor a 0")
        if self.near_expiry_seconds >= self.lifetime_seconds:
            raise ValueError("near_expiry_seconds debe ser menor que lifetime_seconds")
        if not self.login_route.startswith("/"):
            raise ValueError("login_route debe comenzar con '/'")
        return self
