from __future__ import annotations

from dataclasses import dataclass, field

from pos_session.domain.value_objects.role import Role


@dataclass(frozen=True)
class Identity:
    """Who the coordinator is bound to; supplied by the authentication layer."""

    user_id: str
    role: Role = field(default_factory=lambda: Role(None))

    def __post_init__(self) -> None:
        assert self.user_id, "Identity requiere user_id"
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))


@dataclass(frozen=True)
class Credential:
    """Identity proof held by the authentication layer."""

    user_id: str
    access_token: str | None = None
