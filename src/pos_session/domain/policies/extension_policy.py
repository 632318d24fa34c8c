from __future__ import annotations

from collections.abc import Iterable

from pos_session.domain.value_objects.role import Role

DEFAULT_EXTENSION_ROLES = ("super_admin", "superadmin", "admin", "manager", "normal", "user")
DEFAULT_RESTRICTED_ROLES = ("demo",)

RESTRICTED_MESSAGE = "Los usuarios demo no pueden extender la sesión."
UNKNOWN_ROLE_MESSAGE = "Tu rol no permite extender la sesión. Vuelve a iniciar sesión."


class ExtensionPolicy:
    """Decides which roles may renew their own session.

    Fail-closed: a role that is neither explicitly eligible nor restricted
    (including a missing role) cannot self-extend.
    """

    def __init__(
        self,
        eligible: Iterable[str] = DEFAULT_EXTENSION_ROLES,
        restricted: Iterable[str] = DEFAULT_RESTRICTED_ROLES,
    ) -> None:
        self.restricted = frozenset(Role(r) for r in restricted)
        self.eligible = frozenset(Role(r) for r in eligible) - self.restricted

    def can_self_extend(self, role: str | None) -> bool:
        return Role(role) in self.eligible

    def advisory_for(self, role: str | None) -> str:
        if Role(role) in self.restricted:
            return RESTRICTED_MESSAGE
        return UNKNOWN_ROLE_MESSAGE
