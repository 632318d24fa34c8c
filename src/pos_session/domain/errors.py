class SessionError(Exception):
    """Base error for the session lifecycle subsystem."""


class IdentityMismatch(SessionError):
    """Credential absent or owned by a different user than the bound identity."""


class StoreUnavailable(SessionError):
    """The session store could not complete an operation."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation}: {detail}" if detail else operation)


class SessionNotFound(StoreUnavailable):
    def __init__(self, session_id: str) -> None:
        super().__init__("lookup", f"session {session_id} not found")
        self.session_id = session_id


class ExpiredSession(SessionError):
    """Session past its expiry or explicitly invalidated."""


class RoleRestricted(SessionError):
    """The role may not extend its own session."""

    def __init__(self, role: str) -> None:
        super().__init__(f"role {role or '<unknown>'} cannot self-extend")
        self.role = role


class AuthUnavailable(SessionError):
    """The authentication backend could not be reached."""
