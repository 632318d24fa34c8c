from __future__ import annotations

from typing import Protocol

from pos_session.domain.entities.identity import Credential


class AuthProviderPort(Protocol):
    """Authentication layer as seen by the session coordinator."""

    async def get_current_credential(self) -> Credential | None:
        """Returns the signed-in credential or None. Raises AuthUnavailable on failure."""
        ...

    async def sign_out(self) -> None: ...

    def attach_credential(self, credential: Credential) -> None:
        """Hand over the credential obtained by the login flow."""
        ...
