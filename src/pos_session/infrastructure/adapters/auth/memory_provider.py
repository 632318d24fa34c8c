from __future__ import annotations

from pos_session.application.ports.auth_provider_port import AuthProviderPort
from pos_session.domain.entities.identity import Credential


class InMemoryAuthProvider(AuthProviderPort):
    """Holds the credential in process. For development, the CLI and tests."""

    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential
        self.sign_out_calls = 0

    def attach_credential(self, credential: Credential) -> None:
        self._credential = credential

    def sign_in(self, user_id: str, access_token: str | None = None) -> Credential:
        self._credential = Credential(user_id=user_id, access_token=access_token)
        return self._credential

    async def get_current_credential(self) -> Credential | None:
        return self._credential

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        self._credential = None
