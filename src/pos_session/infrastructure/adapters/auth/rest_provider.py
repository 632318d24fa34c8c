from __future__ import annotations

from pos_session.application.ports.auth_provider_port import AuthProviderPort
from pos_session.application.ports.http_client_port import AsyncHttpClientPort
from pos_session.domain.entities.identity import Credential
from pos_session.domain.errors import AuthUnavailable
from pos_session.infrastructure.adapters.http.httpx_client import HttpTemporaryError
from pos_session.infrastructure.logging.logger import get_logger, log_event

logger = get_logger(__name__)

USER_PATH = "/auth/v1/user"
LOGOUT_PATH = "/auth/v1/logout"


class RestAuthProvider(AuthProviderPort):
    """Revalidates the access token against the hosted auth service (GoTrue dialect).

    The token is handed over by the login flow through attach_credential();
    it is sent as bearer on the shared HTTP client so row operations run as
    the signed-in user.
    """

    def __init__(self, http: AsyncHttpClientPort) -> None:
        self.http = http
        self._token: str | None = None

    def attach_credential(self, credential: Credential) -> None:
        self._token = credential.access_token
        self.http.set_bearer(self._token)

    async def get_current_credential(self) -> Credential | None:
        if not self._token:
            return None
        try:
            resp = await self.http.request("GET", USER_PATH)
        except HttpTemporaryError as e:
            raise AuthUnavailable(str(e)) from e
        if resp.status_code in (401, 403):
            self._log("token_rejected", status=resp.status_code)
            return None
        if not resp.ok:
            raise AuthUnavailable(f"GET {USER_PATH} -> {resp.status_code}")
        try:
            user_id = resp.json().get("id")
        except ValueError as e:
            raise AuthUnavailable("invalid JSON from auth service") from e
        if not user_id:
            return None
        return Credential(user_id=user_id, access_token=self._token)

    async def sign_out(self) -> None:
        token, self._token = self._token, None
        self.http.set_bearer(None)
        if not token:
            return
        try:
            resp = await self.http.request(
                "POST", LOGOUT_PATH, headers={"Authorization": f"Bearer {token}"}
            )
        except HttpTemporaryError as e:
            raise AuthUnavailable(str(e)) from e
        if not resp.ok and resp.status_code not in (401, 403):
            raise AuthUnavailable(f"POST {LOGOUT_PATH} -> {resp.status_code}")

    def _log(self, event: str, **fields: object) -> None:
        log_event(logger, "RestAuthProvider", event, **fields)
