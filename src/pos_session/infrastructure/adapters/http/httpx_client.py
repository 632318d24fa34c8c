from __future__ import annotations

from typing import Any, Mapping

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from pos_session.application.ports.http_client_port import AsyncHttpClientPort, HttpResponse


class HttpTemporaryError(Exception):
    pass


class AsyncHttpxClient(AsyncHttpClientPort):
    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout: float = 15.0,
        attempts: int = 3,
        wait: wait_base | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """HTTP client adapter backed by a persistent httpx.AsyncClient.

        - Sends the backend API key on every request
        - Retries network errors and 5xx responses with exponential jitter
        - Returns 4xx responses to the caller untouched

        Args:
            base_url (str): Root URL of the hosted backend.
            api_key (str, optional): Project API key. Defaults to "".
            timeout (float, optional): Timeout for requests. Defaults to 15.0.
            attempts (int, optional): Total tries per request. Defaults to 3.
            wait (wait_base | None, optional): tenacity wait strategy. Defaults to jittered backoff.
            transport (httpx.AsyncBaseTransport | None, optional): Custom transport (tests).
        """
        headers = {
            "Accept": "application/json",
            "User-Agent": "pos-session/0.1 httpx",
        }
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._api_key = api_key
        self._attempts = attempts
        self._wait = wait or wait_exponential_jitter(initial=1, max=8)
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, headers=headers, transport=transport
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        """Sends a request, retrying temporary failures.

        Args:
            method (str): HTTP verb.
            path (str): Path relative to the base URL.
            params (Mapping[str, str] | None, optional): Query string. Defaults to None.
            json_body (Any | None, optional): JSON payload. Defaults to None.
            headers (Mapping[str, str] | None, optional): Extra headers. Defaults to None.

        Returns:
            HttpResponse: Response from the server.

        Raises:
            HttpTemporaryError: when every attempt failed.
        """
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._attempts),
            wait=self._wait,
            retry=retry_if_exception_type(HttpTemporaryError),
        ):
            with attempt:
                return await self._send(method, path, params=params, json_body=json_body, headers=headers)
        raise HttpTemporaryError(f"{method} {path} -> no attempt made")

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None,
        json_body: Any | None,
        headers: Mapping[str, str] | None,
    ) -> HttpResponse:
        try:
            resp = await self._client.request(
                method, path, params=params, json=json_body, headers=headers
            )
        except httpx.HTTPError as e:
            raise HttpTemporaryError(f"{method} {path}: {e}") from e
        if resp.status_code >= 500:
            raise HttpTemporaryError(f"{method} {path} -> {resp.status_code}")
        return HttpResponse(resp.status_code, resp.text, str(resp.url), resp.headers, raw=resp)

    def set_bearer(self, token: str | None) -> None:
        """Sets the user token sent as Authorization; None restores the API key."""
        bearer = token or self._api_key
        if bearer:
            self._client.headers["Authorization"] = f"Bearer {bearer}"
        else:
            self._client.headers.pop("Authorization", None)

    async def aclose(self) -> None:
        await self._client.aclose()
