"""Remote hub REST API client.

Uses httpx for async HTTP. TLS certificate verification is off by default:
remote hubs on a local network usually serve self-signed certificates, and
the bridge accepts them. This is a deliberate trust relaxation, not an
oversight; pass ``verify_tls=True`` for hubs with a valid certificate.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class RemoteClientError(Exception):
    """Base error for remote hub client failures."""


class RemoteConnectionError(RemoteClientError):
    """Raised when the remote hub is network-unreachable."""


class RemoteAuthError(RemoteClientError):
    """Raised when the remote hub rejects the credentials (401 or 403)."""


class RemoteHubClient:
    """Thin async wrapper around the remote hub REST API.

    A single :class:`httpx.AsyncClient` is reused across calls. Call
    :meth:`aclose` (or use as an async context manager) when done.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        verify_tls: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: str | None = None
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=self.timeout,
            verify=verify_tls,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client and free resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteHubClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Authenticate (POST /login) and keep the returned token.

        Returns the login response, which carries ``token`` and
        ``serverVersion``.
        """
        result = await self._post("/login", {"username": username, "password": password})
        if not isinstance(result, dict) or not result.get("token"):
            raise RemoteAuthError("Remote hub login returned no token")
        self.token = result["token"]
        return result

    async def get_system_state(self) -> dict[str, dict]:
        """Return the system state snapshot (GET /api/state)."""
        result = await self._get("/api/state")
        return result if isinstance(result, dict) else {}

    async def call_method(self, device_id: str, method: str, args: list[Any]) -> Any:
        """Invoke *method* on a remote device (POST /api/devices/{id}/{method})."""
        result = await self._post(f"/api/devices/{device_id}/{method}", {"args": args})
        return result.get("result") if isinstance(result, dict) else result

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def _post(self, path: str, data: dict) -> Any:
        return await self._request("POST", path, json=data)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except (httpx.TransportError, httpx.InvalidURL) as exc:
            raise RemoteConnectionError(f"Cannot reach remote hub at {url}: {exc}") from exc
        return self._decode(response)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code in (401, 403):
            raise RemoteAuthError(
                f"Remote hub returned {response.status_code}, check username and password"
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteClientError(str(exc)) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteClientError(
                f"{response.url} did not answer with JSON, is this the remote hub's API URL?"
            ) from exc
