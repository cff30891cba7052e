from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx

from access_plane.core.errors import SessionUnavailableError
from access_plane.services.identity_client import SessionCredentials


@dataclass(frozen=True, slots=True)
class AdminHealthStatus:
    status_code: int
    needs_setup: bool = False

    @property
    def is_authorized(self) -> bool:
        return 200 <= self.status_code < 300


class AdminHealthClient(Protocol):
    async def check(self, credentials: SessionCredentials) -> AdminHealthStatus: ...


class HttpAdminHealthClient:
    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    async def check(self, credentials: SessionCredentials) -> AdminHealthStatus:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(self._url, headers=credentials.as_headers())
        except httpx.HTTPError as exc:
            raise SessionUnavailableError(f"admin health request failed: {type(exc).__name__}") from exc

        if not 200 <= response.status_code < 300:
            return AdminHealthStatus(status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise SessionUnavailableError("admin health payload is not JSON") from exc
        if not isinstance(payload, dict):
            raise SessionUnavailableError("admin health payload is not an object")

        needs_setup = payload.get("needs_setup", False)
        if not isinstance(needs_setup, bool):
            raise SessionUnavailableError("admin health needs_setup is not a boolean")
        return AdminHealthStatus(status_code=response.status_code, needs_setup=needs_setup)
