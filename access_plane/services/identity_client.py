from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import structlog

from access_plane.core.config import Settings
from access_plane.core.errors import SessionUnavailableError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IdentityUser:
    id: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class SessionCredentials:
    """Caller credentials forwarded verbatim to the identity provider."""

    cookies: dict[str, str] = field(default_factory=dict)
    authorization: str | None = None

    def is_empty(self) -> bool:
        return not self.cookies and not self.authorization

    def as_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.authorization:
            headers["Authorization"] = self.authorization
        if self.cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in self.cookies.items())
        return headers


class IdentityClient(Protocol):
    async def get_current_user(self, credentials: SessionCredentials) -> IdentityUser | None: ...

    async def is_admin(self, user: IdentityUser, credentials: SessionCredentials) -> bool: ...


def parse_session_payload(payload: Any) -> IdentityUser | None:
    if not isinstance(payload, dict) or "user" not in payload:
        raise SessionUnavailableError("session payload has no user field")

    raw_user = payload["user"]
    if raw_user is None:
        return None
    if not isinstance(raw_user, dict):
        raise SessionUnavailableError("session user is not an object")

    raw_id = raw_user.get("id")
    # A session must resolve to exactly one user; anything without an id is absent.
    if raw_id is None or isinstance(raw_id, bool) or str(raw_id).strip() == "":
        return None

    raw_email = raw_user.get("email")
    return IdentityUser(
        id=str(raw_id).strip(),
        email=raw_email if isinstance(raw_email, str) and raw_email else None,
    )


def parse_admin_role_payload(payload: Any) -> bool:
    if isinstance(payload, bool):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("is_admin"), bool):
        return payload["is_admin"]
    raise SessionUnavailableError("admin role payload is not a boolean")


class HttpIdentityClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    async def _get_json(self, path: str, credentials: SessionCredentials) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    f"{self._base_url}{path}",
                    headers=credentials.as_headers(),
                )
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SessionUnavailableError(f"identity provider request failed: {type(exc).__name__}") from exc

    async def get_current_user(self, credentials: SessionCredentials) -> IdentityUser | None:
        payload = await self._get_json("/session", credentials)
        return parse_session_payload(payload)

    async def is_admin(self, user: IdentityUser, credentials: SessionCredentials) -> bool:
        payload = await self._get_json(f"/admin-role/{quote(user.id, safe='')}", credentials)
        return parse_admin_role_payload(payload)


class StaticIdentityClient:
    """Server-configured identity provider for development and test environments."""

    def __init__(self, *, user: IdentityUser | None, is_admin: bool = False) -> None:
        self._user = user
        self._is_admin = is_admin

    async def get_current_user(self, credentials: SessionCredentials) -> IdentityUser | None:
        return self._user

    async def is_admin(self, user: IdentityUser, credentials: SessionCredentials) -> bool:
        return self._user is not None and user.id == self._user.id and self._is_admin


def build_identity_client(settings: Settings) -> IdentityClient:
    if settings.identity_mode == "static":
        if settings.app_env == "prod":
            raise RuntimeError("IDENTITY_MODE=static is not allowed in prod")
        logger.warning(
            "identity_static_mode_enabled",
            user_id=settings.identity_static_user_id,
            is_admin=settings.identity_static_is_admin,
        )
        return StaticIdentityClient(
            user=IdentityUser(
                id=settings.identity_static_user_id,
                email=settings.identity_static_user_email or None,
            ),
            is_admin=settings.identity_static_is_admin,
        )

    return HttpIdentityClient(
        base_url=settings.identity_base_url,
        timeout_seconds=settings.identity_timeout_seconds,
    )
