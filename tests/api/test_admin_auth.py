from __future__ import annotations

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from access_plane.access.guard.types import REQUIRE_ADMIN, Allow
from access_plane.api.routes import admin_auth, guard_support
from access_plane.services.admin_credentials import ADMIN_SESSION_COOKIE, AdminPrincipal, admin_session_value
from access_plane.services.identity_client import IdentityUser
from tests.api.helpers import DenyingEvaluator, admin_settings


def _request(*, client_host: str = "127.0.0.1", headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    return Request(
        {
            "type": "http",
            "scheme": "http",
            "server": ("testserver", 80),
            "method": "GET",
            "path": "/admin/otc",
            "query_string": b"",
            "headers": raw_headers,
            "client": (client_host, 5500),
        }
    )


class _AdminEvaluator:
    def __init__(self) -> None:
        self.requirements = []

    async def evaluate(self, requirement, context):
        self.requirements.append(requirement)
        return Allow(user=IdentityUser(id="42", email="admin@example.com"))


@pytest.mark.asyncio
async def test_token_grants_console_principal(monkeypatch) -> None:
    monkeypatch.setattr(admin_auth, "get_settings", lambda: admin_settings())
    monkeypatch.setattr(guard_support, "build_guard_evaluator", lambda: DenyingEvaluator())

    principal = await admin_auth.assert_admin_access(_request(headers={"X-Internal-Token": "internal-secret"}))

    assert principal == AdminPrincipal(actor="admin-console", via="token")


@pytest.mark.asyncio
async def test_identity_admin_is_accepted_without_token(monkeypatch) -> None:
    evaluator = _AdminEvaluator()
    monkeypatch.setattr(admin_auth, "get_settings", lambda: admin_settings())
    monkeypatch.setattr(guard_support, "build_guard_evaluator", lambda: evaluator)

    principal = await admin_auth.assert_admin_access(_request())

    assert principal == AdminPrincipal(actor="user:42", via="identity")
    assert evaluator.requirements == [REQUIRE_ADMIN]


@pytest.mark.asyncio
async def test_non_admin_without_token_is_forbidden(monkeypatch) -> None:
    monkeypatch.setattr(admin_auth, "get_settings", lambda: admin_settings())
    monkeypatch.setattr(guard_support, "build_guard_evaluator", lambda: DenyingEvaluator())

    with pytest.raises(HTTPException) as exc_info:
        await admin_auth.assert_admin_access(_request(headers={"X-Internal-Token": "wrong"}))

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == {"code": "E_FORBIDDEN"}


@pytest.mark.asyncio
async def test_allowlist_is_checked_before_token(monkeypatch) -> None:
    monkeypatch.setattr(admin_auth, "get_settings", lambda: admin_settings(internal_api_allowlist="10.0.0.0/8"))
    monkeypatch.setattr(guard_support, "build_guard_evaluator", lambda: _AdminEvaluator())

    with pytest.raises(HTTPException) as exc_info:
        await admin_auth.assert_admin_access(_request(headers={"X-Internal-Token": "internal-secret"}))

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_session_cookie_grants_console_principal(monkeypatch) -> None:
    monkeypatch.setattr(admin_auth, "get_settings", lambda: admin_settings())
    monkeypatch.setattr(guard_support, "build_guard_evaluator", lambda: DenyingEvaluator())
    cookie = f"{ADMIN_SESSION_COOKIE}={admin_session_value('internal-secret')}"

    principal = await admin_auth.assert_admin_access(_request(headers={"Cookie": cookie}))

    assert principal == AdminPrincipal(actor="admin-console", via="session_cookie")
