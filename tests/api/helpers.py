from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from access_plane.access.guard.types import DenyRedirect
from access_plane.services.redirects import login_redirect


class DummySession:
    async def __aenter__(self) -> DummySession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class DummySessionLocal:
    """Stands in for ``SessionLocal`` in route tests that stub the service layer."""

    def __call__(self) -> DummySession:
        return DummySession()

    def begin(self) -> DummySession:
        return DummySession()


def admin_settings(**overrides: Any) -> SimpleNamespace:
    values: dict[str, Any] = {
        "app_env": "dev",
        "internal_api_token": "internal-secret",
        "internal_api_allowlist": "127.0.0.1/32",
        "internal_api_trusted_proxies": "127.0.0.1/32",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


ADMIN_HEADERS = {
    "X-Forwarded-For": "127.0.0.1",
    "X-Internal-Token": "internal-secret",
}


class DenyingEvaluator:
    """Guard evaluator that never recognises an identity admin."""

    async def evaluate(self, requirement, context):
        del requirement
        return DenyRedirect(path=login_redirect(context.path))
