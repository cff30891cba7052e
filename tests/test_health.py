import asyncio
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from access_plane.api.routes import health as health_routes
from access_plane.main import app


async def _ok_check() -> dict[str, str]:
    return {"status": "ok"}


def _patch_all_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    monkeypatch.setattr(health_routes, "_check_redis", _ok_check)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _ok_check)
    monkeypatch.setattr(health_routes, "_check_identity_provider", _ok_check)


def test_health_ok(monkeypatch) -> None:
    _patch_all_ok(monkeypatch)

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
            "celery": {"status": "ok"},
            "identity": {"status": "ok"},
        },
    }


def test_live_ok() -> None:
    client = TestClient(app)
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "live"}


def test_health_returns_503_when_dependency_failed(monkeypatch) -> None:
    async def _failed_identity() -> dict[str, str]:
        return {"status": "failed", "error": "identity provider returned 502"}

    _patch_all_ok(monkeypatch)
    monkeypatch.setattr(health_routes, "_check_identity_provider", _failed_identity)

    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["checks"]["identity"] == {"status": "failed", "error": "identity provider returned 502"}


def test_ready_ignores_celery_and_identity(monkeypatch) -> None:
    async def _failed() -> dict[str, str]:
        return {"status": "failed", "error": "down"}

    _patch_all_ok(monkeypatch)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _failed)
    monkeypatch.setattr(health_routes, "_check_identity_provider", _failed)

    client = TestClient(app)
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
        },
    }


def test_ready_returns_503_when_database_failed(monkeypatch) -> None:
    async def _failed_database() -> dict[str, str]:
        return {"status": "failed", "error": "database_unavailable"}

    _patch_all_ok(monkeypatch)
    monkeypatch.setattr(health_routes, "_check_database", _failed_database)

    client = TestClient(app)
    response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


@pytest.mark.asyncio
async def test_slow_check_is_reported_as_timeout(monkeypatch) -> None:
    async def _hanging() -> dict[str, str]:
        await asyncio.sleep(10)
        return {"status": "ok"}

    monkeypatch.setattr(health_routes, "HEALTH_CHECK_TIMEOUT_SECONDS", 0.01)

    checks = await health_routes._run_checks({"database": _hanging, "redis": _ok_check})

    assert checks == {
        "database": {"status": "failed", "error": "timeout"},
        "redis": {"status": "ok"},
    }


@pytest.mark.asyncio
async def test_database_check_sanitizes_exception(monkeypatch) -> None:
    class _BrokenSession:
        async def __aenter__(self):
            raise RuntimeError("password=secret")

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    monkeypatch.setattr(health_routes, "SessionLocal", lambda: _BrokenSession())

    result = await health_routes._check_database()
    assert result == {"status": "failed", "error": "database_unavailable"}


def test_celery_check_sanitizes_exception(monkeypatch) -> None:
    class _BrokenControl:
        def inspect(self, timeout: float):
            raise RuntimeError("broker-url=redis://secret")

    monkeypatch.setattr(health_routes.celery_app, "control", _BrokenControl())

    result = health_routes._ping_celery_workers()
    assert result == {"status": "failed", "error": "celery_unavailable"}


@pytest.mark.asyncio
async def test_identity_check_is_ok_in_static_mode(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "get_settings", lambda: SimpleNamespace(identity_mode="static"))

    result = await health_routes._check_identity_provider()

    assert result == {"status": "ok", "mode": "static"}


@pytest.mark.asyncio
async def test_identity_check_reports_connection_errors(monkeypatch) -> None:
    class _UnreachableClient:
        def __init__(self, *args, **kwargs) -> None:
            del args, kwargs

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

        async def get(self, url: str):
            raise httpx.ConnectError("connection refused", request=httpx.Request("GET", url))

    monkeypatch.setattr(
        health_routes,
        "get_settings",
        lambda: SimpleNamespace(identity_mode="http", identity_base_url="http://identity.local/"),
    )
    monkeypatch.setattr(health_routes.httpx, "AsyncClient", _UnreachableClient)

    result = await health_routes._check_identity_provider()

    assert result == {"status": "failed", "error": "ConnectError"}
