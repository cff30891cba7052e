from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from access_plane.core.config import get_settings
from access_plane.db.session import SessionLocal
from access_plane.workers.celery_app import celery_app

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

HEALTH_CHECK_TIMEOUT_SECONDS = 3.0

Check = Callable[[], Awaitable[dict[str, Any]]]


def _ok(**extra: Any) -> dict[str, Any]:
    return {"status": "ok", **extra}


def _failed(error: str) -> dict[str, Any]:
    return {"status": "failed", "error": error}


async def _check_database() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("health_check_failed", check="database", error_type=type(exc).__name__)
        return _failed("database_unavailable")
    return _ok()


async def _check_redis() -> dict[str, Any]:
    client = Redis.from_url(get_settings().redis_url)
    try:
        if await client.ping() is not True:
            return _failed("unexpected redis ping response")
    except Exception as exc:
        logger.warning("health_check_failed", check="redis", error_type=type(exc).__name__)
        return _failed("redis_unavailable")
    finally:
        await client.aclose()
    return _ok()


def _ping_celery_workers() -> dict[str, Any]:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        replies = inspector.ping() if inspector is not None else None
    except Exception as exc:
        logger.warning("health_check_failed", check="celery", error_type=type(exc).__name__)
        return _failed("celery_unavailable")
    if not replies:
        return _failed("no celery workers responded to ping")
    return _ok(workers=len(replies))


async def _check_celery_worker() -> dict[str, Any]:
    return await asyncio.to_thread(_ping_celery_workers)


async def _check_identity_provider() -> dict[str, Any]:
    settings = get_settings()
    if settings.identity_mode == "static":
        return _ok(mode="static")
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(HEALTH_CHECK_TIMEOUT_SECONDS)) as client:
            response = await client.get(f"{settings.identity_base_url.rstrip('/')}/session")
    except httpx.HTTPError as exc:
        return _failed(type(exc).__name__)
    if response.status_code >= 500:
        return _failed(f"identity provider returned {response.status_code}")
    return _ok()


async def _run_checks(checks: dict[str, Check]) -> dict[str, dict[str, Any]]:
    async def _bounded(check: Check) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(check(), timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            return _failed("timeout")

    names = list(checks)
    results = await asyncio.gather(*(_bounded(checks[name]) for name in names))
    return dict(zip(names, results))


def _respond(checks: dict[str, dict[str, Any]], *, ok_status: str, failed_status: str) -> JSONResponse:
    healthy = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": ok_status if healthy else failed_status, "checks": checks},
    )


@router.get("/health")
async def health() -> JSONResponse:
    checks = await _run_checks(
        {
            "database": _check_database,
            "redis": _check_redis,
            "celery": _check_celery_worker,
            "identity": _check_identity_provider,
        }
    )
    return _respond(checks, ok_status="ok", failed_status="degraded")


@router.get("/ready")
async def ready() -> JSONResponse:
    checks = await _run_checks(
        {
            "database": _check_database,
            "redis": _check_redis,
        }
    )
    return _respond(checks, ok_status="ready", failed_status="not_ready")


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}
