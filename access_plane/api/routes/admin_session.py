from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlsplit

import structlog
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from access_plane.api.routes.admin_auth import assert_admin_ip_access
from access_plane.core.config import DEV_INTERNAL_API_TOKEN, get_settings
from access_plane.services.admin_credentials import (
    ADMIN_SESSION_COOKIE,
    admin_session_value,
    matches_admin_token,
    presented_admin_credential,
)
from access_plane.services.attempt_throttle import FailedAttemptThrottle
from access_plane.services.redirects import sanitize_redirect_path

router = APIRouter(tags=["admin-session"])
logger = structlog.get_logger(__name__)

ADMIN_SESSION_MAX_AGE_SECONDS = 8 * 60 * 60
ADMIN_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
ADMIN_DEFAULT_LANDING = "/admin"
ADMIN_LOGIN_FAILURE_DELAY_SECONDS = 0.4
LOGIN_THROTTLE = FailedAttemptThrottle(window_seconds=5 * 60, max_failures=8)


def _normalized_origin(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        parsed = urlsplit(value.strip())
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def _assert_same_origin_form_post(request: Request, *, client_ip: str | None) -> None:
    content_type = (request.headers.get("content-type") or "").split(";", maxsplit=1)[0].strip().lower()
    if content_type != ADMIN_FORM_CONTENT_TYPE:
        logger.warning("admin_auth_failed", reason="invalid_form_content_type", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    host = (request.headers.get("host") or "").strip().lower()
    if not host:
        logger.warning("admin_auth_failed", reason="missing_host_header", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
    allowed_origins = {f"http://{host}", f"https://{host}"}

    origin = _normalized_origin(request.headers.get("origin"))
    if origin is None:
        origin = _normalized_origin(request.headers.get("referer"))
    if origin not in allowed_origins:
        logger.warning("admin_auth_failed", reason="origin_mismatch", client_ip=client_ip, origin=origin)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


async def _read_form(request: Request) -> dict[str, str]:
    raw_body = await request.body()
    payload = parse_qs(raw_body.decode("utf-8", errors="ignore"), keep_blank_values=True)
    return {key: (values[0] if values else "") for key, values in payload.items()}


@router.post("/admin/login")
async def login_admin(request: Request) -> RedirectResponse:
    client_ip = assert_admin_ip_access(request)
    _assert_same_origin_form_post(request, client_ip=client_ip)
    if LOGIN_THROTTLE.is_limited(client_ip):
        logger.warning("admin_auth_failed", reason="login_rate_limited", client_ip=client_ip)
        raise HTTPException(status_code=429, detail={"code": "E_RATE_LIMITED"})

    settings = get_settings()
    form = await _read_form(request)
    token = form.get("token", "").strip()
    if not matches_admin_token(admin_token=settings.internal_api_token, presented=token):
        LOGIN_THROTTLE.record_failure(client_ip)
        await asyncio.sleep(ADMIN_LOGIN_FAILURE_DELAY_SECONDS)
        logger.warning("admin_auth_failed", reason="invalid_token", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
    LOGIN_THROTTLE.clear(client_ip)

    landing = sanitize_redirect_path(form.get("redirect") or ADMIN_DEFAULT_LANDING)
    response = RedirectResponse(url=landing, status_code=303)
    response.set_cookie(
        key=ADMIN_SESSION_COOKIE,
        value=admin_session_value(settings.internal_api_token),
        max_age=ADMIN_SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="strict",
        secure=getattr(settings, "app_env", "dev") != "dev",
        path="/",
    )
    logger.info("admin_login_succeeded", client_ip=client_ip)
    return response


@router.post("/admin/logout")
async def logout_admin(request: Request) -> RedirectResponse:
    client_ip = assert_admin_ip_access(request)
    _assert_same_origin_form_post(request, client_ip=client_ip)
    response = RedirectResponse(url="/admin/login", status_code=303)
    response.delete_cookie(key=ADMIN_SESSION_COOKIE, path="/")
    return response


@router.get("/admin/health")
async def admin_health(request: Request) -> JSONResponse:
    settings = get_settings()
    if presented_admin_credential(request, admin_token=settings.internal_api_token) is None:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": {"code": "E_UNAUTHORIZED"}},
        )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "ok",
            "needs_setup": settings.internal_api_token == DEV_INTERNAL_API_TOKEN,
        },
    )
