from __future__ import annotations

import structlog
from fastapi import HTTPException, Request

from access_plane.access.guard.types import REQUIRE_ADMIN, Allow
from access_plane.api.routes import guard_support
from access_plane.core.config import get_settings
from access_plane.services.admin_credentials import (
    AdminPrincipal,
    console_principal,
    ip_in_networks,
    resolve_client_ip,
)

logger = structlog.get_logger(__name__)


def _forbidden() -> HTTPException:
    return HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def assert_admin_ip_access(request: Request) -> str | None:
    settings = get_settings()
    client_ip = resolve_client_ip(
        request,
        trusted_proxies=getattr(settings, "internal_api_trusted_proxies", ""),
    )
    if not ip_in_networks(client_ip, settings.internal_api_allowlist):
        logger.warning("admin_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise _forbidden()
    return client_ip


async def assert_admin_access(request: Request) -> AdminPrincipal:
    client_ip = assert_admin_ip_access(request)
    principal = console_principal(request, admin_token=get_settings().internal_api_token)
    if principal is not None:
        return principal

    decision = await guard_support.build_guard_evaluator().evaluate(
        REQUIRE_ADMIN,
        guard_support.guard_context_from_request(request),
    )
    if isinstance(decision, Allow) and decision.user is not None:
        return AdminPrincipal.identity_user(decision.user.id)

    logger.warning("admin_auth_failed", reason="not_admin", client_ip=client_ip)
    raise _forbidden()
