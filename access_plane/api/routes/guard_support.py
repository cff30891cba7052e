from __future__ import annotations

from fastapi import Request

from access_plane.access.entitlements.service import EntitlementService
from access_plane.access.guard.evaluator import GuardEvaluator
from access_plane.access.guard.types import GuardContext
from access_plane.core.config import get_settings
from access_plane.core.errors import SessionUnavailableError
from access_plane.db.session import SessionLocal
from access_plane.services.admin_health_client import HttpAdminHealthClient
from access_plane.services.identity_client import (
    IdentityClient,
    IdentityUser,
    SessionCredentials,
    build_identity_client,
)


def credentials_from_request(request: Request) -> SessionCredentials:
    return SessionCredentials(
        cookies=dict(request.cookies),
        authorization=request.headers.get("Authorization"),
    )


def guard_context_from_request(request: Request, *, path: str | None = None) -> GuardContext:
    return GuardContext(
        path=path if path is not None else request.url.path,
        credentials=credentials_from_request(request),
    )


def get_identity_client() -> IdentityClient:
    return build_identity_client(get_settings())


async def check_course_entitlement(user_id: str, app_id: str) -> bool:
    async with SessionLocal() as session:
        return await EntitlementService.check_course_access(session, user_id=user_id, app_id=app_id)


def build_guard_evaluator() -> GuardEvaluator:
    settings = get_settings()
    return GuardEvaluator(
        identity_client=get_identity_client(),
        admin_health_client=HttpAdminHealthClient(
            url=settings.admin_health_url,
            timeout_seconds=settings.admin_health_timeout_seconds,
        ),
        entitlement_checker=check_course_entitlement,
    )


async def resolve_optional_user(request: Request) -> IdentityUser | None:
    """Current identity user, or None when the caller is anonymous.

    Raises ``SessionUnavailableError`` when the caller presented credentials
    but the identity provider could not resolve them.
    """
    credentials = credentials_from_request(request)
    try:
        return await get_identity_client().get_current_user(credentials)
    except SessionUnavailableError:
        if credentials.is_empty():
            return None
        raise
