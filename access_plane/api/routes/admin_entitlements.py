from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Request

from access_plane.access.entitlements.service import EntitlementService
from access_plane.access.entitlements.types import (
    ENTITLEMENT_GRANT_STATUS_INVALID_SOURCE,
    ENTITLEMENT_GRANT_STATUS_UNKNOWN_APP,
    ENTITLEMENT_REVOKE_STATUS_NOT_FOUND,
    ENTITLEMENT_STATUS_REVOKED,
    EntitlementView,
)
from access_plane.api.routes.admin_auth import assert_admin_access
from access_plane.api.routes.entitlements_models import (
    EntitlementAppStatsResponse,
    EntitlementGrantRequest,
    EntitlementListResponse,
    EntitlementResponse,
    EntitlementRevokeRequest,
    EntitlementStatsResponse,
)
from access_plane.db.session import SessionLocal

router = APIRouter(tags=["admin", "entitlements"])

ENTITLEMENT_GRANT_ERROR_CODES = {
    ENTITLEMENT_GRANT_STATUS_UNKNOWN_APP: "E_UNKNOWN_APP",
    ENTITLEMENT_GRANT_STATUS_INVALID_SOURCE: "E_INVALID_SOURCE",
}


def _as_response(view: EntitlementView) -> EntitlementResponse:
    return EntitlementResponse(
        id=view.id,
        user_id=view.user_id,
        app_id=view.app_id,
        status=view.status,
        effective_status=view.effective_status,
        source=view.source,
        payment_reference=view.payment_reference,
        purchased_at=view.purchased_at,
        expires_at=view.expires_at,
        revoked_at=view.revoked_at,
        revoke_reason=view.revoke_reason,
    )


@router.post("/admin/entitlements", response_model=EntitlementResponse, status_code=201)
async def grant_entitlement(payload: EntitlementGrantRequest, request: Request) -> EntitlementResponse:
    principal = await assert_admin_access(request)

    async with SessionLocal.begin() as session:
        result = await EntitlementService.grant(
            session,
            user_id=payload.user_id,
            app_id=payload.app_id,
            source=payload.source,
            payment_reference=payload.payment_reference,
            created_by=principal.actor,
        )

    if result.entitlement is None:
        raise HTTPException(
            status_code=422,
            detail={"code": ENTITLEMENT_GRANT_ERROR_CODES.get(result.status, "E_ENTITLEMENT_GRANT_FAILED")},
        )
    return _as_response(result.entitlement)


@router.patch("/admin/entitlements/{entitlement_id}", response_model=EntitlementResponse)
async def revoke_entitlement(
    entitlement_id: int,
    payload: EntitlementRevokeRequest,
    request: Request,
) -> EntitlementResponse:
    principal = await assert_admin_access(request)
    if payload.status != ENTITLEMENT_STATUS_REVOKED:
        raise HTTPException(status_code=422, detail={"code": "E_UNSUPPORTED_STATUS"})

    async with SessionLocal.begin() as session:
        result = await EntitlementService.revoke(
            session,
            entitlement_id=entitlement_id,
            reason=payload.reason,
            revoked_by=principal.actor,
        )

    if result.status == ENTITLEMENT_REVOKE_STATUS_NOT_FOUND or result.entitlement is None:
        raise HTTPException(status_code=404, detail={"code": "E_ENTITLEMENT_NOT_FOUND"})
    return _as_response(result.entitlement)


@router.get("/admin/entitlements", response_model=EntitlementListResponse)
async def list_entitlements(
    request: Request,
    user_id: str = Query(alias="userId", min_length=1, max_length=64),
) -> EntitlementListResponse:
    await assert_admin_access(request)

    async with SessionLocal.begin() as session:
        views = await EntitlementService.list_for_user(session, user_id=user_id)

    return EntitlementListResponse(
        user_id=user_id,
        entitlements=[_as_response(view) for view in views],
    )


@router.get("/admin/entitlements/stats", response_model=EntitlementStatsResponse)
async def get_entitlement_stats(
    request: Request,
    app_id: str | None = Query(default=None, alias="appId", min_length=1, max_length=64),
) -> EntitlementStatsResponse:
    await assert_admin_access(request)

    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        rows = await EntitlementService.get_stats(session, app_id=app_id, now_utc=now_utc)

    apps = [EntitlementAppStatsResponse(**row) for row in rows]
    return EntitlementStatsResponse(
        generated_at=now_utc,
        active_total=sum(app.active_total for app in apps),
        expired_total=sum(app.expired_total for app in apps),
        revoked_total=sum(app.revoked_total for app in apps),
        apps=apps,
    )
