from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from access_plane.access.entitlements.service import EntitlementService
from access_plane.api.routes import guard_support
from access_plane.api.routes.entitlements_models import EntitlementCheckResponse
from access_plane.core.catalog import is_known_course
from access_plane.core.errors import SessionUnavailableError
from access_plane.db.session import SessionLocal

router = APIRouter(tags=["entitlements"])


@router.get("/entitlement", response_model=EntitlementCheckResponse)
async def check_entitlement(
    request: Request,
    app_id: str = Query(alias="appId", min_length=1, max_length=64),
) -> EntitlementCheckResponse:
    if not is_known_course(app_id):
        raise HTTPException(status_code=404, detail={"code": "E_UNKNOWN_APP"})

    try:
        user = await guard_support.resolve_optional_user(request)
    except SessionUnavailableError:
        raise HTTPException(status_code=503, detail={"code": "E_IDENTITY_UNAVAILABLE"}) from None
    if user is None:
        raise HTTPException(status_code=401, detail={"code": "E_UNAUTHORIZED"})

    async with SessionLocal() as session:
        entitled = await EntitlementService.check_course_access(
            session,
            user_id=user.id,
            app_id=app_id,
        )
    return EntitlementCheckResponse(app_id=app_id, entitled=entitled)
