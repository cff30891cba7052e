from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Query, Request

from access_plane.access.otc.service import OtcService
from access_plane.access.otc.types import (
    OTC_ISSUE_STATUS_INVALID_REASON,
    OTC_ISSUE_STATUS_INVALID_RECIPIENT,
    OTC_ISSUE_STATUS_UNKNOWN_COURSE,
    OtcRecipient,
)
from access_plane.api.routes.admin_auth import assert_admin_access
from access_plane.api.routes.otc_models import (
    OtcIssueRequest,
    OtcIssueResponse,
    OtcListItemResponse,
    OtcListResponse,
    OtcStatsResponse,
)
from access_plane.core.config import get_settings
from access_plane.db.session import SessionLocal
from access_plane.services.otc_delivery import OtcDeliveryGateway

router = APIRouter(tags=["admin", "otc"])
logger = structlog.get_logger(__name__)

OTC_ISSUE_ERROR_CODES = {
    OTC_ISSUE_STATUS_UNKNOWN_COURSE: "E_UNKNOWN_COURSE",
    OTC_ISSUE_STATUS_INVALID_RECIPIENT: "E_INVALID_RECIPIENT",
    OTC_ISSUE_STATUS_INVALID_REASON: "E_INVALID_REASON",
}


def build_delivery_gateway() -> OtcDeliveryGateway:
    return OtcDeliveryGateway(settings=get_settings())


@router.post("/admin/otc/issue", response_model=OtcIssueResponse)
async def issue_otc(payload: OtcIssueRequest, request: Request) -> OtcIssueResponse:
    principal = await assert_admin_access(request)

    result = await OtcService.issue(
        SessionLocal,
        recipient=OtcRecipient(
            name=payload.name,
            phone=payload.phone,
            email=payload.email or None,
        ),
        course_id=payload.course_id,
        reason=payload.reason,
        issued_by=principal.actor,
        delivery=build_delivery_gateway(),
    )

    if not result.issued:
        raise HTTPException(
            status_code=422,
            detail={"code": OTC_ISSUE_ERROR_CODES.get(result.status, "E_OTC_ISSUE_FAILED")},
        )

    return OtcIssueResponse(
        otc_id=int(result.otc_id or 0),
        sms_sent=result.sms_sent,
        email_sent=result.email_sent,
        expires_at=result.expires_at,
        course_name=result.course_name or payload.course_id,
        delivery_channels=list(result.delivery_channels),
    )


@router.get("/admin/otc", response_model=OtcListResponse)
async def list_otc(
    request: Request,
    course_id: str | None = Query(default=None, alias="courseId", max_length=64),
    limit: int = Query(default=50, ge=1, le=200),
) -> OtcListResponse:
    await assert_admin_access(request)

    async with SessionLocal.begin() as session:
        items = await OtcService.list_recent(session, course_id=course_id, limit=limit)

    return OtcListResponse(
        codes=[
            OtcListItemResponse(
                id=item.id,
                course_id=item.course_id,
                recipient_name=item.recipient_name,
                phone=item.phone,
                email=item.email,
                reason=item.reason,
                issued_by=item.issued_by,
                issued_at=item.issued_at,
                expires_at=item.expires_at,
                consumed=item.consumed,
                consumed_at=item.consumed_at,
                sms_sent=item.sms_sent,
                email_sent=item.email_sent,
                delivery_channels=list(item.delivery_channels),
            )
            for item in items
        ]
    )


@router.get("/admin/otc/stats", response_model=OtcStatsResponse)
async def get_otc_stats(request: Request) -> OtcStatsResponse:
    await assert_admin_access(request)

    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        stats = await OtcService.get_stats(session, now_utc=now_utc)

    return OtcStatsResponse(generated_at=now_utc, **stats)
