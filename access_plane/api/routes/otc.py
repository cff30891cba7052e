from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, HTTPException, Request

from access_plane.access.otc.service import OtcService
from access_plane.access.otc.types import (
    OTC_VERIFY_STATUS_ALREADY_CONSUMED,
    OTC_VERIFY_STATUS_COURSE_MISMATCH,
    OTC_VERIFY_STATUS_EXPIRED,
    OTC_VERIFY_STATUS_NOT_FOUND,
    OtcVerifyResult,
)
from access_plane.api.routes import guard_support
from access_plane.api.routes.otc_models import OtcVerifyRequest, OtcVerifyResponse
from access_plane.core.catalog import course_display_name
from access_plane.core.config import get_settings
from access_plane.core.errors import SessionUnavailableError
from access_plane.db.session import SessionLocal
from access_plane.services.admin_credentials import resolve_client_ip
from access_plane.services.attempt_throttle import FailedAttemptThrottle
from access_plane.workers.tasks.otc_notifications import send_otc_welcome_email

router = APIRouter(tags=["otc"])
logger = structlog.get_logger(__name__)

OTC_VERIFY_HTTP_ERRORS = {
    OTC_VERIFY_STATUS_NOT_FOUND: (404, "E_OTC_NOT_FOUND"),
    OTC_VERIFY_STATUS_ALREADY_CONSUMED: (409, "E_OTC_ALREADY_CONSUMED"),
    OTC_VERIFY_STATUS_EXPIRED: (410, "E_OTC_EXPIRED"),
    OTC_VERIFY_STATUS_COURSE_MISMATCH: (422, "E_OTC_COURSE_MISMATCH"),
}
OTC_WELCOME_ENQUEUE_TIMEOUT_SECONDS = 2.0
VERIFY_THROTTLE = FailedAttemptThrottle(window_seconds=15 * 60, max_failures=20)


def _is_celery_task(task_obj: object) -> bool:
    return type(task_obj).__module__.startswith("celery.")


async def _enqueue_welcome_email(result: OtcVerifyResult) -> bool:
    if not result.recipient_email or not result.course_id:
        return False

    def enqueue_call() -> object:
        return send_otc_welcome_email.delay(
            email=result.recipient_email,
            recipient_name=result.recipient_name or "",
            course_id=result.course_id,
        )

    try:
        if _is_celery_task(send_otc_welcome_email):
            await asyncio.wait_for(
                asyncio.to_thread(enqueue_call),
                timeout=OTC_WELCOME_ENQUEUE_TIMEOUT_SECONDS,
            )
        else:
            enqueue_call()
        return True
    except asyncio.TimeoutError:
        logger.warning("otc_welcome_enqueue_timeout", otc_id=result.otc_id)
        return False
    except Exception as exc:
        logger.warning(
            "otc_welcome_enqueue_failed",
            otc_id=result.otc_id,
            error_type=type(exc).__name__,
        )
        return False


@router.post("/otc/verify", response_model=OtcVerifyResponse)
async def verify_otc(payload: OtcVerifyRequest, request: Request) -> OtcVerifyResponse:
    client_ip = resolve_client_ip(
        request,
        trusted_proxies=getattr(get_settings(), "internal_api_trusted_proxies", ""),
    )
    if VERIFY_THROTTLE.is_limited(client_ip):
        logger.warning("otc_verify_rate_limited", client_ip=client_ip)
        raise HTTPException(status_code=429, detail={"code": "E_RATE_LIMITED"})

    try:
        user = await guard_support.resolve_optional_user(request)
    except SessionUnavailableError:
        logger.warning("otc_verify_identity_unavailable", client_ip=client_ip)
        raise HTTPException(status_code=503, detail={"code": "E_IDENTITY_UNAVAILABLE"}) from None

    async with SessionLocal.begin() as session:
        result = await OtcService.verify(
            session,
            code=payload.code,
            course_id=payload.course_id,
            redeemed_by_user_id=user.id if user is not None else None,
        )

    if not result.verified:
        VERIFY_THROTTLE.record_failure(client_ip)
        status_code, error_code = OTC_VERIFY_HTTP_ERRORS.get(result.status, (400, "E_OTC_INVALID"))
        raise HTTPException(status_code=status_code, detail={"code": error_code})

    await _enqueue_welcome_email(result)
    course_id = result.course_id or payload.course_id
    return OtcVerifyResponse(
        verified=True,
        course_id=course_id,
        course_name=course_display_name(course_id),
        consumed_at=result.consumed_at,
        entitlement_granted=result.entitlement_id is not None,
    )
