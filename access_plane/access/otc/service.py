from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from access_plane.access.entitlements.service import EntitlementService
from access_plane.access.entitlements.types import ENTITLEMENT_SOURCE_OTC
from access_plane.access.otc.types import (
    OTC_ISSUE_STATUS_INVALID_REASON,
    OTC_ISSUE_STATUS_INVALID_RECIPIENT,
    OTC_ISSUE_STATUS_ISSUED,
    OTC_ISSUE_STATUS_UNKNOWN_COURSE,
    OTC_REASONS,
    OTC_VERIFY_STATUS_ALREADY_CONSUMED,
    OTC_VERIFY_STATUS_COURSE_MISMATCH,
    OTC_VERIFY_STATUS_EXPIRED,
    OTC_VERIFY_STATUS_NOT_FOUND,
    OTC_VERIFY_STATUS_VERIFIED,
    OtcIssueResult,
    OtcListItem,
    OtcRecipient,
    OtcVerifyResult,
)
from access_plane.core.catalog import course_display_name, is_known_course
from access_plane.core.config import get_settings
from access_plane.core.logging import mask_phone
from access_plane.db.models.one_time_codes import OneTimeCode
from access_plane.db.repo.one_time_codes_repo import OneTimeCodesRepo
from access_plane.services.otc_codes import generate_otc_code, hash_otc_code, normalize_otc_code
from access_plane.services.otc_delivery import OtcDeliveryGateway

logger = structlog.get_logger(__name__)

OTC_TTL = timedelta(minutes=10)
OTC_MAX_GENERATION_ATTEMPTS = 5
OTC_PHONE_PATTERN = re.compile(r"^\+\d{10,15}$")
OTC_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _is_valid_recipient(recipient: OtcRecipient) -> bool:
    if not recipient.name.strip():
        return False
    if OTC_PHONE_PATTERN.fullmatch(recipient.phone) is None:
        return False
    return recipient.email is None or OTC_EMAIL_PATTERN.fullmatch(recipient.email) is not None


class OtcService:
    @staticmethod
    async def _allocate_code(
        session: AsyncSession,
        *,
        pepper: str,
        now_utc: datetime,
    ) -> tuple[str, str]:
        for _ in range(OTC_MAX_GENERATION_ATTEMPTS):
            code = generate_otc_code()
            code_hash = hash_otc_code(normalized_code=code, pepper=pepper)
            if not await OneTimeCodesRepo.has_live_code_hash(
                session,
                code_hash=code_hash,
                now_utc=now_utc,
            ):
                return code, code_hash
        raise RuntimeError("could not allocate a unique one-time code")

    @staticmethod
    async def issue(
        session_factory: async_sessionmaker[AsyncSession],
        *,
        recipient: OtcRecipient,
        course_id: str,
        reason: str,
        issued_by: str,
        delivery: OtcDeliveryGateway,
        generated_by_admin: bool = True,
        now_utc: datetime | None = None,
    ) -> OtcIssueResult:
        """Store a new code, then deliver it, then record which channels took it.

        The record is committed before any message leaves, so a delivered code
        always exists. Delivery runs outside any transaction.
        """
        if not is_known_course(course_id):
            return OtcIssueResult(status=OTC_ISSUE_STATUS_UNKNOWN_COURSE)
        if reason not in OTC_REASONS:
            return OtcIssueResult(status=OTC_ISSUE_STATUS_INVALID_REASON)
        if not _is_valid_recipient(recipient):
            return OtcIssueResult(status=OTC_ISSUE_STATUS_INVALID_RECIPIENT)

        now = now_utc or datetime.now(timezone.utc)
        async with session_factory.begin() as session:
            code, code_hash = await OtcService._allocate_code(
                session,
                pepper=get_settings().otc_secret_pepper,
                now_utc=now,
            )
            record = await OneTimeCodesRepo.create(
                session,
                code=OneTimeCode(
                    code_hash=code_hash,
                    course_id=course_id,
                    recipient_name=recipient.name.strip(),
                    phone=recipient.phone,
                    email=recipient.email,
                    reason=reason,
                    generated_by_admin=generated_by_admin,
                    issued_by=issued_by,
                    issued_at=now,
                    expires_at=now + OTC_TTL,
                    consumed=False,
                    sms_sent=False,
                    email_sent=False,
                    delivery_channels=[],
                ),
            )
            otc_id = record.id
            recipient_name = record.recipient_name
            expires_at = record.expires_at

        course_name = course_display_name(course_id)
        report = await delivery.deliver_code(
            code=code,
            course_name=course_name,
            recipient_name=recipient_name,
            phone=recipient.phone,
            email=recipient.email,
        )

        try:
            async with session_factory.begin() as session:
                await OneTimeCodesRepo.record_delivery(
                    session,
                    otc_id=otc_id,
                    sms_sent=report.sms_sent,
                    email_sent=report.email_sent,
                    delivery_channels=list(report.channels),
                )
        except SQLAlchemyError:
            # The code is stored and delivered; only the delivery flags are stale.
            logger.exception("otc_delivery_flags_not_recorded", otc_id=otc_id)

        log_method = logger.info if report.sms_sent or report.email_sent else logger.warning
        log_method(
            "otc_issued",
            otc_id=otc_id,
            course_id=course_id,
            reason=reason,
            issued_by=issued_by,
            phone=mask_phone(recipient.phone),
            sms_sent=report.sms_sent,
            email_sent=report.email_sent,
        )
        return OtcIssueResult(
            status=OTC_ISSUE_STATUS_ISSUED,
            otc_id=otc_id,
            course_name=course_name,
            expires_at=expires_at,
            sms_sent=report.sms_sent,
            email_sent=report.email_sent,
            delivery_channels=report.channels,
        )

    @staticmethod
    async def verify(
        session: AsyncSession,
        *,
        code: str,
        course_id: str,
        redeemed_by_user_id: str | None = None,
        now_utc: datetime | None = None,
    ) -> OtcVerifyResult:
        now = now_utc or datetime.now(timezone.utc)
        normalized = normalize_otc_code(code)
        if not normalized:
            return OtcVerifyResult(status=OTC_VERIFY_STATUS_NOT_FOUND)

        code_hash = hash_otc_code(normalized_code=normalized, pepper=get_settings().otc_secret_pepper)
        record = await OneTimeCodesRepo.get_latest_by_hash(session, code_hash)
        if record is None:
            logger.info("otc_verify_rejected", reason=OTC_VERIFY_STATUS_NOT_FOUND, course_id=course_id)
            return OtcVerifyResult(status=OTC_VERIFY_STATUS_NOT_FOUND)

        failure: str | None = None
        if record.course_id != course_id:
            failure = OTC_VERIFY_STATUS_COURSE_MISMATCH
        elif now >= record.expires_at:
            failure = OTC_VERIFY_STATUS_EXPIRED
        elif record.consumed:
            failure = OTC_VERIFY_STATUS_ALREADY_CONSUMED
        elif not await OneTimeCodesRepo.consume_if_available(
            session,
            otc_id=record.id,
            now_utc=now,
            consumed_by_user_id=redeemed_by_user_id,
        ):
            # Lost the race against a concurrent verification.
            failure = OTC_VERIFY_STATUS_ALREADY_CONSUMED

        if failure is not None:
            logger.info("otc_verify_rejected", reason=failure, otc_id=record.id, course_id=course_id)
            return OtcVerifyResult(status=failure, otc_id=record.id, course_id=record.course_id)

        entitlement_id: int | None = None
        if redeemed_by_user_id is not None:
            grant = await EntitlementService.grant(
                session,
                user_id=redeemed_by_user_id,
                app_id=record.course_id,
                source=ENTITLEMENT_SOURCE_OTC,
                payment_reference=f"otc:{record.id}",
                created_by="otc",
                now_utc=now,
            )
            if grant.entitlement is not None:
                entitlement_id = grant.entitlement.id

        logger.info(
            "otc_verified",
            otc_id=record.id,
            course_id=record.course_id,
            redeemed_by_user_id=redeemed_by_user_id,
            entitlement_id=entitlement_id,
        )
        return OtcVerifyResult(
            status=OTC_VERIFY_STATUS_VERIFIED,
            otc_id=record.id,
            course_id=record.course_id,
            consumed_at=now,
            entitlement_id=entitlement_id,
            recipient_name=record.recipient_name,
            recipient_email=record.email,
        )

    @staticmethod
    async def list_recent(
        session: AsyncSession,
        *,
        course_id: str | None = None,
        limit: int = 50,
    ) -> list[OtcListItem]:
        rows = await OneTimeCodesRepo.list_recent(session, course_id=course_id, limit=limit)
        return [
            OtcListItem(
                id=row.id,
                course_id=row.course_id,
                recipient_name=row.recipient_name,
                phone=mask_phone(row.phone) or "",
                email=row.email,
                reason=row.reason,
                issued_by=row.issued_by,
                issued_at=row.issued_at,
                expires_at=row.expires_at,
                consumed=row.consumed,
                consumed_at=row.consumed_at,
                sms_sent=row.sms_sent,
                email_sent=row.email_sent,
                delivery_channels=tuple(row.delivery_channels or ()),
            )
            for row in rows
        ]

    @staticmethod
    async def get_stats(session: AsyncSession, *, now_utc: datetime | None = None) -> dict[str, int]:
        return await OneTimeCodesRepo.get_stats(
            session,
            now_utc=now_utc or datetime.now(timezone.utc),
        )
