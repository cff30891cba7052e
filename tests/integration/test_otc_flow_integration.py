from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from access_plane.access.entitlements.service import EntitlementService
from access_plane.access.otc.service import OtcService
from access_plane.access.otc.types import (
    OTC_VERIFY_STATUS_ALREADY_CONSUMED,
    OTC_VERIFY_STATUS_COURSE_MISMATCH,
    OTC_VERIFY_STATUS_EXPIRED,
    OTC_VERIFY_STATUS_VERIFIED,
    OtcRecipient,
)
from access_plane.db.models.one_time_codes import OneTimeCode
from access_plane.db.session import SessionLocal
from access_plane.services.otc_delivery import OtcDeliveryReport

UTC = timezone.utc


class _CapturingDelivery:
    def __init__(self) -> None:
        self.codes: list[str] = []
        self.stored_before_delivery: list[int] = []

    async def deliver_code(self, *, code, course_name, recipient_name, phone, email) -> OtcDeliveryReport:
        del course_name, recipient_name, phone, email
        async with SessionLocal() as session:
            stored = await session.scalar(select(func.count(OneTimeCode.id)))
        self.stored_before_delivery.append(int(stored or 0))
        self.codes.append(code)
        return OtcDeliveryReport(sms_sent=True, email_sent=False, channels=("sms",))


async def _issue(*, course_id: str, issued_at: datetime) -> tuple[int, str]:
    delivery = _CapturingDelivery()
    result = await OtcService.issue(
        SessionLocal,
        recipient=OtcRecipient(name="Asha Rao", phone="+919876543210"),
        course_id=course_id,
        reason="promotional",
        issued_by="integration-test",
        delivery=delivery,
        now_utc=issued_at,
    )
    assert result.issued is True
    return int(result.otc_id or 0), delivery.codes[0]


async def _verify(code: str, *, course_id: str, at: datetime, user_id: str | None = None) -> str:
    async with SessionLocal.begin() as session:
        result = await OtcService.verify(
            session,
            code=code,
            course_id=course_id,
            redeemed_by_user_id=user_id,
            now_utc=at,
        )
    return result.status


@pytest.mark.asyncio
async def test_issue_persists_hash_and_delivery_flags() -> None:
    issued_at = datetime.now(UTC)
    otc_id, code = await _issue(course_id="learn-ai", issued_at=issued_at)

    async with SessionLocal.begin() as session:
        stored = await session.get(OneTimeCode, otc_id)
        assert stored is not None
        assert stored.code_hash != code
        assert len(stored.code_hash) == 64
        assert stored.expires_at == issued_at + timedelta(minutes=10)
        assert stored.sms_sent is True
        assert stored.email_sent is False
        assert stored.delivery_channels == ["sms"]


@pytest.mark.asyncio
async def test_code_is_single_use_and_bound_to_course() -> None:
    issued_at = datetime.now(UTC) - timedelta(minutes=5)
    _, code = await _issue(course_id="learn-ai", issued_at=issued_at)
    now = issued_at + timedelta(minutes=9, seconds=59)

    assert await _verify(code, course_id="learn-pr", at=now) == OTC_VERIFY_STATUS_COURSE_MISMATCH
    assert await _verify(code.lower(), course_id="learn-ai", at=now) == OTC_VERIFY_STATUS_VERIFIED
    assert await _verify(code, course_id="learn-ai", at=now) == OTC_VERIFY_STATUS_ALREADY_CONSUMED


@pytest.mark.asyncio
async def test_code_expires_at_ten_minutes() -> None:
    issued_at = datetime.now(UTC) - timedelta(minutes=20)
    _, code = await _issue(course_id="learn-ai", issued_at=issued_at)

    status = await _verify(code, course_id="learn-ai", at=issued_at + timedelta(minutes=10))

    assert status == OTC_VERIFY_STATUS_EXPIRED


@pytest.mark.asyncio
async def test_signed_in_redemption_unlocks_course() -> None:
    issued_at = datetime.now(UTC)
    _, code = await _issue(course_id="learn-pr", issued_at=issued_at)

    status = await _verify(code, course_id="learn-pr", at=issued_at + timedelta(minutes=1), user_id="42")

    assert status == OTC_VERIFY_STATUS_VERIFIED
    async with SessionLocal.begin() as session:
        assert await EntitlementService.has_access(session, user_id="42", app_id="learn-pr")
        assert not await EntitlementService.has_access(session, user_id="42", app_id="learn-ai")


@pytest.mark.asyncio
async def test_stats_count_consumed_and_expired_codes() -> None:
    now = datetime.now(UTC)
    _, consumed_code = await _issue(course_id="learn-ai", issued_at=now - timedelta(minutes=2))
    await _issue(course_id="learn-ai", issued_at=now - timedelta(minutes=30))
    await _issue(course_id="learn-pr", issued_at=now)
    assert await _verify(consumed_code, course_id="learn-ai", at=now) == OTC_VERIFY_STATUS_VERIFIED

    async with SessionLocal.begin() as session:
        stats = await OtcService.get_stats(session, now_utc=now)
        listed = await OtcService.list_recent(session, course_id="learn-ai", limit=10)

    assert stats["issued_total"] == 3
    assert stats["consumed_total"] == 1
    assert stats["expired_unused_total"] == 1
    assert stats["active_total"] == 1
    assert stats["sms_sent_total"] == 3
    assert len(listed) == 2
    assert all(item.phone.endswith("3210") and "98765" not in item.phone for item in listed)


@pytest.mark.asyncio
async def test_issued_code_is_committed_before_it_is_delivered() -> None:
    delivery = _CapturingDelivery()

    result = await OtcService.issue(
        SessionLocal,
        recipient=OtcRecipient(name="Asha Rao", phone="+919876543210"),
        course_id="learn-ai",
        reason="promotional",
        issued_by="integration-test",
        delivery=delivery,
    )

    assert result.issued is True
    assert delivery.stored_before_delivery == [1]
