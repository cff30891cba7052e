from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from access_plane.access.otc.service import OtcService
from access_plane.access.otc.types import OTC_VERIFY_STATUS_ALREADY_CONSUMED, OTC_VERIFY_STATUS_VERIFIED
from access_plane.core.config import get_settings
from access_plane.db.models.entitlements import Entitlement
from access_plane.db.models.one_time_codes import OneTimeCode
from access_plane.db.session import SessionLocal
from access_plane.services.otc_codes import hash_otc_code, normalize_otc_code

UTC = timezone.utc


async def _create_code(*, raw_code: str, course_id: str, issued_at: datetime) -> OneTimeCode:
    code = OneTimeCode(
        code_hash=hash_otc_code(
            normalized_code=normalize_otc_code(raw_code),
            pepper=get_settings().otc_secret_pepper,
        ),
        course_id=course_id,
        recipient_name="Concurrency Learner",
        phone="+919876543210",
        email=None,
        reason="test",
        generated_by_admin=True,
        issued_by="integration-test",
        issued_at=issued_at,
        expires_at=issued_at + timedelta(minutes=10),
        consumed=False,
        sms_sent=False,
        email_sent=False,
        delivery_channels=["sms"],
    )
    async with SessionLocal.begin() as session:
        session.add(code)
        await session.flush()
    return code


@pytest.mark.asyncio
async def test_parallel_verify_consumes_code_exactly_once() -> None:
    issued_at = datetime.now(UTC) - timedelta(minutes=1)
    code = await _create_code(raw_code="RACE2345", course_id="learn-pr", issued_at=issued_at)
    barrier = asyncio.Event()

    async def _attempt(user_id: str) -> str:
        await barrier.wait()
        async with SessionLocal.begin() as session:
            result = await OtcService.verify(
                session,
                code="RACE2345",
                course_id="learn-pr",
                redeemed_by_user_id=user_id,
            )
        return result.status

    task_1 = asyncio.create_task(_attempt("101"))
    task_2 = asyncio.create_task(_attempt("102"))
    barrier.set()
    outcomes = await asyncio.gather(task_1, task_2)

    assert sorted(outcomes) == [OTC_VERIFY_STATUS_ALREADY_CONSUMED, OTC_VERIFY_STATUS_VERIFIED]

    async with SessionLocal.begin() as session:
        stored = await session.get(OneTimeCode, code.id)
        assert stored is not None
        assert stored.consumed is True
        assert stored.consumed_by_user_id in {"101", "102"}
        granted = await session.scalar(
            select(func.count(Entitlement.id)).where(Entitlement.payment_reference == f"otc:{code.id}")
        )
        assert granted == 1
