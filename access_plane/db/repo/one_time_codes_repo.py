from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from access_plane.db.models.one_time_codes import OneTimeCode


class OneTimeCodesRepo:
    @staticmethod
    async def create(session: AsyncSession, *, code: OneTimeCode) -> OneTimeCode:
        session.add(code)
        await session.flush()
        return code

    @staticmethod
    async def has_live_code_hash(
        session: AsyncSession,
        *,
        code_hash: str,
        now_utc: datetime,
    ) -> bool:
        stmt = select(
            exists().where(
                OneTimeCode.code_hash == code_hash,
                OneTimeCode.consumed.is_(False),
                OneTimeCode.expires_at > now_utc,
            )
        )
        result = await session.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def get_latest_by_hash(session: AsyncSession, code_hash: str) -> OneTimeCode | None:
        stmt = (
            select(OneTimeCode)
            .where(OneTimeCode.code_hash == code_hash)
            .order_by(OneTimeCode.issued_at.desc(), OneTimeCode.id.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume_if_available(
        session: AsyncSession,
        *,
        otc_id: int,
        now_utc: datetime,
        consumed_by_user_id: str | None,
    ) -> bool:
        stmt = (
            update(OneTimeCode)
            .where(
                OneTimeCode.id == otc_id,
                OneTimeCode.consumed.is_(False),
                OneTimeCode.expires_at > now_utc,
            )
            .values(
                consumed=True,
                consumed_at=now_utc,
                consumed_by_user_id=consumed_by_user_id,
            )
            .returning(OneTimeCode.id)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def record_delivery(
        session: AsyncSession,
        *,
        otc_id: int,
        sms_sent: bool,
        email_sent: bool,
        delivery_channels: list[str],
    ) -> None:
        stmt = (
            update(OneTimeCode)
            .where(OneTimeCode.id == otc_id)
            .values(
                sms_sent=sms_sent,
                email_sent=email_sent,
                delivery_channels=delivery_channels,
            )
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def list_recent(
        session: AsyncSession,
        *,
        course_id: str | None = None,
        limit: int = 50,
    ) -> list[OneTimeCode]:
        stmt = (
            select(OneTimeCode)
            .order_by(OneTimeCode.issued_at.desc(), OneTimeCode.id.desc())
            .limit(limit)
        )
        if course_id:
            stmt = stmt.where(OneTimeCode.course_id == course_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_stats(session: AsyncSession, *, now_utc: datetime) -> dict[str, int]:
        not_consumed = OneTimeCode.consumed.is_(False)
        stmt = select(
            func.count(OneTimeCode.id),
            func.count(OneTimeCode.id).filter(OneTimeCode.consumed.is_(True)),
            func.count(OneTimeCode.id).filter(not_consumed, OneTimeCode.expires_at <= now_utc),
            func.count(OneTimeCode.id).filter(not_consumed, OneTimeCode.expires_at > now_utc),
            func.coalesce(func.sum(case((OneTimeCode.sms_sent.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((OneTimeCode.email_sent.is_(True), 1), else_=0)), 0),
        )
        row = (await session.execute(stmt)).one()
        return {
            "issued_total": int(row[0] or 0),
            "consumed_total": int(row[1] or 0),
            "expired_unused_total": int(row[2] or 0),
            "active_total": int(row[3] or 0),
            "sms_sent_total": int(row[4] or 0),
            "email_sent_total": int(row[5] or 0),
        }
