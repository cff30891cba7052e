from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from access_plane.db.models.entitlements import Entitlement


class EntitlementsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, entitlement: Entitlement) -> Entitlement:
        session.add(entitlement)
        await session.flush()
        return entitlement

    @staticmethod
    async def get_by_id(session: AsyncSession, entitlement_id: int) -> Entitlement | None:
        return await session.get(Entitlement, entitlement_id, populate_existing=True)

    @staticmethod
    async def revoke_if_active(
        session: AsyncSession,
        *,
        entitlement_id: int,
        now_utc: datetime,
        reason: str | None,
    ) -> bool:
        stmt = (
            update(Entitlement)
            .where(
                Entitlement.id == entitlement_id,
                Entitlement.status == "active",
            )
            .values(status="revoked", revoked_at=now_utc, revoke_reason=reason)
            .returning(Entitlement.id)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def has_active(
        session: AsyncSession,
        *,
        user_id: str,
        app_ids: Sequence[str],
        now_utc: datetime,
    ) -> bool:
        if not app_ids:
            return False

        stmt = select(
            exists().where(
                Entitlement.user_id == user_id,
                Entitlement.app_id.in_(list(app_ids)),
                Entitlement.status == "active",
                Entitlement.expires_at >= now_utc,
            )
        )
        result = await session.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def list_for_user(session: AsyncSession, *, user_id: str) -> list[Entitlement]:
        stmt = (
            select(Entitlement)
            .where(Entitlement.user_id == user_id)
            .order_by(Entitlement.purchased_at.desc(), Entitlement.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_stats(
        session: AsyncSession,
        *,
        now_utc: datetime,
        app_id: str | None = None,
    ) -> list[dict[str, str | int]]:
        is_active = Entitlement.status == "active"
        stmt = (
            select(
                Entitlement.app_id,
                func.count(Entitlement.id).filter(is_active, Entitlement.expires_at >= now_utc),
                func.count(Entitlement.id).filter(is_active, Entitlement.expires_at < now_utc),
                func.count(Entitlement.id).filter(Entitlement.status == "revoked"),
            )
            .group_by(Entitlement.app_id)
            .order_by(Entitlement.app_id)
        )
        if app_id:
            stmt = stmt.where(Entitlement.app_id == app_id)
        rows = (await session.execute(stmt)).all()
        return [
            {
                "app_id": row[0],
                "active_total": int(row[1] or 0),
                "expired_total": int(row[2] or 0),
                "revoked_total": int(row[3] or 0),
            }
            for row in rows
        ]
