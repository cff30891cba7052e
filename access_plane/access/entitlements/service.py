from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from access_plane.access.entitlements.types import (
    ENTITLEMENT_GRANT_STATUS_GRANTED,
    ENTITLEMENT_GRANT_STATUS_INVALID_SOURCE,
    ENTITLEMENT_GRANT_STATUS_UNKNOWN_APP,
    ENTITLEMENT_REVOKE_STATUS_ALREADY_REVOKED,
    ENTITLEMENT_REVOKE_STATUS_NOT_FOUND,
    ENTITLEMENT_REVOKE_STATUS_REVOKED,
    ENTITLEMENT_SOURCES,
    ENTITLEMENT_STATUS_ACTIVE,
    ENTITLEMENT_STATUS_EXPIRED,
    ENTITLEMENT_STATUS_REVOKED,
    EntitlementGrantResult,
    EntitlementRevokeResult,
    EntitlementView,
)
from access_plane.core.catalog import access_app_ids, is_free_app, is_known_course
from access_plane.db.models.entitlements import Entitlement
from access_plane.db.repo.entitlements_repo import EntitlementsRepo

logger = structlog.get_logger(__name__)


def add_one_year(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        # Feb 29 rolls to Feb 28 of the following year.
        return moment.replace(year=moment.year + 1, day=28)


def effective_status(entitlement: Entitlement, *, now_utc: datetime) -> str:
    if entitlement.status == ENTITLEMENT_STATUS_REVOKED:
        return ENTITLEMENT_STATUS_REVOKED
    if now_utc > entitlement.expires_at:
        return ENTITLEMENT_STATUS_EXPIRED
    return ENTITLEMENT_STATUS_ACTIVE


def as_view(entitlement: Entitlement, *, now_utc: datetime) -> EntitlementView:
    return EntitlementView(
        id=entitlement.id,
        user_id=entitlement.user_id,
        app_id=entitlement.app_id,
        status=entitlement.status,
        effective_status=effective_status(entitlement, now_utc=now_utc),
        source=entitlement.source,
        payment_reference=entitlement.payment_reference,
        purchased_at=entitlement.purchased_at,
        expires_at=entitlement.expires_at,
        revoked_at=entitlement.revoked_at,
        revoke_reason=entitlement.revoke_reason,
    )


class EntitlementService:
    @staticmethod
    async def grant(
        session: AsyncSession,
        *,
        user_id: str,
        app_id: str,
        source: str,
        created_by: str,
        payment_reference: str | None = None,
        now_utc: datetime | None = None,
    ) -> EntitlementGrantResult:
        if not is_known_course(app_id):
            return EntitlementGrantResult(status=ENTITLEMENT_GRANT_STATUS_UNKNOWN_APP)
        if source not in ENTITLEMENT_SOURCES:
            return EntitlementGrantResult(status=ENTITLEMENT_GRANT_STATUS_INVALID_SOURCE)

        now = now_utc or datetime.now(timezone.utc)
        # Existing rows for the same pair are left alone; renewals stack.
        entitlement = await EntitlementsRepo.create(
            session,
            entitlement=Entitlement(
                user_id=user_id,
                app_id=app_id,
                status=ENTITLEMENT_STATUS_ACTIVE,
                source=source,
                payment_reference=payment_reference,
                purchased_at=now,
                expires_at=add_one_year(now),
                created_by=created_by,
            ),
        )
        logger.info(
            "entitlement_granted",
            entitlement_id=entitlement.id,
            user_id=user_id,
            app_id=app_id,
            source=source,
            created_by=created_by,
        )
        return EntitlementGrantResult(
            status=ENTITLEMENT_GRANT_STATUS_GRANTED,
            entitlement=as_view(entitlement, now_utc=now),
        )

    @staticmethod
    async def revoke(
        session: AsyncSession,
        *,
        entitlement_id: int,
        revoked_by: str,
        reason: str | None = None,
        now_utc: datetime | None = None,
    ) -> EntitlementRevokeResult:
        now = now_utc or datetime.now(timezone.utc)
        revoked = await EntitlementsRepo.revoke_if_active(
            session,
            entitlement_id=entitlement_id,
            now_utc=now,
            reason=reason,
        )
        entitlement = await EntitlementsRepo.get_by_id(session, entitlement_id)
        if entitlement is None:
            return EntitlementRevokeResult(status=ENTITLEMENT_REVOKE_STATUS_NOT_FOUND)

        if not revoked:
            return EntitlementRevokeResult(
                status=ENTITLEMENT_REVOKE_STATUS_ALREADY_REVOKED,
                entitlement=as_view(entitlement, now_utc=now),
            )

        logger.warning(
            "entitlement_revoked",
            entitlement_id=entitlement_id,
            user_id=entitlement.user_id,
            app_id=entitlement.app_id,
            revoked_by=revoked_by,
            reason=reason,
        )
        return EntitlementRevokeResult(
            status=ENTITLEMENT_REVOKE_STATUS_REVOKED,
            entitlement=as_view(entitlement, now_utc=now),
        )

    @staticmethod
    async def has_access(
        session: AsyncSession,
        *,
        user_id: str,
        app_id: str,
        now_utc: datetime | None = None,
    ) -> bool:
        return await EntitlementsRepo.has_active(
            session,
            user_id=user_id,
            app_ids=access_app_ids(app_id),
            now_utc=now_utc or datetime.now(timezone.utc),
        )

    @staticmethod
    async def check_course_access(
        session: AsyncSession,
        *,
        user_id: str,
        app_id: str,
        now_utc: datetime | None = None,
    ) -> bool:
        if is_free_app(app_id):
            return True
        return await EntitlementService.has_access(
            session,
            user_id=user_id,
            app_id=app_id,
            now_utc=now_utc,
        )

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: str,
        now_utc: datetime | None = None,
    ) -> list[EntitlementView]:
        now = now_utc or datetime.now(timezone.utc)
        rows = await EntitlementsRepo.list_for_user(session, user_id=user_id)
        return [as_view(row, now_utc=now) for row in rows]

    @staticmethod
    async def get_stats(
        session: AsyncSession,
        *,
        app_id: str | None = None,
        now_utc: datetime | None = None,
    ) -> list[dict[str, str | int]]:
        return await EntitlementsRepo.get_stats(
            session,
            now_utc=now_utc or datetime.now(timezone.utc),
            app_id=app_id,
        )
