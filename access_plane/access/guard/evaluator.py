from __future__ import annotations

from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit

import structlog

from access_plane.access.guard.types import (
    ACCESS_DENIED_MESSAGE,
    REQUIREMENT_ADMIN,
    REQUIREMENT_ADMIN_HEALTH_COOKIE,
    REQUIREMENT_SESSION,
    Allow,
    Decision,
    DenyRedirect,
    DenyShow,
    GuardContext,
    Requirement,
)
from access_plane.core.catalog import is_free_app, is_known_course
from access_plane.core.errors import SessionUnavailableError
from access_plane.services.admin_health_client import AdminHealthClient
from access_plane.services.identity_client import IdentityClient
from access_plane.services.redirects import (
    ADMIN_SETUP_PATH,
    HOME_PATH,
    admin_login_redirect,
    enrollment_redirect,
    login_redirect,
)

logger = structlog.get_logger(__name__)

EntitlementChecker = Callable[[str, str], Awaitable[bool]]


def _path_only(path: str) -> str:
    try:
        return urlsplit(path).path
    except ValueError:
        return path


class GuardEvaluator:
    """Single decision procedure behind every protected page.

    ``evaluate`` never raises: identity, health and ledger failures all
    resolve to a deny Decision. No switch disables the checks; a permissive
    setup is an identity client configured with IDENTITY_MODE=static.
    """

    def __init__(
        self,
        *,
        identity_client: IdentityClient,
        admin_health_client: AdminHealthClient,
        entitlement_checker: EntitlementChecker | None = None,
    ) -> None:
        self._identity_client = identity_client
        self._admin_health_client = admin_health_client
        self._entitlement_checker = entitlement_checker

    async def evaluate(self, requirement: Requirement, context: GuardContext) -> Decision:
        try:
            if requirement.kind == REQUIREMENT_SESSION:
                return await self._require_session(context)
            if requirement.kind == REQUIREMENT_ADMIN:
                return await self._require_admin(context)
            if requirement.kind == REQUIREMENT_ADMIN_HEALTH_COOKIE:
                return await self._require_admin_health_cookie(context)
            return await self._require_entitlement(context, app_id=requirement.app_id or "")
        except Exception:
            logger.exception("guard_evaluation_failed", requirement=requirement.kind)
            if requirement.kind == REQUIREMENT_ADMIN_HEALTH_COOKIE:
                return DenyRedirect(path=admin_login_redirect(context.path))
            return DenyRedirect(path=login_redirect(context.path))

    async def _require_session(self, context: GuardContext) -> Decision:
        try:
            user = await self._identity_client.get_current_user(context.credentials)
        except SessionUnavailableError as exc:
            logger.warning("guard_identity_unavailable", reason=str(exc))
            user = None

        if user is None:
            return DenyRedirect(path=login_redirect(context.path))
        return Allow(user=user)

    async def _require_admin(self, context: GuardContext) -> Decision:
        decision = await self._require_session(context)
        if not isinstance(decision, Allow) or decision.user is None:
            return decision

        try:
            is_admin = await self._identity_client.is_admin(decision.user, context.credentials)
        except SessionUnavailableError as exc:
            logger.warning("guard_admin_role_unavailable", user_id=decision.user.id, reason=str(exc))
            is_admin = False

        if not is_admin:
            logger.info("guard_admin_denied", user_id=decision.user.id)
            return DenyShow(message=ACCESS_DENIED_MESSAGE, then_redirect_to=HOME_PATH)
        return decision

    async def _require_admin_health_cookie(self, context: GuardContext) -> Decision:
        try:
            health = await self._admin_health_client.check(context.credentials)
        except SessionUnavailableError as exc:
            logger.warning("guard_admin_health_unavailable", reason=str(exc))
            return DenyRedirect(path=admin_login_redirect(context.path))

        if not health.is_authorized:
            if health.status_code != 401:
                logger.warning("guard_admin_health_unexpected_status", status_code=health.status_code)
            return DenyRedirect(path=admin_login_redirect(context.path))

        if health.needs_setup and _path_only(context.path) != ADMIN_SETUP_PATH:
            return DenyRedirect(path=ADMIN_SETUP_PATH)
        return Allow()

    async def _require_entitlement(self, context: GuardContext, *, app_id: str) -> Decision:
        decision = await self._require_session(context)
        if not isinstance(decision, Allow) or decision.user is None:
            return decision
        if not is_known_course(app_id):
            logger.warning("guard_unknown_app", app_id=app_id)
            return DenyRedirect(path=HOME_PATH)
        if is_free_app(app_id):
            return decision

        entitled = False
        if self._entitlement_checker is None:
            logger.error("guard_entitlement_checker_missing", app_id=app_id)
        else:
            try:
                entitled = await self._entitlement_checker(decision.user.id, app_id)
            except Exception:
                logger.exception("guard_entitlement_check_failed", app_id=app_id)

        if not entitled:
            return DenyRedirect(path=enrollment_redirect(app_id, context.path))
        return decision
