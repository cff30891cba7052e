from access_plane.access.guard.evaluator import GuardEvaluator
from access_plane.access.guard.sequencing import EvaluationSequencer, LatestRequestGate, PageGuard
from access_plane.access.guard.types import (
    REQUIRE_ADMIN,
    REQUIRE_ADMIN_HEALTH_COOKIE,
    REQUIRE_SESSION,
    Allow,
    Decision,
    DenyRedirect,
    DenyShow,
    GuardContext,
    Requirement,
    require_entitlement,
)

__all__ = [
    "Allow",
    "Decision",
    "DenyRedirect",
    "DenyShow",
    "EvaluationSequencer",
    "GuardContext",
    "GuardEvaluator",
    "LatestRequestGate",
    "PageGuard",
    "REQUIRE_ADMIN",
    "REQUIRE_ADMIN_HEALTH_COOKIE",
    "REQUIRE_SESSION",
    "Requirement",
    "require_entitlement",
]
