from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Union

from access_plane.services.identity_client import IdentityUser, SessionCredentials

REQUIREMENT_SESSION = "session"
REQUIREMENT_ADMIN = "admin"
REQUIREMENT_ADMIN_HEALTH_COOKIE = "admin_health_cookie"
REQUIREMENT_ENTITLEMENT = "entitlement"
REQUIREMENT_KINDS = frozenset(
    {
        REQUIREMENT_SESSION,
        REQUIREMENT_ADMIN,
        REQUIREMENT_ADMIN_HEALTH_COOKIE,
        REQUIREMENT_ENTITLEMENT,
    }
)

ACCESS_DENIED_MESSAGE = "Access Denied"
ACCESS_DENIED_REDIRECT_DELAY = timedelta(seconds=2)


@dataclass(frozen=True, slots=True)
class Requirement:
    kind: str
    app_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in REQUIREMENT_KINDS:
            raise ValueError(f"unknown guard requirement: {self.kind}")
        if self.kind == REQUIREMENT_ENTITLEMENT and not self.app_id:
            raise ValueError("entitlement requirement needs an app_id")


REQUIRE_SESSION = Requirement(kind=REQUIREMENT_SESSION)
REQUIRE_ADMIN = Requirement(kind=REQUIREMENT_ADMIN)
REQUIRE_ADMIN_HEALTH_COOKIE = Requirement(kind=REQUIREMENT_ADMIN_HEALTH_COOKIE)


def require_entitlement(app_id: str) -> Requirement:
    return Requirement(kind=REQUIREMENT_ENTITLEMENT, app_id=app_id)


@dataclass(frozen=True, slots=True)
class GuardContext:
    path: str
    credentials: SessionCredentials = field(default_factory=SessionCredentials)


@dataclass(frozen=True, slots=True)
class Allow:
    user: IdentityUser | None = None


@dataclass(frozen=True, slots=True)
class DenyRedirect:
    path: str


@dataclass(frozen=True, slots=True)
class DenyShow:
    message: str
    then_redirect_after: timedelta = ACCESS_DENIED_REDIRECT_DELAY
    then_redirect_to: str = "/"


Decision = Union[Allow, DenyRedirect, DenyShow]
