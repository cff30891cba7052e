from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ENTITLEMENT_STATUS_ACTIVE = "active"
ENTITLEMENT_STATUS_REVOKED = "revoked"
ENTITLEMENT_STATUS_EXPIRED = "expired"

ENTITLEMENT_SOURCE_ADMIN = "admin"
ENTITLEMENT_SOURCE_PURCHASE_WEBHOOK = "purchase-webhook"
ENTITLEMENT_SOURCE_OTC = "otc"
ENTITLEMENT_SOURCES = frozenset(
    {
        ENTITLEMENT_SOURCE_ADMIN,
        ENTITLEMENT_SOURCE_PURCHASE_WEBHOOK,
        ENTITLEMENT_SOURCE_OTC,
    }
)

ENTITLEMENT_GRANT_STATUS_GRANTED = "GRANTED"
ENTITLEMENT_GRANT_STATUS_UNKNOWN_APP = "UNKNOWN_APP"
ENTITLEMENT_GRANT_STATUS_INVALID_SOURCE = "INVALID_SOURCE"

ENTITLEMENT_REVOKE_STATUS_REVOKED = "REVOKED"
ENTITLEMENT_REVOKE_STATUS_ALREADY_REVOKED = "ALREADY_REVOKED"
ENTITLEMENT_REVOKE_STATUS_NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True, slots=True)
class EntitlementView:
    id: int
    user_id: str
    app_id: str
    status: str
    effective_status: str
    source: str
    payment_reference: str | None
    purchased_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    revoke_reason: str | None = None


@dataclass(frozen=True, slots=True)
class EntitlementGrantResult:
    status: str
    entitlement: EntitlementView | None = None

    @property
    def granted(self) -> bool:
        return self.status == ENTITLEMENT_GRANT_STATUS_GRANTED


@dataclass(frozen=True, slots=True)
class EntitlementRevokeResult:
    status: str
    entitlement: EntitlementView | None = None
