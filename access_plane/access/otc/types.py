from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

OTC_REASON_PROMOTIONAL = "promotional"
OTC_REASON_COMPENSATION = "compensation"
OTC_REASON_ADMIN_GENERATED = "admin_generated"
OTC_REASON_TEST = "test"
OTC_REASON_OTHER = "other"
OTC_REASONS = frozenset(
    {
        OTC_REASON_PROMOTIONAL,
        OTC_REASON_COMPENSATION,
        OTC_REASON_ADMIN_GENERATED,
        OTC_REASON_TEST,
        OTC_REASON_OTHER,
    }
)

OTC_ISSUE_STATUS_ISSUED = "ISSUED"
OTC_ISSUE_STATUS_UNKNOWN_COURSE = "UNKNOWN_COURSE"
OTC_ISSUE_STATUS_INVALID_RECIPIENT = "INVALID_RECIPIENT"
OTC_ISSUE_STATUS_INVALID_REASON = "INVALID_REASON"

OTC_VERIFY_STATUS_VERIFIED = "VERIFIED"
OTC_VERIFY_STATUS_NOT_FOUND = "NOT_FOUND"
OTC_VERIFY_STATUS_COURSE_MISMATCH = "COURSE_MISMATCH"
OTC_VERIFY_STATUS_EXPIRED = "EXPIRED"
OTC_VERIFY_STATUS_ALREADY_CONSUMED = "ALREADY_CONSUMED"


@dataclass(frozen=True, slots=True)
class OtcRecipient:
    name: str
    phone: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class OtcIssueResult:
    """Outcome of an issuance. Carries no code value by construction."""

    status: str
    otc_id: int | None = None
    course_name: str | None = None
    expires_at: datetime | None = None
    sms_sent: bool = False
    email_sent: bool = False
    delivery_channels: tuple[str, ...] = ()

    @property
    def issued(self) -> bool:
        return self.status == OTC_ISSUE_STATUS_ISSUED


@dataclass(frozen=True, slots=True)
class OtcVerifyResult:
    status: str
    otc_id: int | None = None
    course_id: str | None = None
    consumed_at: datetime | None = None
    entitlement_id: int | None = None
    recipient_name: str | None = None
    recipient_email: str | None = None

    @property
    def verified(self) -> bool:
        return self.status == OTC_VERIFY_STATUS_VERIFIED


@dataclass(frozen=True, slots=True)
class OtcListItem:
    id: int
    course_id: str
    recipient_name: str
    phone: str
    email: str | None
    reason: str
    issued_by: str
    issued_at: datetime
    expires_at: datetime
    consumed: bool
    consumed_at: datetime | None
    sms_sent: bool
    email_sent: bool
    delivery_channels: tuple[str, ...]
