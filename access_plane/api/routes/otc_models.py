from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OtcIssueRequest(CamelModel):
    name: str = Field(min_length=1, max_length=128)
    phone: str = Field(pattern=r"^\+\d{10,15}$")
    course_id: str = Field(min_length=1, max_length=64)
    email: str | None = Field(default=None, max_length=320)
    reason: str = Field(default="admin_generated", min_length=1, max_length=32)


class OtcIssueResponse(CamelModel):
    otc_id: int
    sms_sent: bool
    email_sent: bool
    expires_at: datetime
    course_name: str
    delivery_channels: list[str]


class OtcVerifyRequest(CamelModel):
    code: str = Field(min_length=1, max_length=32)
    course_id: str = Field(min_length=1, max_length=64)


class OtcVerifyResponse(CamelModel):
    verified: bool
    course_id: str
    course_name: str
    consumed_at: datetime
    entitlement_granted: bool


class OtcListItemResponse(CamelModel):
    id: int
    course_id: str
    recipient_name: str
    phone: str
    email: str | None = None
    reason: str
    issued_by: str
    issued_at: datetime
    expires_at: datetime
    consumed: bool
    consumed_at: datetime | None = None
    sms_sent: bool
    email_sent: bool
    delivery_channels: list[str]


class OtcListResponse(CamelModel):
    codes: list[OtcListItemResponse]


class OtcStatsResponse(CamelModel):
    generated_at: datetime
    issued_total: int = Field(ge=0)
    consumed_total: int = Field(ge=0)
    expired_unused_total: int = Field(ge=0)
    active_total: int = Field(ge=0)
    sms_sent_total: int = Field(ge=0)
    email_sent_total: int = Field(ge=0)
