from __future__ import annotations

from datetime import datetime

from pydantic import Field

from access_plane.api.routes.otc_models import CamelModel


class EntitlementGrantRequest(CamelModel):
    user_id: str = Field(min_length=1, max_length=64)
    app_id: str = Field(min_length=1, max_length=64)
    source: str = Field(default="admin", min_length=1, max_length=32)
    payment_reference: str | None = Field(default=None, max_length=128)


class EntitlementRevokeRequest(CamelModel):
    status: str = Field(min_length=1, max_length=16)
    reason: str | None = Field(default=None, max_length=256)


class EntitlementResponse(CamelModel):
    id: int
    user_id: str
    app_id: str
    status: str
    effective_status: str
    source: str
    payment_reference: str | None = None
    purchased_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    revoke_reason: str | None = None


class EntitlementListResponse(CamelModel):
    user_id: str
    entitlements: list[EntitlementResponse]


class EntitlementCheckResponse(CamelModel):
    app_id: str
    entitled: bool


class EntitlementAppStatsResponse(CamelModel):
    app_id: str
    active_total: int = Field(ge=0)
    expired_total: int = Field(ge=0)
    revoked_total: int = Field(ge=0)


class EntitlementStatsResponse(CamelModel):
    generated_at: datetime
    active_total: int = Field(ge=0)
    expired_total: int = Field(ge=0)
    revoked_total: int = Field(ge=0)
    apps: list[EntitlementAppStatsResponse]
