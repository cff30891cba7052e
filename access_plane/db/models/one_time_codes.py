from __future__ import annotations

from datetime import datetime

from sqlalchemy import BOOLEAN, CHAR, BigInteger, CheckConstraint, DateTime, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from access_plane.db.models.base import Base


class OneTimeCode(Base):
    __tablename__ = "one_time_codes"
    __table_args__ = (
        CheckConstraint(
            "reason IN ('promotional','compensation','admin_generated','test','other')",
            name="ck_one_time_codes_reason",
        ),
        CheckConstraint("expires_at > issued_at", name="ck_one_time_codes_expires_after_issue"),
        CheckConstraint(
            "(consumed = false AND consumed_at IS NULL) OR (consumed = true AND consumed_at IS NOT NULL)",
            name="ck_one_time_codes_consumed_consistency",
        ),
        Index("idx_one_time_codes_code_hash", "code_hash"),
        Index("idx_one_time_codes_course", "course_id"),
        Index("idx_one_time_codes_issued_at", "issued_at"),
        Index("idx_one_time_codes_phone", "phone"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    code_hash: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    generated_by_admin: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("true")
    )
    issued_by: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    consumed: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    consumed_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sms_sent: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    email_sent: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("false"))
    delivery_channels: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'[]'::jsonb"),
    )
