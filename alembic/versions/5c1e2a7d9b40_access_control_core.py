"""access_control_core

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e2a7d9b40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "one_time_codes",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code_hash", sa.CHAR(64), nullable=False),
        sa.Column("course_id", sa.String(64), nullable=False),
        sa.Column("recipient_name", sa.String(128), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("generated_by_admin", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("issued_by", sa.String(64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consumed_by_user_id", sa.String(64), nullable=True),
        sa.Column("sms_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "delivery_channels",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.CheckConstraint(
            "reason IN ('promotional','compensation','admin_generated','test','other')",
            name="ck_one_time_codes_reason",
        ),
        sa.CheckConstraint("expires_at > issued_at", name="ck_one_time_codes_expires_after_issue"),
        sa.CheckConstraint(
            "(consumed = false AND consumed_at IS NULL) OR (consumed = true AND consumed_at IS NOT NULL)",
            name="ck_one_time_codes_consumed_consistency",
        ),
    )
    op.create_index("idx_one_time_codes_code_hash", "one_time_codes", ["code_hash"])
    op.create_index("idx_one_time_codes_course", "one_time_codes", ["course_id"])
    op.create_index("idx_one_time_codes_issued_at", "one_time_codes", ["issued_at"])
    op.create_index("idx_one_time_codes_phone", "one_time_codes", ["phone"])

    op.create_table(
        "entitlements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("app_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("payment_reference", sa.String(128), nullable=True),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoke_reason", sa.String(256), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.CheckConstraint("status IN ('active','revoked')", name="ck_entitlements_status"),
        sa.CheckConstraint(
            "(status = 'active' AND revoked_at IS NULL) OR (status = 'revoked' AND revoked_at IS NOT NULL)",
            name="ck_entitlements_revoked_consistency",
        ),
    )
    op.create_index("idx_entitlements_user_app", "entitlements", ["user_id", "app_id"])
    op.create_index("idx_entitlements_user_purchased", "entitlements", ["user_id", "purchased_at"])
    op.create_index("idx_entitlements_expires", "entitlements", ["expires_at"])


def downgrade() -> None:
    op.drop_index("idx_entitlements_expires", table_name="entitlements")
    op.drop_index("idx_entitlements_user_purchased", table_name="entitlements")
    op.drop_index("idx_entitlements_user_app", table_name="entitlements")
    op.drop_table("entitlements")

    op.drop_index("idx_one_time_codes_phone", table_name="one_time_codes")
    op.drop_index("idx_one_time_codes_issued_at", table_name="one_time_codes")
    op.drop_index("idx_one_time_codes_course", table_name="one_time_codes")
    op.drop_index("idx_one_time_codes_code_hash", table_name="one_time_codes")
    op.drop_table("one_time_codes")
