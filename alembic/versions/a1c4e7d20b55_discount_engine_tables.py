"""discount_engine_tables

Revision ID: a1c4e7d20b55
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "a1c4e7d20b55"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("fid", sa.BigInteger(), primary_key=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("custody_address", sa.Text(), nullable=True),
        sa.Column(
            "verified_addresses",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("bankr_club_member", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("token_balance", sa.Numeric(78, 0), nullable=True),
        sa.Column("token_balance_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "discount_codes",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("code_type", sa.String(32), nullable=False, server_default=sa.text("'promotional'")),
        sa.Column("discount_scope", sa.String(16), nullable=False, server_default=sa.text("'site_wide'")),
        sa.Column(
            "target_product_ids",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("is_shared_code", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("owner_fid", sa.BigInteger(), nullable=True),
        sa.Column("gating_type", sa.String(32), nullable=False, server_default=sa.text("'none'")),
        sa.Column("required_balance", sa.Numeric(38, 6), nullable=True),
        sa.Column(
            "contract_addresses",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "chain_ids",
            postgresql.ARRAY(sa.Integer()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "whitelisted_fids",
            postgresql.ARRAY(sa.BigInteger()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "whitelisted_wallets",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("max_uses_total", sa.Integer(), nullable=True),
        sa.Column("max_uses_per_user", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("current_total_uses", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("minimum_order_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("free_shipping", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("auto_apply", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("priority_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("campaign_id", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("code", name="uq_discount_codes_code"),
        sa.CheckConstraint("discount_type IN ('percentage','fixed')", name="ck_discount_codes_type"),
        sa.CheckConstraint("discount_value > 0", name="ck_discount_codes_value_positive"),
        sa.CheckConstraint("discount_scope IN ('site_wide','product')", name="ck_discount_codes_scope"),
        sa.CheckConstraint(
            "discount_scope <> 'product' OR cardinality(target_product_ids) > 0",
            name="ck_discount_codes_product_scope_targets",
        ),
        sa.CheckConstraint(
            "gating_type IN ('none','token_balance','staking_balance','club_membership',"
            "'whitelist_user','whitelist_wallet','contract_holding')",
            name="ck_discount_codes_gating_type",
        ),
        sa.CheckConstraint("is_shared_code OR owner_fid IS NOT NULL", name="ck_discount_codes_owner_required"),
        sa.CheckConstraint(
            "max_uses_total IS NULL OR max_uses_total > 0",
            name="ck_discount_codes_max_uses_total_positive",
        ),
        sa.CheckConstraint("max_uses_per_user > 0", name="ck_discount_codes_max_uses_per_user_positive"),
        sa.CheckConstraint(
            "current_total_uses >= 0",
            name="ck_discount_codes_current_total_uses_non_negative",
        ),
        sa.CheckConstraint(
            "max_uses_total IS NULL OR current_total_uses <= max_uses_total",
            name="ck_discount_codes_current_total_uses_le_max",
        ),
    )
    op.create_index("idx_discount_codes_owner", "discount_codes", ["owner_fid"])
    op.create_index("idx_discount_codes_auto_apply", "discount_codes", ["auto_apply", "is_active"])
    op.create_index("idx_discount_codes_expires_at", "discount_codes", ["expires_at"])
    op.create_index(
        "uq_discount_codes_welcome_owner",
        "discount_codes",
        ["owner_fid"],
        unique=True,
        postgresql_where=sa.text("code_type = 'welcome'"),
    )

    op.create_table(
        "discount_code_usage",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("discount_code_id", sa.BigInteger(), nullable=False),
        sa.Column("fid", sa.BigInteger(), nullable=False),
        sa.Column("order_id", sa.String(128), nullable=False),
        sa.Column("redemption_key", sa.String(192), nullable=False),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["discount_code_id"], ["discount_codes.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("discount_code_id", "order_id", name="uq_discount_code_usage_code_order"),
        sa.UniqueConstraint("redemption_key", name="uq_discount_code_usage_redemption_key"),
        sa.CheckConstraint("discount_amount >= 0", name="ck_discount_code_usage_amount_non_negative"),
        sa.CheckConstraint("original_subtotal >= 0", name="ck_discount_code_usage_subtotal_non_negative"),
    )
    op.create_index("idx_discount_code_usage_code_fid", "discount_code_usage", ["discount_code_id", "fid"])
    op.create_index("idx_discount_code_usage_fid", "discount_code_usage", ["fid"])
    op.create_index("idx_discount_code_usage_used_at", "discount_code_usage", ["used_at"])

    op.create_table(
        "discount_eligibility_checks",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("discount_code_id", sa.BigInteger(), nullable=False),
        sa.Column("fid", sa.BigInteger(), nullable=False),
        sa.Column("wallet_address", sa.Text(), nullable=True),
        sa.Column("gating_type", sa.String(32), nullable=False),
        sa.Column("is_eligible", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("balance_found", sa.Numeric(38, 6), nullable=True),
        sa.Column("check_duration_ms", sa.Integer(), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["discount_code_id"], ["discount_codes.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_discount_eligibility_checks_code_time",
        "discount_eligibility_checks",
        ["discount_code_id", "checked_at"],
    )
    op.create_index(
        "idx_discount_eligibility_checks_fid_time",
        "discount_eligibility_checks",
        ["fid", "checked_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_discount_eligibility_checks_fid_time", table_name="discount_eligibility_checks")
    op.drop_index("idx_discount_eligibility_checks_code_time", table_name="discount_eligibility_checks")
    op.drop_table("discount_eligibility_checks")

    op.drop_index("idx_discount_code_usage_used_at", table_name="discount_code_usage")
    op.drop_index("idx_discount_code_usage_fid", table_name="discount_code_usage")
    op.drop_index("idx_discount_code_usage_code_fid", table_name="discount_code_usage")
    op.drop_table("discount_code_usage")

    op.drop_index("uq_discount_codes_welcome_owner", table_name="discount_codes")
    op.drop_index("idx_discount_codes_expires_at", table_name="discount_codes")
    op.drop_index("idx_discount_codes_auto_apply", table_name="discount_codes")
    op.drop_index("idx_discount_codes_owner", table_name="discount_codes")
    op.drop_table("discount_codes")

    op.drop_table("profiles")
