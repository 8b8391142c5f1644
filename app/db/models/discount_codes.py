from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BOOLEAN,
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class DiscountCode(Base):
    __tablename__ = "discount_codes"
    __table_args__ = (
        UniqueConstraint("code", name="uq_discount_codes_code"),
        CheckConstraint(
            "discount_type IN ('percentage','fixed')",
            name="ck_discount_codes_type",
        ),
        CheckConstraint("discount_value > 0", name="ck_discount_codes_value_positive"),
        CheckConstraint(
            "discount_scope IN ('site_wide','product')",
            name="ck_discount_codes_scope",
        ),
        CheckConstraint(
            "discount_scope <> 'product' OR cardinality(target_product_ids) > 0",
            name="ck_discount_codes_product_scope_targets",
        ),
        CheckConstraint(
            "gating_type IN ('none','token_balance','staking_balance','club_membership',"
            "'whitelist_user','whitelist_wallet','contract_holding','combined')",
            name="ck_discount_codes_gating_type",
        ),
        CheckConstraint(
            "is_shared_code OR owner_fid IS NOT NULL",
            name="ck_discount_codes_owner_required",
        ),
        CheckConstraint(
            "max_uses_total IS NULL OR max_uses_total > 0",
            name="ck_discount_codes_max_uses_total_positive",
        ),
        CheckConstraint(
            "max_uses_per_user > 0",
            name="ck_discount_codes_max_uses_per_user_positive",
        ),
        CheckConstraint(
            "current_total_uses >= 0",
            name="ck_discount_codes_current_total_uses_non_negative",
        ),
        CheckConstraint(
            "max_uses_total IS NULL OR current_total_uses <= max_uses_total",
            name="ck_discount_codes_current_total_uses_le_max",
        ),
        Index("idx_discount_codes_owner", "owner_fid"),
        Index("idx_discount_codes_auto_apply", "auto_apply", "is_active"),
        Index("idx_discount_codes_expires_at", "expires_at"),
        Index(
            "uq_discount_codes_welcome_owner",
            "owner_fid",
            unique=True,
            postgresql_where=text("code_type = 'welcome'"),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    code_type: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text("'promotional'")
    )
    discount_scope: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'site_wide'")
    )
    target_product_ids: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'")
    )
    is_shared_code: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("true")
    )
    owner_fid: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    gating_type: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text("'none'")
    )
    required_balance: Mapped[Decimal | None] = mapped_column(Numeric(38, 6), nullable=True)
    contract_addresses: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'")
    )
    chain_ids: Mapped[list[int]] = mapped_column(
        ARRAY(Integer), nullable=False, server_default=text("'{}'")
    )
    whitelisted_fids: Mapped[list[int]] = mapped_column(
        ARRAY(BigInteger), nullable=False, server_default=text("'{}'")
    )
    whitelisted_wallets: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'")
    )
    gating_config: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )

    max_uses_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_uses_per_user: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    current_total_uses: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    minimum_order_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    free_shipping: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    auto_apply: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    priority_level: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    is_active: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("true")
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    campaign_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
