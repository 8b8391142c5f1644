from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class DiscountCodeUsage(Base):
    __tablename__ = "discount_code_usage"
    __table_args__ = (
        UniqueConstraint("discount_code_id", "order_id", name="uq_discount_code_usage_code_order"),
        UniqueConstraint("redemption_key", name="uq_discount_code_usage_redemption_key"),
        CheckConstraint(
            "discount_amount >= 0",
            name="ck_discount_code_usage_amount_non_negative",
        ),
        CheckConstraint(
            "original_subtotal >= 0",
            name="ck_discount_code_usage_subtotal_non_negative",
        ),
        Index("idx_discount_code_usage_code_fid", "discount_code_id", "fid"),
        Index("idx_discount_code_usage_fid", "fid"),
        Index("idx_discount_code_usage_used_at", "used_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    discount_code_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("discount_codes.id", ondelete="RESTRICT"),
        nullable=False,
    )
    fid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_id: Mapped[str] = mapped_column(String(128), nullable=False)
    redemption_key: Mapped[str] = mapped_column(String(192), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
