from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BOOLEAN, BigInteger, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class DiscountEligibilityCheck(Base):
    __tablename__ = "discount_eligibility_checks"
    __table_args__ = (
        Index("idx_discount_eligibility_checks_code_time", "discount_code_id", "checked_at"),
        Index("idx_discount_eligibility_checks_fid_time", "fid", "checked_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    discount_code_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("discount_codes.id", ondelete="CASCADE"),
        nullable=False,
    )
    fid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    wallet_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    gating_type: Mapped[str] = mapped_column(String(32), nullable=False)
    is_eligible: Mapped[bool] = mapped_column(BOOLEAN, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    balance_found: Mapped[Decimal | None] = mapped_column(Numeric(38, 6), nullable=True)
    check_duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    checked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
