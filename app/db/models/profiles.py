from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BOOLEAN, BigInteger, DateTime, Numeric, Text, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class Profile(Base):
    """Farcaster profile row kept in sync by the identity service.

    The discount engine only reads it: wallet addresses for balance gates and
    the club membership flag.
    """

    __tablename__ = "profiles"

    fid: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    custody_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_addresses: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'")
    )
    bankr_club_member: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    token_balance: Mapped[Decimal | None] = mapped_column(Numeric(78, 0), nullable=True)
    token_balance_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
