from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from app.economy.discounts.presentation import expiration_status, format_display_text
from tests.economy.discount_fixtures import NOW_UTC, make_discount


def test_format_display_text() -> None:
    assert format_display_text(make_discount(discount_value=Decimal("15.00"))) == "15% off"
    assert (
        format_display_text(make_discount(discount_type="fixed", discount_value=Decimal("30")))
        == "$30 off"
    )
    assert (
        format_display_text(make_discount(discount_type="fixed", discount_value=Decimal("12.50")))
        == "$12.5 off"
    )


@pytest.mark.parametrize(
    ("expires_in", "status", "message"),
    [
        (None, "no_expiration", "No expiration"),
        (timedelta(0), "expired", "Expired"),
        (timedelta(days=10, hours=3), "valid", "Expires in 10 days"),
        (timedelta(days=5), "expiring_soon", "Expires in 5 days"),
        (timedelta(hours=30), "expiring_today", "Expires in 30 hours"),
        (timedelta(minutes=45), "expiring_soon", "Expires soon"),
    ],
)
def test_expiration_status(expires_in, status: str, message: str) -> None:
    expires_at = NOW_UTC + expires_in if expires_in is not None else None

    result = expiration_status(make_discount(expires_at=expires_at), now_utc=NOW_UTC)

    assert result.status == status
    assert result.message == message
