from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from app.economy.discounts.constants import DISCOUNT_TYPE_FIXED, DISCOUNT_TYPE_PERCENTAGE
from app.economy.discounts.types import DiscountSnapshot, ExpirationStatus

EXPIRATION_VALID_AFTER_DAYS = 7


def _format_value(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return str(value.normalize())


def format_display_text(discount: DiscountSnapshot) -> str:
    value = _format_value(discount.discount_value)
    if discount.discount_type == DISCOUNT_TYPE_PERCENTAGE:
        return f"{value}% off"
    if discount.discount_type == DISCOUNT_TYPE_FIXED:
        return f"${value} off"
    return f"{value} discount"


def expiration_status(discount: DiscountSnapshot, *, now_utc: datetime) -> ExpirationStatus:
    if discount.expires_at is None:
        return ExpirationStatus(status="no_expiration", message="No expiration")

    remaining = discount.expires_at - now_utc
    if remaining <= timedelta(0):
        return ExpirationStatus(status="expired", message="Expired")

    days = remaining // timedelta(days=1)
    hours = remaining // timedelta(hours=1)
    if days > EXPIRATION_VALID_AFTER_DAYS:
        return ExpirationStatus(status="valid", message=f"Expires in {days} days")
    if days > 1:
        return ExpirationStatus(status="expiring_soon", message=f"Expires in {days} days")
    if hours > 1:
        return ExpirationStatus(status="expiring_today", message=f"Expires in {hours} hours")
    return ExpirationStatus(status="expiring_soon", message="Expires soon")
