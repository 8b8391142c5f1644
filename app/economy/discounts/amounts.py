from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from app.economy.discounts.constants import (
    CENT,
    DISCOUNT_TYPE_FIXED,
    DISCOUNT_TYPE_PERCENTAGE,
    MAX_PERCENTAGE_VALUE,
)
from app.economy.discounts.types import DiscountAmount, DiscountSnapshot

ZERO = Decimal("0")


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_amount(
    discount: DiscountSnapshot,
    subtotal: Decimal,
    shipping_amount: Decimal = ZERO,
) -> DiscountAmount:
    subtotal = max(Decimal(subtotal), ZERO)
    shipping_amount = max(Decimal(shipping_amount), ZERO)

    percentage: Decimal | None = None
    if discount.discount_type == DISCOUNT_TYPE_PERCENTAGE:
        percentage = min(discount.discount_value, MAX_PERCENTAGE_VALUE)
        amount = subtotal * percentage / Decimal(100)
    elif discount.discount_type == DISCOUNT_TYPE_FIXED:
        amount = min(discount.discount_value, subtotal)
    else:
        amount = ZERO

    amount = min(_to_cents(max(amount, ZERO)), _to_cents(subtotal))
    shipping_discount = _to_cents(shipping_amount) if discount.free_shipping else ZERO

    return DiscountAmount(
        amount=amount,
        free_shipping=discount.free_shipping,
        shipping_discount=shipping_discount,
        final_total=max(_to_cents(subtotal) - amount, ZERO),
        discount_percentage=percentage,
    )
