from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from app.economy.discounts.constants import SCOPE_PRODUCT
from app.economy.discounts.types import EligibleDiscount


def ranking_key(candidate: EligibleDiscount) -> tuple[int, int, Decimal, int, str, int]:
    """Sort key where the best candidate sorts first.

    Gated before non-gated, product scope before site-wide, higher value,
    higher priority level. Code and id make the order total.
    """
    discount = candidate.discount
    return (
        0 if discount.is_gated else 1,
        0 if discount.discount_scope == SCOPE_PRODUCT else 1,
        -discount.discount_value,
        -discount.priority_level,
        discount.code,
        discount.id,
    )


def rank_candidates(candidates: Iterable[EligibleDiscount]) -> list[EligibleDiscount]:
    return sorted(candidates, key=ranking_key)


def select_best(candidates: Iterable[EligibleDiscount]) -> EligibleDiscount | None:
    return min(candidates, key=ranking_key, default=None)
