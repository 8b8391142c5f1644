from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.discounts_repo import DiscountsRepo
from app.economy.discounts.constants import (
    REASON_ALREADY_USED,
    REASON_BELOW_MINIMUM_ORDER,
    REASON_EXHAUSTED,
    REASON_EXPIRED,
    REASON_GATE_NOT_SATISFIED,
    REASON_NOT_FOUND,
    REASON_NOT_OWNED_BY_USER,
    REASON_SCOPE_MISMATCH,
    SCOPE_PRODUCT,
    SCOPE_SITE_WIDE,
)
from app.economy.discounts.gating import evaluate_gate
from app.economy.discounts.sources import GatingSources
from app.economy.discounts.types import DiscountSnapshot, EligibilityContext, ValidityResult


def is_expired(discount: DiscountSnapshot, *, now_utc: datetime) -> bool:
    return discount.expires_at is not None and discount.expires_at <= now_utc


def is_exhausted(discount: DiscountSnapshot) -> bool:
    return (
        discount.max_uses_total is not None
        and discount.current_total_uses >= discount.max_uses_total
    )


def matches_scope(discount: DiscountSnapshot, product_ids: tuple[str, ...]) -> bool:
    if discount.discount_scope == SCOPE_SITE_WIDE:
        return True
    if discount.discount_scope == SCOPE_PRODUCT:
        return bool(set(discount.target_product_ids) & set(product_ids))
    return False


def check_preconditions(
    discount: DiscountSnapshot | None,
    context: EligibilityContext,
    *,
    now_utc: datetime,
) -> ValidityResult | None:
    """Existence, expiry, total cap and ownership; ``None`` when all pass."""
    if discount is None or not discount.is_active:
        return ValidityResult.invalid(REASON_NOT_FOUND, "discount code not found")
    if is_expired(discount, now_utc=now_utc):
        return ValidityResult.invalid(REASON_EXPIRED, "this discount code has expired")
    if is_exhausted(discount):
        return ValidityResult.invalid(
            REASON_EXHAUSTED,
            "this discount code has reached its usage limit",
        )
    if not discount.is_shared_code and discount.owner_fid != context.fid:
        return ValidityResult.invalid(
            REASON_NOT_OWNED_BY_USER,
            "this discount code is not valid for your account",
        )
    return None


def check_order_fit(
    discount: DiscountSnapshot,
    context: EligibilityContext,
) -> ValidityResult | None:
    if not matches_scope(discount, context.product_ids):
        return ValidityResult.invalid(
            REASON_SCOPE_MISMATCH,
            "this discount does not apply to the products in your cart",
        )
    minimum = discount.minimum_order_amount
    if minimum is not None and context.subtotal < minimum:
        return ValidityResult.invalid(
            REASON_BELOW_MINIMUM_ORDER,
            f"minimum order amount of ${minimum} required for this discount",
        )
    return None


async def check_validity(
    session: AsyncSession,
    discount: DiscountSnapshot | None,
    context: EligibilityContext,
    sources: GatingSources,
    *,
    now_utc: datetime,
) -> ValidityResult:
    failure = check_preconditions(discount, context, now_utc=now_utc)
    if failure is not None:
        return failure
    assert discount is not None

    used_by_user = await DiscountsRepo.count_usage_for_user(
        session,
        discount_code_id=discount.id,
        fid=context.fid,
    )
    if used_by_user >= discount.max_uses_per_user:
        return ValidityResult.invalid(
            REASON_ALREADY_USED,
            "you have already used this discount code",
        )

    failure = check_order_fit(discount, context)
    if failure is not None:
        return failure

    gate = await evaluate_gate(discount, context, sources)
    if not gate.satisfied:
        return ValidityResult.invalid(REASON_GATE_NOT_SATISFIED, gate.detail, gate=gate)

    return ValidityResult.valid(gate=gate)
