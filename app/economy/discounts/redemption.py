from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.discount_code_usage import DiscountCodeUsage
from app.db.models.discount_codes import DiscountCode
from app.db.repo.discounts_repo import DiscountsRepo
from app.economy.discounts.amounts import compute_amount
from app.economy.discounts.constants import CENT, REASON_GATE_NOT_SATISFIED
from app.economy.discounts.errors import (
    ERRORS_BY_REASON,
    DiscountAlreadyUsedError,
    DiscountError,
    DiscountGateNotSatisfiedError,
    DiscountIdempotencyConflictError,
    DiscountNotFoundError,
)
from app.economy.discounts.sources import GatingSources
from app.economy.discounts.types import (
    DiscountSnapshot,
    EligibilityContext,
    RedeemResult,
    ValidityResult,
)
from app.economy.discounts.validity import check_validity
from app.services.discount_codes import normalize_discount_code

logger = structlog.get_logger(__name__)


def build_redemption_key(discount: DiscountSnapshot, *, fid: int, order_id: str) -> str:
    if discount.max_uses_per_user == 1:
        return f"{discount.id}:fid:{fid}"
    return f"{discount.id}:order:{order_id}"


def error_for_verdict(discount: DiscountSnapshot | None, verdict: ValidityResult) -> DiscountError:
    if verdict.reason == REASON_GATE_NOT_SATISFIED:
        gating_type = discount.gating_type if discount is not None else "unknown"
        return DiscountGateNotSatisfiedError(gating_type, verdict.detail)
    error_cls = ERRORS_BY_REASON.get(verdict.reason, DiscountError)
    return error_cls(verdict.detail)


def _as_result(
    usage: DiscountCodeUsage,
    discount_code: DiscountCode,
    *,
    idempotent_replay: bool,
) -> RedeemResult:
    return RedeemResult(
        usage_id=usage.id,
        discount_code_id=discount_code.id,
        code=discount_code.code,
        fid=usage.fid,
        order_id=usage.order_id,
        discount_amount=usage.discount_amount,
        original_subtotal=usage.original_subtotal,
        used_at=usage.used_at,
        current_total_uses=discount_code.current_total_uses,
        idempotent_replay=idempotent_replay,
    )


def _replay(
    usage: DiscountCodeUsage,
    discount_code: DiscountCode,
    *,
    fid: int,
) -> RedeemResult:
    if usage.fid != fid:
        raise DiscountIdempotencyConflictError(
            f"order {usage.order_id} already redeemed this code for another user"
        )
    logger.info(
        "discount_redeem_replayed",
        discount_code_id=discount_code.id,
        fid=fid,
        order_id=usage.order_id,
        usage_id=str(usage.id),
    )
    return _as_result(usage, discount_code, idempotent_replay=True)


async def redeem(
    session: AsyncSession,
    *,
    code: str,
    context: EligibilityContext,
    order_id: str,
    sources: GatingSources,
    discount_amount: Decimal | None = None,
    now_utc: datetime | None = None,
) -> RedeemResult:
    """Record one use of ``code`` for ``context.fid`` on ``order_id``.

    Must run inside the caller's transaction. The code row is locked for the
    rest of that transaction, validity is re-checked against the locked row,
    and the ledger insert plus counter increment are flushed together. A
    second call with the same order id returns the first result.

    The lock is held while gate lookups run, so redemptions of one gated code
    queue behind its balance lookups, each bounded by the gate timeout.
    A caller supplied ``discount_amount`` is clamped to the amount the code
    yields for ``context.subtotal``.
    """
    now_utc = now_utc or datetime.now(timezone.utc)
    normalized_code = normalize_discount_code(code)
    if not normalized_code:
        raise DiscountNotFoundError("empty discount code")

    discount_code = await DiscountsRepo.get_code_by_code_for_update(session, normalized_code)
    if discount_code is None:
        raise DiscountNotFoundError("discount code not found")

    existing = await DiscountsRepo.get_usage_by_order(
        session,
        discount_code_id=discount_code.id,
        order_id=order_id,
    )
    if existing is not None:
        return _replay(existing, discount_code, fid=context.fid)

    snapshot = DiscountSnapshot.from_model(discount_code)
    verdict = await check_validity(session, snapshot, context, sources, now_utc=now_utc)
    if not verdict.is_valid:
        logger.info(
            "discount_redeem_rejected",
            discount_code_id=discount_code.id,
            fid=context.fid,
            order_id=order_id,
            reason=verdict.reason,
            detail=verdict.detail,
        )
        raise error_for_verdict(snapshot, verdict)

    computed_amount = compute_amount(snapshot, context.subtotal).amount
    recorded_amount = computed_amount
    if discount_amount is not None:
        requested_amount = Decimal(discount_amount).quantize(CENT, rounding=ROUND_HALF_UP)
        recorded_amount = min(max(requested_amount, Decimal("0")), computed_amount)
        if recorded_amount != requested_amount:
            logger.warning(
                "discount_redeem_amount_clamped",
                discount_code_id=discount_code.id,
                fid=context.fid,
                order_id=order_id,
                requested_amount=str(requested_amount),
                recorded_amount=str(recorded_amount),
            )

    usage = DiscountCodeUsage(
        id=uuid4(),
        discount_code_id=discount_code.id,
        fid=context.fid,
        order_id=order_id,
        redemption_key=build_redemption_key(snapshot, fid=context.fid, order_id=order_id),
        discount_amount=recorded_amount,
        original_subtotal=context.subtotal.quantize(CENT),
        used_at=now_utc,
    )
    try:
        async with session.begin_nested():
            await DiscountsRepo.create_usage(session, usage=usage)
    except IntegrityError as exc:
        replay = await DiscountsRepo.get_usage_by_order(
            session,
            discount_code_id=discount_code.id,
            order_id=order_id,
        )
        if replay is not None:
            return _replay(replay, discount_code, fid=context.fid)
        raise DiscountAlreadyUsedError("you have already used this discount code") from exc

    discount_code.current_total_uses += 1
    discount_code.updated_at = now_utc
    await session.flush()

    logger.info(
        "discount_redeemed",
        discount_code_id=discount_code.id,
        code=discount_code.code,
        fid=context.fid,
        order_id=order_id,
        discount_amount=str(usage.discount_amount),
        current_total_uses=discount_code.current_total_uses,
    )
    return _as_result(usage, discount_code, idempotent_replay=False)
