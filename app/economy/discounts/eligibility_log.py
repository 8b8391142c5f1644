from __future__ import annotations

from datetime import datetime

import structlog

from app.db.models.discount_eligibility_checks import DiscountEligibilityCheck
from app.db.repo.discounts_repo import DiscountsRepo
from app.db.session import SessionLocal
from app.economy.discounts.types import DiscountSnapshot, EligibilityContext, GateResult

logger = structlog.get_logger(__name__)


def build_eligibility_check(
    *,
    discount: DiscountSnapshot,
    context: EligibilityContext,
    gate: GateResult,
    now_utc: datetime,
) -> DiscountEligibilityCheck:
    return DiscountEligibilityCheck(
        discount_code_id=discount.id,
        fid=context.fid,
        wallet_address=context.wallet_addresses[0] if context.wallet_addresses else None,
        gating_type=gate.gating_type,
        is_eligible=gate.satisfied,
        reason=gate.detail,
        balance_found=gate.balance_found,
        check_duration_ms=gate.duration_ms,
        checked_at=now_utc,
    )


async def record_eligibility_checks(
    checks: list[tuple[DiscountSnapshot, EligibilityContext, GateResult]],
    *,
    now_utc: datetime,
) -> None:
    """Persist gate evaluations in a separate transaction.

    A failed write is logged and dropped; it never changes a verdict.
    """
    if not checks:
        return
    try:
        async with SessionLocal.begin() as log_session:
            for discount, context, gate in checks:
                await DiscountsRepo.create_eligibility_check(
                    log_session,
                    check=build_eligibility_check(
                        discount=discount,
                        context=context,
                        gate=gate,
                        now_utc=now_utc,
                    ),
                )
    except Exception:
        logger.exception("discount_eligibility_log_failed", checks=len(checks))
