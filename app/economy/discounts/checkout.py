from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.economy.discounts.constants import REASON_OK
from app.economy.discounts.errors import DiscountError
from app.economy.discounts.redemption import redeem
from app.economy.discounts.sources import GatingSources
from app.economy.discounts.types import EligibilityContext, OrderDiscountOutcome

logger = structlog.get_logger(__name__)


async def apply_discount_to_order(
    session: AsyncSession,
    *,
    code: str,
    context: EligibilityContext,
    order_id: str,
    sources: GatingSources,
    now_utc: datetime | None = None,
) -> OrderDiscountOutcome:
    """Redeem a discount as part of an order commit.

    Runs the redemption in a savepoint so a rejected discount is rolled back
    on its own and the surrounding order transaction still commits.
    """
    try:
        async with session.begin_nested():
            result = await redeem(
                session,
                code=code,
                context=context,
                order_id=order_id,
                sources=sources,
                now_utc=now_utc,
            )
    except DiscountError as exc:
        logger.warning(
            "order_discount_not_applied",
            fid=context.fid,
            order_id=order_id,
            reason=exc.reason,
            detail=str(exc),
        )
        return OrderDiscountOutcome(applied=False, reason=exc.reason, detail=str(exc))

    return OrderDiscountOutcome(applied=True, reason=REASON_OK, redemption=result)
