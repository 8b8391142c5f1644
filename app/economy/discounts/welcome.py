from __future__ import annotations

import secrets
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.models.discount_codes import DiscountCode
from app.db.repo.discounts_repo import DiscountsRepo
from app.economy.discounts.constants import (
    CODE_TYPE_WELCOME,
    DISCOUNT_TYPE_PERCENTAGE,
    GATING_NONE,
    MAX_PERCENTAGE_VALUE,
    SCOPE_SITE_WIDE,
    WELCOME_CODE_MAX_ATTEMPTS,
    WELCOME_CODE_PREFIX,
    WELCOME_CODE_SUFFIX_ALPHABET,
    WELCOME_CODE_SUFFIX_LENGTH,
)
from app.economy.discounts.errors import WelcomeCodeGenerationError
from app.economy.discounts.types import WelcomeCodeResult

logger = structlog.get_logger(__name__)


def build_welcome_code(*, fid: int, percent: int) -> str:
    fid_part = str(abs(fid))[-6:].zfill(6)
    suffix = "".join(
        secrets.choice(WELCOME_CODE_SUFFIX_ALPHABET) for _ in range(WELCOME_CODE_SUFFIX_LENGTH)
    )
    return f"{WELCOME_CODE_PREFIX}{percent}-{fid_part}{suffix}"


async def create_welcome_code(
    session: AsyncSession,
    *,
    fid: int,
    now_utc: datetime | None = None,
) -> WelcomeCodeResult:
    now_utc = now_utc or datetime.now(timezone.utc)
    existing = await DiscountsRepo.get_welcome_code_for_owner(session, fid=fid)
    if existing is not None:
        return WelcomeCodeResult(code=existing.code, discount_code_id=existing.id, is_existing=True)

    percent = get_settings().welcome_discount_percent
    if not 0 < percent <= MAX_PERCENTAGE_VALUE:
        raise WelcomeCodeGenerationError(f"invalid welcome discount percent: {percent}")

    for attempt in range(1, WELCOME_CODE_MAX_ATTEMPTS + 1):
        code = build_welcome_code(fid=fid, percent=percent)
        if await DiscountsRepo.code_exists(session, code):
            logger.info("welcome_code_collision", fid=fid, attempt=attempt)
            continue

        discount_code = DiscountCode(
            code=code,
            discount_type=DISCOUNT_TYPE_PERCENTAGE,
            discount_value=Decimal(percent),
            code_type=CODE_TYPE_WELCOME,
            discount_scope=SCOPE_SITE_WIDE,
            target_product_ids=[],
            is_shared_code=False,
            owner_fid=fid,
            gating_type=GATING_NONE,
            max_uses_total=1,
            max_uses_per_user=1,
            current_total_uses=0,
            expires_at=None,
            minimum_order_amount=None,
            free_shipping=False,
            auto_apply=False,
            priority_level=0,
            is_active=True,
            description=f"Welcome discount - {percent}% off your first order",
            created_at=now_utc,
            updated_at=now_utc,
        )
        try:
            async with session.begin_nested():
                await DiscountsRepo.create_code(session, discount_code=discount_code)
        except IntegrityError:
            # Either the code collided or another request created this user's welcome code.
            raced = await DiscountsRepo.get_welcome_code_for_owner(session, fid=fid)
            if raced is not None:
                return WelcomeCodeResult(
                    code=raced.code,
                    discount_code_id=raced.id,
                    is_existing=True,
                )
            logger.info("welcome_code_collision", fid=fid, attempt=attempt)
            continue

        logger.info("welcome_code_created", fid=fid, discount_code_id=discount_code.id, code=code)
        return WelcomeCodeResult(code=code, discount_code_id=discount_code.id, is_existing=False)

    logger.error("welcome_code_generation_failed", fid=fid, attempts=WELCOME_CODE_MAX_ATTEMPTS)
    raise WelcomeCodeGenerationError("could not generate a unique welcome code")
