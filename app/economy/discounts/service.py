from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.discount_codes import DiscountCode
from app.db.repo.discounts_repo import DiscountsRepo
from app.economy.discounts import amounts, checkout, redemption, selection, welcome
from app.economy.discounts.constants import REASON_NOT_FOUND
from app.economy.discounts.eligibility_log import record_eligibility_checks
from app.economy.discounts.sources import GatingSources
from app.economy.discounts.types import (
    CodeCheck,
    DiscountAmount,
    DiscountSnapshot,
    EligibilityContext,
    EligibleDiscount,
    GateResult,
    OrderDiscountOutcome,
    RedeemResult,
    ValidityResult,
    WelcomeCodeResult,
)
from app.economy.discounts.validity import check_validity
from app.services.discount_codes import normalize_discount_code

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def _dedupe_codes(*groups: list[DiscountCode]) -> list[DiscountCode]:
    seen: set[int] = set()
    unique: list[DiscountCode] = []
    for group in groups:
        for discount_code in group:
            if discount_code.id in seen:
                continue
            seen.add(discount_code.id)
            unique.append(discount_code)
    return unique


def _gate_log_entry(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    verdict: ValidityResult,
) -> tuple[DiscountSnapshot, EligibilityContext, GateResult] | None:
    if not discount.is_gated or verdict.gate is None:
        return None
    return (discount, context, verdict.gate)


class DiscountService:
    @staticmethod
    async def list_eligible(
        session: AsyncSession,
        *,
        context: EligibilityContext,
        sources: GatingSources,
        explicit_code: str | None = None,
        shipping_amount: Decimal = ZERO,
        now_utc: datetime | None = None,
    ) -> list[EligibleDiscount]:
        """Every discount the user may apply to this cart, best first.

        Candidates are the user's own codes, the explicitly entered code and the
        auto-apply catalog. Gate evaluations are written to the eligibility log
        after the verdicts are in.
        """
        now_utc = now_utc or datetime.now(timezone.utc)

        owned = await DiscountsRepo.list_owned_codes(session, fid=context.fid, now_utc=now_utc)
        explicit: list[DiscountCode] = []
        normalized_code = normalize_discount_code(explicit_code or "")
        if normalized_code:
            explicit_row = await DiscountsRepo.get_code_by_code(session, normalized_code)
            if explicit_row is not None:
                explicit.append(explicit_row)
        auto_apply = await DiscountsRepo.list_auto_apply_codes(session, now_utc=now_utc)

        eligible: list[EligibleDiscount] = []
        gate_log: list[tuple[DiscountSnapshot, EligibilityContext, GateResult]] = []
        for discount_code in _dedupe_codes(owned, explicit, auto_apply):
            discount = DiscountSnapshot.from_model(discount_code)
            verdict = await check_validity(session, discount, context, sources, now_utc=now_utc)
            entry = _gate_log_entry(discount, context, verdict)
            if entry is not None:
                gate_log.append(entry)
            if not verdict.is_valid:
                continue
            eligible.append(
                EligibleDiscount(
                    discount=discount,
                    validity=verdict,
                    amount=amounts.compute_amount(discount, context.subtotal, shipping_amount),
                )
            )

        await record_eligibility_checks(gate_log, now_utc=now_utc)
        ranked = selection.rank_candidates(eligible)
        logger.info(
            "discount_eligibility_listed",
            fid=context.fid,
            candidates=len(owned) + len(explicit) + len(auto_apply),
            eligible=len(ranked),
            best_code=ranked[0].discount.code if ranked else None,
        )
        return ranked

    @staticmethod
    async def validate_code(
        session: AsyncSession,
        *,
        raw_code: str,
        context: EligibilityContext,
        sources: GatingSources,
        shipping_amount: Decimal = ZERO,
        now_utc: datetime | None = None,
    ) -> CodeCheck:
        now_utc = now_utc or datetime.now(timezone.utc)
        normalized_code = normalize_discount_code(raw_code)
        discount_code = (
            await DiscountsRepo.get_code_by_code(session, normalized_code)
            if normalized_code
            else None
        )
        if discount_code is None:
            return CodeCheck(
                discount=None,
                validity=ValidityResult.invalid(REASON_NOT_FOUND, "discount code not found"),
            )

        discount = DiscountSnapshot.from_model(discount_code)
        verdict = await check_validity(session, discount, context, sources, now_utc=now_utc)
        entry = _gate_log_entry(discount, context, verdict)
        if entry is not None:
            await record_eligibility_checks([entry], now_utc=now_utc)
        if not verdict.is_valid:
            return CodeCheck(discount=discount, validity=verdict)
        return CodeCheck(
            discount=discount,
            validity=verdict,
            amount=amounts.compute_amount(discount, context.subtotal, shipping_amount),
        )

    @staticmethod
    def select_best(candidates: list[EligibleDiscount]) -> EligibleDiscount | None:
        return selection.select_best(candidates)

    @staticmethod
    def compute_amount(
        discount: DiscountSnapshot,
        subtotal: Decimal,
        shipping_amount: Decimal = ZERO,
    ) -> DiscountAmount:
        return amounts.compute_amount(discount, subtotal, shipping_amount)

    @staticmethod
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
        return await redemption.redeem(
            session,
            code=code,
            context=context,
            order_id=order_id,
            sources=sources,
            discount_amount=discount_amount,
            now_utc=now_utc,
        )

    @staticmethod
    async def apply_to_order(
        session: AsyncSession,
        *,
        code: str,
        context: EligibilityContext,
        order_id: str,
        sources: GatingSources,
        now_utc: datetime | None = None,
    ) -> OrderDiscountOutcome:
        return await checkout.apply_discount_to_order(
            session,
            code=code,
            context=context,
            order_id=order_id,
            sources=sources,
            now_utc=now_utc,
        )

    @staticmethod
    async def create_welcome_code(
        session: AsyncSession,
        *,
        fid: int,
        now_utc: datetime | None = None,
    ) -> WelcomeCodeResult:
        return await welcome.create_welcome_code(session, fid=fid, now_utc=now_utc)
