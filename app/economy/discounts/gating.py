from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from decimal import Decimal

import structlog

from app.economy.discounts.constants import (
    GATING_CLUB_MEMBERSHIP,
    GATING_COMBINED,
    GATING_CONTRACT_HOLDING,
    GATING_NONE,
    GATING_STAKING_BALANCE,
    GATING_TOKEN_BALANCE,
    GATING_WHITELIST_USER,
    GATING_WHITELIST_WALLET,
)
from app.economy.discounts.sources import GatingSources
from app.economy.discounts.types import DiscountSnapshot, EligibilityContext, GateResult

logger = structlog.get_logger(__name__)

GateEvaluator = Callable[
    [DiscountSnapshot, EligibilityContext, GatingSources],
    Awaitable[GateResult],
]


def _not_satisfied(discount: DiscountSnapshot, detail: str) -> GateResult:
    return GateResult(satisfied=False, gating_type=discount.gating_type, detail=detail)


def _balance_result(discount: DiscountSnapshot, *, found: Decimal, unit: str) -> GateResult:
    required = discount.required_balance
    satisfied = found >= required
    detail = (
        f"found {found} {unit} (required: {required})"
        if satisfied
        else f"insufficient {unit}: found {found}, need {required}"
    )
    return GateResult(
        satisfied=satisfied,
        gating_type=discount.gating_type,
        detail=detail,
        balance_found=found,
    )


def _missing_onchain_config(
    discount: DiscountSnapshot,
    context: EligibilityContext,
) -> GateResult | None:
    if not discount.contract_addresses:
        return _not_satisfied(discount, "no contract addresses configured")
    if not context.wallet_addresses:
        return _not_satisfied(discount, "no wallet addresses provided")
    return None


async def _gate_none(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    return GateResult(satisfied=True, gating_type=GATING_NONE, detail="no gating required")


async def _gate_token_balance(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    missing = _missing_onchain_config(discount, context)
    if missing is not None:
        return missing

    found = await sources.balances.token_balance(
        wallet_addresses=context.wallet_addresses,
        contract_addresses=discount.contract_addresses,
        chain_ids=discount.chain_ids,
    )
    return _balance_result(discount, found=found, unit="token balance")


async def _gate_staking_balance(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    if not context.wallet_addresses:
        return _not_satisfied(discount, "no wallet addresses provided")

    found = await sources.balances.staked_balance(wallet_addresses=context.wallet_addresses)
    return _balance_result(discount, found=found, unit="staked balance")


async def _gate_contract_holding(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    missing = _missing_onchain_config(discount, context)
    if missing is not None:
        return missing

    found = await sources.balances.holding_count(
        wallet_addresses=context.wallet_addresses,
        contract_addresses=discount.contract_addresses,
        chain_ids=discount.chain_ids,
    )
    return _balance_result(discount, found=found, unit="holdings")


async def _gate_club_membership(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    is_member = await sources.memberships.is_club_member(context.fid)
    return GateResult(
        satisfied=is_member,
        gating_type=discount.gating_type,
        detail="club member" if is_member else "not a club member",
    )


async def _gate_whitelist_user(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    listed = context.fid in discount.whitelisted_fids
    return GateResult(
        satisfied=listed,
        gating_type=discount.gating_type,
        detail="fid found in whitelist" if listed else "fid not found in whitelist",
    )


async def _gate_whitelist_wallet(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    matching = next(
        (addr for addr in context.wallet_addresses if addr in discount.whitelisted_wallets),
        None,
    )
    return GateResult(
        satisfied=matching is not None,
        gating_type=discount.gating_type,
        detail=(
            f"wallet {matching} found in whitelist"
            if matching is not None
            else "no user wallets found in whitelist"
        ),
    )


async def _gate_combined(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    """All configured requirements must hold. Lookup errors propagate to ``evaluate_gate``."""
    if not discount.combined_requirements:
        return _not_satisfied(discount, "no combined requirements configured")

    results = [
        await GATE_EVALUATORS[kind](discount, context, sources)
        for kind in discount.combined_requirements
    ]
    failed = [
        f"{kind}: {result.detail}"
        for kind, result in zip(discount.combined_requirements, results)
        if not result.satisfied
    ]
    balances = [result.balance_found for result in results if result.balance_found is not None]
    return GateResult(
        satisfied=not failed,
        gating_type=discount.gating_type,
        detail=(
            "failed requirements: " + "; ".join(failed)
            if failed
            else f"all {len(results)} combined requirements met"
        ),
        balance_found=balances[-1] if balances else None,
    )


GATE_EVALUATORS: dict[str, GateEvaluator] = {
    GATING_NONE: _gate_none,
    GATING_TOKEN_BALANCE: _gate_token_balance,
    GATING_STAKING_BALANCE: _gate_staking_balance,
    GATING_CLUB_MEMBERSHIP: _gate_club_membership,
    GATING_WHITELIST_USER: _gate_whitelist_user,
    GATING_WHITELIST_WALLET: _gate_whitelist_wallet,
    GATING_CONTRACT_HOLDING: _gate_contract_holding,
    GATING_COMBINED: _gate_combined,
}


async def evaluate_gate(
    discount: DiscountSnapshot,
    context: EligibilityContext,
    sources: GatingSources,
) -> GateResult:
    """Evaluate the gating condition of one discount for one user.

    External lookups are bounded by ``sources.timeout_seconds``. A lookup that
    fails or times out yields ``satisfied=False``; this function never raises
    for a broken balance or membership source.
    """
    evaluator = GATE_EVALUATORS.get(discount.gating_type)
    if evaluator is None:
        return _not_satisfied(discount, f"unknown gating type: {discount.gating_type}")

    started = time.perf_counter()
    try:
        result = await asyncio.wait_for(
            evaluator(discount, context, sources),
            timeout=sources.timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "discount_gate_lookup_timeout",
            discount_code_id=discount.id,
            gating_type=discount.gating_type,
            fid=context.fid,
            timeout_seconds=sources.timeout_seconds,
        )
        result = _not_satisfied(discount, "eligibility lookup timed out")
    except Exception as exc:
        logger.warning(
            "discount_gate_lookup_failed",
            discount_code_id=discount.id,
            gating_type=discount.gating_type,
            fid=context.fid,
            error=str(exc),
            exc_info=True,
        )
        result = _not_satisfied(discount, "eligibility check failed")

    return replace(result, duration_ms=int((time.perf_counter() - started) * 1000))
