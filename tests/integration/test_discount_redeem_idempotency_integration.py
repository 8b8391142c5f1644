from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.db.session import SessionLocal
from app.economy.discounts.checkout import apply_discount_to_order
from app.economy.discounts.errors import (
    DiscountAlreadyUsedError,
    DiscountExpiredError,
    DiscountIdempotencyConflictError,
)
from app.economy.discounts.redemption import redeem
from tests.economy.discount_fixtures import (
    TOKEN_CONTRACT,
    FakeBalances,
    make_context,
    make_sources,
)
from tests.integration.discount_db_fixtures import count_usage, create_discount_code, current_total_uses

UTC = timezone.utc


@pytest.mark.asyncio
async def test_same_order_replay_returns_original_result() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(code="REPLAY15", now_utc=now_utc, discount_value=Decimal("15"))
    context = make_context(fid=801, subtotal="150.00")

    async with SessionLocal.begin() as session:
        first = await redeem(
            session,
            code="REPLAY15",
            context=context,
            order_id="order-replay-1",
            sources=make_sources(),
            now_utc=now_utc,
        )
    async with SessionLocal.begin() as session:
        second = await redeem(
            session,
            code="REPLAY15",
            context=context,
            order_id="order-replay-1",
            sources=make_sources(),
            now_utc=now_utc + timedelta(minutes=1),
        )

    assert first.idempotent_replay is False
    assert first.discount_amount == Decimal("22.50")
    assert second.idempotent_replay is True
    assert second.usage_id == first.usage_id
    assert await count_usage(discount_code.id) == 1
    assert await current_total_uses(discount_code.id) == 1


@pytest.mark.asyncio
async def test_same_order_for_other_user_is_a_conflict() -> None:
    now_utc = datetime.now(UTC)
    await create_discount_code(code="CONFLICT10", now_utc=now_utc)

    async with SessionLocal.begin() as session:
        await redeem(
            session,
            code="CONFLICT10",
            context=make_context(fid=811),
            order_id="order-conflict-1",
            sources=make_sources(),
            now_utc=now_utc,
        )

    with pytest.raises(DiscountIdempotencyConflictError):
        async with SessionLocal.begin() as session:
            await redeem(
                session,
                code="CONFLICT10",
                context=make_context(fid=812),
                order_id="order-conflict-1",
                sources=make_sources(),
                now_utc=now_utc,
            )


@pytest.mark.asyncio
async def test_second_order_by_same_user_is_already_used() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(code="ONCE10", now_utc=now_utc)

    async with SessionLocal.begin() as session:
        await redeem(
            session,
            code="ONCE10",
            context=make_context(fid=821),
            order_id="order-once-1",
            sources=make_sources(),
            now_utc=now_utc,
        )

    with pytest.raises(DiscountAlreadyUsedError):
        async with SessionLocal.begin() as session:
            await redeem(
                session,
                code="ONCE10",
                context=make_context(fid=821),
                order_id="order-once-2",
                sources=make_sources(),
                now_utc=now_utc,
            )

    assert await count_usage(discount_code.id) == 1


@pytest.mark.asyncio
async def test_expired_code_is_rejected_without_mutation() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(
        code="GONE10",
        now_utc=now_utc,
        expires_at=now_utc - timedelta(hours=1),
    )

    with pytest.raises(DiscountExpiredError):
        async with SessionLocal.begin() as session:
            await redeem(
                session,
                code="GONE10",
                context=make_context(fid=831),
                order_id="order-gone-1",
                sources=make_sources(),
                now_utc=now_utc,
            )

    assert await count_usage(discount_code.id) == 0
    assert await current_total_uses(discount_code.id) == 0


@pytest.mark.asyncio
async def test_gate_flip_at_order_commit_drops_discount_but_keeps_order() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(
        code="HOLDER20",
        now_utc=now_utc,
        discount_value=Decimal("20"),
        gating_type="token_balance",
        contract_addresses=[TOKEN_CONTRACT],
        chain_ids=[1],
        required_balance=Decimal("1000"),
    )
    balances = FakeBalances(token=Decimal("0"))

    async with SessionLocal.begin() as session:
        outcome = await apply_discount_to_order(
            session,
            code="HOLDER20",
            context=make_context(fid=841),
            order_id="order-flip-1",
            sources=make_sources(balances=balances),
            now_utc=now_utc,
        )

    assert outcome.applied is False
    assert outcome.reason == "GATE_NOT_SATISFIED"
    assert outcome.redemption is None
    assert await count_usage(discount_code.id) == 0

    balances.token = Decimal("5000")
    async with SessionLocal.begin() as session:
        outcome = await apply_discount_to_order(
            session,
            code="HOLDER20",
            context=make_context(fid=841),
            order_id="order-flip-2",
            sources=make_sources(balances=balances),
            now_utc=now_utc,
        )

    assert outcome.applied is True
    assert outcome.redemption is not None
    assert outcome.redemption.discount_amount == Decimal("30.00")
    assert await count_usage(discount_code.id) == 1
