from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from app.db.repo.discounts_repo import DiscountsRepo
from app.db.session import SessionLocal
from app.economy.discounts.errors import DiscountAlreadyUsedError, DiscountExhaustedError
from app.economy.discounts.redemption import redeem
from tests.economy.discount_fixtures import make_context, make_sources
from tests.integration.discount_db_fixtures import count_usage, create_discount_code, current_total_uses

UTC = timezone.utc


async def _redeem(*, code: str, fid: int, order_id: str, now_utc: datetime):
    async with SessionLocal.begin() as session:
        return await redeem(
            session,
            code=code,
            context=make_context(fid=fid),
            order_id=order_id,
            sources=make_sources(),
            now_utc=now_utc,
        )


@pytest.mark.asyncio
async def test_parallel_redeem_by_same_user_allows_only_one_use() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(code="PARALLEL15", now_utc=now_utc)
    barrier = asyncio.Event()

    async def _attempt(order_id: str) -> str:
        await barrier.wait()
        try:
            await _redeem(code="PARALLEL15", fid=501, order_id=order_id, now_utc=now_utc)
            return "accepted"
        except DiscountAlreadyUsedError:
            return "already_used"

    task_1 = asyncio.create_task(_attempt("order-parallel-1"))
    task_2 = asyncio.create_task(_attempt("order-parallel-2"))
    barrier.set()
    outcomes = await asyncio.gather(task_1, task_2)

    assert sorted(outcomes) == ["accepted", "already_used"]
    assert await count_usage(discount_code.id, fid=501) == 1
    assert await current_total_uses(discount_code.id) == 1


@pytest.mark.asyncio
async def test_parallel_redeem_never_exceeds_total_cap() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(code="FIRST3", now_utc=now_utc, max_uses_total=3)
    barrier = asyncio.Event()

    async def _attempt(fid: int) -> str:
        await barrier.wait()
        try:
            await _redeem(code="FIRST3", fid=fid, order_id=f"order-cap-{fid}", now_utc=now_utc)
            return "accepted"
        except DiscountExhaustedError:
            return "exhausted"

    tasks = [asyncio.create_task(_attempt(fid)) for fid in range(600, 604)]
    barrier.set()
    outcomes = await asyncio.gather(*tasks)

    assert sorted(outcomes) == ["accepted", "accepted", "accepted", "exhausted"]
    assert await count_usage(discount_code.id) == 3
    assert await current_total_uses(discount_code.id) == 3


@pytest.mark.asyncio
async def test_shared_code_is_redeemable_by_two_users() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(code="SHARED10", now_utc=now_utc)

    first = await _redeem(code="SHARED10", fid=701, order_id="order-shared-1", now_utc=now_utc)
    second = await _redeem(code="shared10", fid=702, order_id="order-shared-2", now_utc=now_utc)

    assert first.current_total_uses == 1
    assert second.current_total_uses == 2
    assert await count_usage(discount_code.id) == 2


@pytest.mark.asyncio
async def test_redeem_rereads_code_already_loaded_in_session() -> None:
    now_utc = datetime.now(UTC)
    discount_code = await create_discount_code(code="LASTONE", now_utc=now_utc, max_uses_total=1)

    async with SessionLocal.begin() as session:
        loaded = await DiscountsRepo.get_code_by_code(session, "LASTONE")
        assert loaded is not None
        assert loaded.current_total_uses == 0

        await _redeem(code="LASTONE", fid=541, order_id="order-last-1", now_utc=now_utc)

        with pytest.raises(DiscountExhaustedError):
            await redeem(
                session,
                code="LASTONE",
                context=make_context(fid=542),
                order_id="order-last-2",
                sources=make_sources(),
                now_utc=now_utc,
            )
        assert loaded.current_total_uses == 1

    assert await count_usage(discount_code.id) == 1
    assert await current_total_uses(discount_code.id) == 1
