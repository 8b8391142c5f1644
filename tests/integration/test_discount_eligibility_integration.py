from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.db.models.discount_eligibility_checks import DiscountEligibilityCheck
from app.db.session import SessionLocal
from app.economy.discounts import DiscountService
from tests.economy.discount_fixtures import (
    TOKEN_CONTRACT,
    WALLET_A,
    FakeBalances,
    make_context,
    make_sources,
)
from tests.integration.discount_db_fixtures import create_discount_code, create_profile

UTC = timezone.utc


@pytest.mark.asyncio
async def test_list_eligible_ranks_candidates_and_logs_gate_checks() -> None:
    now_utc = datetime.now(UTC)
    await create_discount_code(
        code="WELCOME15-000901ABC",
        now_utc=now_utc,
        discount_value=Decimal("15"),
        code_type="welcome",
        is_shared_code=False,
        owner_fid=901,
    )
    gated = await create_discount_code(
        code="HOLDERS10",
        now_utc=now_utc,
        gating_type="token_balance",
        contract_addresses=[TOKEN_CONTRACT],
        chain_ids=[1],
        required_balance=Decimal("100"),
        auto_apply=True,
    )
    await create_discount_code(
        code="RICHONLY50",
        now_utc=now_utc,
        discount_value=Decimal("50"),
        gating_type="token_balance",
        contract_addresses=[TOKEN_CONTRACT],
        chain_ids=[1],
        required_balance=Decimal("1000000"),
        auto_apply=True,
    )
    await create_discount_code(
        code="OLDNEWS",
        now_utc=now_utc,
        auto_apply=True,
        expires_at=now_utc - timedelta(days=1),
    )
    await create_discount_code(code="TYPED20", now_utc=now_utc, discount_value=Decimal("20"))
    await create_discount_code(
        code="SOMEONEELSE",
        now_utc=now_utc,
        is_shared_code=False,
        owner_fid=902,
    )

    async with SessionLocal.begin() as session:
        eligible = await DiscountService.list_eligible(
            session,
            context=make_context(fid=901),
            sources=make_sources(balances=FakeBalances(token=Decimal("250"))),
            explicit_code="typed20",
            now_utc=now_utc,
        )

    assert [candidate.discount.code for candidate in eligible] == [
        "HOLDERS10",
        "TYPED20",
        "WELCOME15-000901ABC",
    ]
    assert eligible[0].amount.amount == Decimal("15.00")
    assert DiscountService.select_best(eligible) is eligible[0]

    async with SessionLocal.begin() as session:
        checks = list((await session.scalars(select(DiscountEligibilityCheck))).all())

    assert len(checks) == 2
    by_code = {check.discount_code_id: check for check in checks}
    assert by_code[gated.id].is_eligible is True
    assert by_code[gated.id].wallet_address == WALLET_A
    assert by_code[gated.id].balance_found == Decimal("250")
    assert all(check.fid == 901 for check in checks)


@pytest.mark.asyncio
async def test_validate_code_reports_reason() -> None:
    now_utc = datetime.now(UTC)
    await create_discount_code(
        code="MIN50",
        now_utc=now_utc,
        minimum_order_amount=Decimal("50.00"),
    )

    async with SessionLocal.begin() as session:
        below = await DiscountService.validate_code(
            session,
            raw_code=" min50 ",
            context=make_context(fid=911, subtotal="20.00"),
            sources=make_sources(),
            now_utc=now_utc,
        )
        unknown = await DiscountService.validate_code(
            session,
            raw_code="NOPE",
            context=make_context(fid=911),
            sources=make_sources(),
            now_utc=now_utc,
        )

    assert below.validity.reason == "BELOW_MINIMUM_ORDER"
    assert below.amount is None
    assert unknown.discount is None
    assert unknown.validity.reason == "NOT_FOUND"


@pytest.mark.asyncio
async def test_welcome_code_is_created_once_per_fid() -> None:
    await create_profile(fid=921)

    async with SessionLocal.begin() as session:
        first = await DiscountService.create_welcome_code(session, fid=921)
    async with SessionLocal.begin() as session:
        second = await DiscountService.create_welcome_code(session, fid=921)

    assert first.is_existing is False
    assert first.code.startswith("WELCOME15-000921")
    assert second.is_existing is True
    assert second.code == first.code
    assert second.discount_code_id == first.discount_code_id

    async with SessionLocal.begin() as session:
        check = await DiscountService.validate_code(
            session,
            raw_code=first.code,
            context=make_context(fid=921, subtotal="40.00"),
            sources=make_sources(),
        )
    assert check.validity.is_valid is True
    assert check.amount is not None
    assert check.amount.amount == Decimal("6.00")


@pytest.mark.asyncio
async def test_validate_code_applies_combined_gating_config() -> None:
    now_utc = datetime.now(UTC)
    await create_discount_code(
        code="INNERCIRCLE",
        now_utc=now_utc,
        gating_type="combined",
        gating_config={"require_fid_whitelist": True, "require_token_balance": True},
        whitelisted_fids=[931],
        contract_addresses=[TOKEN_CONTRACT],
        chain_ids=[1],
        required_balance=Decimal("100"),
    )

    async with SessionLocal.begin() as session:
        member = await DiscountService.validate_code(
            session,
            raw_code="innercircle",
            context=make_context(fid=931),
            sources=make_sources(balances=FakeBalances(token=Decimal("150"))),
            now_utc=now_utc,
        )
        outsider = await DiscountService.validate_code(
            session,
            raw_code="innercircle",
            context=make_context(fid=932),
            sources=make_sources(balances=FakeBalances(token=Decimal("150"))),
            now_utc=now_utc,
        )

    assert member.discount is not None
    assert member.discount.combined_requirements == ("whitelist_user", "token_balance")
    assert member.validity.is_valid is True
    assert outsider.validity.reason == "GATE_NOT_SATISFIED"
    assert "whitelist_user" in outsider.validity.detail
