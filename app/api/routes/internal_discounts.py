from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.economy.discounts import DiscountService
from app.economy.discounts.errors import (
    DiscountAlreadyUsedError,
    DiscountBelowMinimumError,
    DiscountError,
    DiscountExhaustedError,
    DiscountExpiredError,
    DiscountGateNotSatisfiedError,
    DiscountIdempotencyConflictError,
    DiscountNotFoundError,
    DiscountNotOwnedError,
    DiscountScopeMismatchError,
    WelcomeCodeGenerationError,
)
from app.economy.discounts.presentation import expiration_status, format_display_text
from app.economy.discounts.sources import (
    GatingSources,
    ProfileMembershipSource,
    ProfileWalletResolver,
    RpcBalanceSource,
)
from app.economy.discounts.types import (
    DiscountAmount,
    DiscountSnapshot,
    EligibilityContext,
    EligibleDiscount,
    RedeemResult,
)
from app.services.internal_auth import check_internal_access

from .internal_discounts_models import (
    DiscountAmountResponse,
    DiscountCodeResponse,
    DiscountContextRequest,
    DiscountEligibleRequest,
    DiscountEligibleResponse,
    DiscountRedeemRequest,
    DiscountRedeemResponse,
    DiscountValidateRequest,
    DiscountValidateResponse,
    EligibleDiscountResponse,
    WelcomeCodeRequest,
    WelcomeCodeResponse,
)

router = APIRouter(tags=["internal", "discounts"])
logger = structlog.get_logger(__name__)

DISCOUNT_ERROR_RESPONSES: dict[type[DiscountError], tuple[int, str]] = {
    DiscountNotFoundError: (404, "E_DISCOUNT_NOT_FOUND"),
    DiscountNotOwnedError: (403, "E_DISCOUNT_NOT_OWNED"),
    DiscountExpiredError: (410, "E_DISCOUNT_EXPIRED"),
    DiscountExhaustedError: (410, "E_DISCOUNT_EXHAUSTED"),
    DiscountAlreadyUsedError: (409, "E_DISCOUNT_ALREADY_USED"),
    DiscountIdempotencyConflictError: (409, "E_DISCOUNT_IDEMPOTENCY_CONFLICT"),
    DiscountScopeMismatchError: (422, "E_DISCOUNT_SCOPE_MISMATCH"),
    DiscountBelowMinimumError: (422, "E_DISCOUNT_BELOW_MINIMUM"),
    DiscountGateNotSatisfiedError: (422, "E_DISCOUNT_GATE_NOT_SATISFIED"),
    WelcomeCodeGenerationError: (503, "E_WELCOME_CODE_UNAVAILABLE"),
}


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    decision = check_internal_access(
        request,
        expected_token=settings.internal_api_token,
        allowlist=settings.internal_api_allowlist,
        trusted_proxies=settings.internal_api_trusted_proxies,
    )
    if not decision.allowed:
        logger.warning(
            "internal_discounts_auth_failed",
            reason=decision.reason,
            client_ip=decision.client_ip,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _http_error(exc: DiscountError) -> HTTPException:
    status_code, code = DISCOUNT_ERROR_RESPONSES.get(type(exc), (422, "E_DISCOUNT_INVALID"))
    return HTTPException(status_code=status_code, detail={"code": code})


def _build_sources(session: AsyncSession) -> GatingSources:
    settings = get_settings()
    return GatingSources(
        balances=RpcBalanceSource.from_settings(settings),
        memberships=ProfileMembershipSource(session),
        timeout_seconds=settings.discount_gate_timeout_seconds,
    )


async def _build_context(
    session: AsyncSession,
    payload: DiscountContextRequest,
) -> EligibilityContext:
    wallet_addresses = payload.wallet_addresses
    if wallet_addresses is None:
        wallet_addresses = await ProfileWalletResolver(session).resolve_wallets(payload.fid)
    return EligibilityContext.build(
        fid=payload.fid,
        wallet_addresses=wallet_addresses,
        product_ids=payload.product_ids,
        subtotal=payload.subtotal,
    )


def _discount_as_response(discount: DiscountSnapshot, *, now_utc: datetime) -> DiscountCodeResponse:
    expiration = expiration_status(discount, now_utc=now_utc)
    return DiscountCodeResponse(
        id=discount.id,
        code=discount.code,
        discount_type=discount.discount_type,
        discount_value=discount.discount_value,
        discount_scope=discount.discount_scope,
        gating_type=discount.gating_type,
        is_gated=discount.is_gated,
        priority_level=discount.priority_level,
        auto_apply=discount.auto_apply,
        display_text=format_display_text(discount),
        expiration_status=expiration.status,
        expiration_message=expiration.message,
        expires_at=discount.expires_at,
    )


def _amount_as_response(amount: DiscountAmount) -> DiscountAmountResponse:
    return DiscountAmountResponse(
        amount=amount.amount,
        free_shipping=amount.free_shipping,
        shipping_discount=amount.shipping_discount,
        final_total=amount.final_total,
        discount_percentage=amount.discount_percentage,
    )


def _eligible_as_response(
    candidate: EligibleDiscount,
    *,
    now_utc: datetime,
) -> EligibleDiscountResponse:
    gate = candidate.validity.gate
    return EligibleDiscountResponse(
        discount=_discount_as_response(candidate.discount, now_utc=now_utc),
        amount=_amount_as_response(candidate.amount),
        gate_detail=gate.detail if gate is not None and candidate.discount.is_gated else None,
    )


def _redeem_as_response(result: RedeemResult) -> DiscountRedeemResponse:
    return DiscountRedeemResponse(
        usage_id=result.usage_id,
        discount_code_id=result.discount_code_id,
        code=result.code,
        fid=result.fid,
        order_id=result.order_id,
        discount_amount=result.discount_amount,
        original_subtotal=result.original_subtotal,
        used_at=result.used_at,
        current_total_uses=result.current_total_uses,
        idempotent_replay=result.idempotent_replay,
    )


@router.post("/internal/discounts/eligible", response_model=DiscountEligibleResponse)
async def list_eligible_discounts(
    payload: DiscountEligibleRequest,
    request: Request,
) -> DiscountEligibleResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        context = await _build_context(session, payload)
        eligible = await DiscountService.list_eligible(
            session,
            context=context,
            sources=_build_sources(session),
            explicit_code=payload.code,
            shipping_amount=payload.shipping_amount,
            now_utc=now_utc,
        )

    discounts = [_eligible_as_response(candidate, now_utc=now_utc) for candidate in eligible]
    best = DiscountService.select_best(eligible)
    return DiscountEligibleResponse(
        fid=payload.fid,
        discounts=discounts,
        best=_eligible_as_response(best, now_utc=now_utc) if best is not None else None,
    )


@router.post("/internal/discounts/validate", response_model=DiscountValidateResponse)
async def validate_discount_code(
    payload: DiscountValidateRequest,
    request: Request,
) -> DiscountValidateResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        context = await _build_context(session, payload)
        check = await DiscountService.validate_code(
            session,
            raw_code=payload.code,
            context=context,
            sources=_build_sources(session),
            shipping_amount=payload.shipping_amount,
            now_utc=now_utc,
        )

    return DiscountValidateResponse(
        code=check.discount.code if check.discount is not None else payload.code,
        is_valid=check.validity.is_valid,
        reason=check.validity.reason,
        detail=check.validity.detail,
        discount=(
            _discount_as_response(check.discount, now_utc=now_utc)
            if check.discount is not None
            else None
        ),
        amount=_amount_as_response(check.amount) if check.amount is not None else None,
    )


@router.post("/internal/discounts/redeem", response_model=DiscountRedeemResponse)
async def redeem_discount(
    payload: DiscountRedeemRequest,
    request: Request,
) -> DiscountRedeemResponse:
    _assert_internal_access(request)

    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            context = await _build_context(session, payload)
            result = await DiscountService.redeem(
                session,
                code=payload.code,
                context=context,
                order_id=payload.order_id,
                sources=_build_sources(session),
                discount_amount=payload.discount_amount,
                now_utc=now_utc,
            )
    except DiscountError as exc:
        raise _http_error(exc) from exc

    return _redeem_as_response(result)


@router.post("/internal/discounts/welcome", response_model=WelcomeCodeResponse)
async def create_welcome_discount(
    payload: WelcomeCodeRequest,
    request: Request,
) -> WelcomeCodeResponse:
    _assert_internal_access(request)

    try:
        async with SessionLocal.begin() as session:
            result = await DiscountService.create_welcome_code(session, fid=payload.fid)
    except DiscountError as exc:
        raise _http_error(exc) from exc

    return WelcomeCodeResponse(
        code=result.code,
        discount_code_id=result.discount_code_id,
        is_existing=result.is_existing,
    )
