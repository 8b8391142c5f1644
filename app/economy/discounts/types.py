from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from app.economy.discounts.constants import (
    COMBINED_REQUIREMENT_FLAGS,
    DEFAULT_CHAIN_IDS,
    DEFAULT_REQUIRED_BALANCE,
    GATING_NONE,
    REASON_OK,
)
from app.services.discount_codes import normalize_wallet_address, normalize_wallet_addresses

if TYPE_CHECKING:
    from app.db.models.discount_codes import DiscountCode


def parse_combined_requirements(gating_config: dict[str, Any] | None) -> tuple[str, ...]:
    """Gating kinds a combined gate must satisfy, read from its config flags."""
    config = gating_config or {}
    return tuple(kind for flag, kind in COMBINED_REQUIREMENT_FLAGS if config.get(flag))


@dataclass(frozen=True, slots=True)
class EligibilityContext:
    fid: int
    wallet_addresses: tuple[str, ...] = ()
    product_ids: tuple[str, ...] = ()
    subtotal: Decimal = Decimal("0")

    @classmethod
    def build(
        cls,
        *,
        fid: int,
        wallet_addresses: list[str] | tuple[str, ...] = (),
        product_ids: list[str] | tuple[str, ...] = (),
        subtotal: Decimal | int | str = Decimal("0"),
    ) -> EligibilityContext:
        return cls(
            fid=fid,
            wallet_addresses=normalize_wallet_addresses(wallet_addresses),
            product_ids=tuple(str(product_id) for product_id in product_ids),
            subtotal=Decimal(str(subtotal)),
        )


@dataclass(frozen=True, slots=True)
class DiscountSnapshot:
    """Detached, immutable view of a discount_codes row."""

    id: int
    code: str
    discount_type: str
    discount_value: Decimal
    code_type: str
    discount_scope: str
    target_product_ids: tuple[str, ...]
    is_shared_code: bool
    owner_fid: int | None
    gating_type: str
    required_balance: Decimal
    contract_addresses: tuple[str, ...]
    chain_ids: tuple[int, ...]
    whitelisted_fids: frozenset[int]
    whitelisted_wallets: frozenset[str]
    max_uses_total: int | None
    max_uses_per_user: int
    current_total_uses: int
    expires_at: datetime | None
    minimum_order_amount: Decimal | None
    free_shipping: bool
    auto_apply: bool
    priority_level: int
    is_active: bool = True
    combined_requirements: tuple[str, ...] = ()

    @property
    def is_gated(self) -> bool:
        return self.gating_type != GATING_NONE

    @classmethod
    def from_model(cls, discount_code: DiscountCode) -> DiscountSnapshot:
        required_balance = discount_code.required_balance
        return cls(
            id=discount_code.id,
            code=discount_code.code,
            discount_type=discount_code.discount_type,
            discount_value=Decimal(discount_code.discount_value),
            code_type=discount_code.code_type,
            discount_scope=discount_code.discount_scope,
            target_product_ids=tuple(str(pid) for pid in discount_code.target_product_ids or ()),
            is_shared_code=bool(discount_code.is_shared_code),
            owner_fid=discount_code.owner_fid,
            gating_type=discount_code.gating_type or GATING_NONE,
            required_balance=(
                Decimal(required_balance)
                if required_balance is not None and required_balance > 0
                else DEFAULT_REQUIRED_BALANCE
            ),
            contract_addresses=tuple(
                normalize_wallet_address(addr) for addr in discount_code.contract_addresses or ()
            ),
            chain_ids=tuple(discount_code.chain_ids or DEFAULT_CHAIN_IDS),
            whitelisted_fids=frozenset(int(fid) for fid in discount_code.whitelisted_fids or ()),
            whitelisted_wallets=frozenset(
                normalize_wallet_address(addr) for addr in discount_code.whitelisted_wallets or ()
            ),
            max_uses_total=discount_code.max_uses_total,
            max_uses_per_user=discount_code.max_uses_per_user or 1,
            current_total_uses=discount_code.current_total_uses or 0,
            expires_at=discount_code.expires_at,
            minimum_order_amount=(
                Decimal(discount_code.minimum_order_amount)
                if discount_code.minimum_order_amount is not None
                else None
            ),
            free_shipping=bool(discount_code.free_shipping),
            auto_apply=bool(discount_code.auto_apply),
            priority_level=discount_code.priority_level or 0,
            is_active=bool(discount_code.is_active),
            combined_requirements=parse_combined_requirements(discount_code.gating_config),
        )


@dataclass(frozen=True, slots=True)
class GateResult:
    satisfied: bool
    gating_type: str
    detail: str
    balance_found: Decimal | None = None
    duration_ms: int = 0


@dataclass(frozen=True, slots=True)
class ValidityResult:
    is_valid: bool
    reason: str
    detail: str = ""
    gate: GateResult | None = None

    @classmethod
    def valid(cls, *, gate: GateResult | None = None) -> ValidityResult:
        return cls(is_valid=True, reason=REASON_OK, gate=gate)

    @classmethod
    def invalid(
        cls,
        reason: str,
        detail: str = "",
        *,
        gate: GateResult | None = None,
    ) -> ValidityResult:
        return cls(is_valid=False, reason=reason, detail=detail, gate=gate)


@dataclass(frozen=True, slots=True)
class DiscountAmount:
    amount: Decimal
    free_shipping: bool
    shipping_discount: Decimal
    final_total: Decimal
    discount_percentage: Decimal | None = None


@dataclass(frozen=True, slots=True)
class EligibleDiscount:
    discount: DiscountSnapshot
    validity: ValidityResult
    amount: DiscountAmount


@dataclass(slots=True)
class RedeemResult:
    usage_id: UUID
    discount_code_id: int
    code: str
    fid: int
    order_id: str
    discount_amount: Decimal
    original_subtotal: Decimal
    used_at: datetime
    current_total_uses: int
    idempotent_replay: bool


@dataclass(slots=True)
class OrderDiscountOutcome:
    applied: bool
    reason: str
    redemption: RedeemResult | None = None
    detail: str = ""


@dataclass(slots=True)
class WelcomeCodeResult:
    code: str
    discount_code_id: int
    is_existing: bool


@dataclass(frozen=True, slots=True)
class ExpirationStatus:
    status: str
    message: str


@dataclass(frozen=True, slots=True)
class CodeCheck:
    discount: DiscountSnapshot | None
    validity: ValidityResult
    amount: DiscountAmount | None = None
