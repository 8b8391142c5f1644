from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class DiscountContextRequest(BaseModel):
    fid: int = Field(gt=0)
    wallet_addresses: list[str] | None = Field(default=None, max_length=32)
    product_ids: list[str] = Field(default_factory=list, max_length=200)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    shipping_amount: Decimal = Field(default=Decimal("0"), ge=0)


class DiscountEligibleRequest(DiscountContextRequest):
    code: str | None = Field(default=None, max_length=64)


class DiscountValidateRequest(DiscountContextRequest):
    code: str = Field(min_length=1, max_length=64)


class DiscountRedeemRequest(DiscountContextRequest):
    code: str = Field(min_length=1, max_length=64)
    order_id: str = Field(min_length=1, max_length=128)
    discount_amount: Decimal | None = Field(default=None, ge=0)


class WelcomeCodeRequest(BaseModel):
    fid: int = Field(gt=0)


class DiscountAmountResponse(BaseModel):
    amount: Decimal
    free_shipping: bool
    shipping_discount: Decimal
    final_total: Decimal
    discount_percentage: Decimal | None = None


class DiscountCodeResponse(BaseModel):
    id: int
    code: str
    discount_type: str
    discount_value: Decimal
    discount_scope: str
    gating_type: str
    is_gated: bool
    priority_level: int
    auto_apply: bool
    display_text: str
    expiration_status: str
    expiration_message: str
    expires_at: datetime | None = None


class EligibleDiscountResponse(BaseModel):
    discount: DiscountCodeResponse
    amount: DiscountAmountResponse
    gate_detail: str | None = None


class DiscountEligibleResponse(BaseModel):
    fid: int
    discounts: list[EligibleDiscountResponse]
    best: EligibleDiscountResponse | None = None


class DiscountValidateResponse(BaseModel):
    code: str
    is_valid: bool
    reason: str
    detail: str = ""
    discount: DiscountCodeResponse | None = None
    amount: DiscountAmountResponse | None = None


class DiscountRedeemResponse(BaseModel):
    usage_id: UUID
    discount_code_id: int
    code: str
    fid: int
    order_id: str
    discount_amount: Decimal
    original_subtotal: Decimal
    used_at: datetime
    current_total_uses: int = Field(ge=0)
    idempotent_replay: bool


class WelcomeCodeResponse(BaseModel):
    code: str
    discount_code_id: int
    is_existing: bool
