from app.economy.discounts.constants import (
    REASON_ALREADY_USED,
    REASON_BELOW_MINIMUM_ORDER,
    REASON_EXHAUSTED,
    REASON_EXPIRED,
    REASON_GATE_NOT_SATISFIED,
    REASON_NOT_FOUND,
    REASON_NOT_OWNED_BY_USER,
    REASON_SCOPE_MISMATCH,
)


class DiscountError(Exception):
    reason = "ERROR"


class DiscountNotFoundError(DiscountError):
    reason = REASON_NOT_FOUND


class DiscountExpiredError(DiscountError):
    reason = REASON_EXPIRED


class DiscountExhaustedError(DiscountError):
    reason = REASON_EXHAUSTED


class DiscountNotOwnedError(DiscountError):
    reason = REASON_NOT_OWNED_BY_USER


class DiscountAlreadyUsedError(DiscountError):
    reason = REASON_ALREADY_USED


class DiscountScopeMismatchError(DiscountError):
    reason = REASON_SCOPE_MISMATCH


class DiscountBelowMinimumError(DiscountError):
    reason = REASON_BELOW_MINIMUM_ORDER


class DiscountGateNotSatisfiedError(DiscountError):
    reason = REASON_GATE_NOT_SATISFIED

    def __init__(self, gating_type: str, detail: str = "") -> None:
        super().__init__(f"{gating_type}: {detail}" if detail else gating_type)
        self.gating_type = gating_type
        self.detail = detail


class DiscountIdempotencyConflictError(DiscountError):
    reason = "IDEMPOTENCY_CONFLICT"


class WelcomeCodeGenerationError(DiscountError):
    reason = "GENERATION_FAILED"


ERRORS_BY_REASON: dict[str, type[DiscountError]] = {
    REASON_NOT_FOUND: DiscountNotFoundError,
    REASON_EXPIRED: DiscountExpiredError,
    REASON_EXHAUSTED: DiscountExhaustedError,
    REASON_NOT_OWNED_BY_USER: DiscountNotOwnedError,
    REASON_ALREADY_USED: DiscountAlreadyUsedError,
    REASON_SCOPE_MISMATCH: DiscountScopeMismatchError,
    REASON_BELOW_MINIMUM_ORDER: DiscountBelowMinimumError,
}
