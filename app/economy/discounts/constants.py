from __future__ import annotations

from decimal import Decimal

DISCOUNT_TYPE_PERCENTAGE = "percentage"
DISCOUNT_TYPE_FIXED = "fixed"

SCOPE_SITE_WIDE = "site_wide"
SCOPE_PRODUCT = "product"

GATING_NONE = "none"
GATING_TOKEN_BALANCE = "token_balance"
GATING_STAKING_BALANCE = "staking_balance"
GATING_CLUB_MEMBERSHIP = "club_membership"
GATING_WHITELIST_USER = "whitelist_user"
GATING_WHITELIST_WALLET = "whitelist_wallet"
GATING_CONTRACT_HOLDING = "contract_holding"
GATING_COMBINED = "combined"

# gating_config flags of a combined gate, in evaluation order
COMBINED_REQUIREMENT_FLAGS: tuple[tuple[str, str], ...] = (
    ("require_fid_whitelist", GATING_WHITELIST_USER),
    ("require_wallet_whitelist", GATING_WHITELIST_WALLET),
    ("require_nft_holding", GATING_CONTRACT_HOLDING),
    ("require_token_balance", GATING_TOKEN_BALANCE),
    ("require_staking_balance", GATING_STAKING_BALANCE),
    ("require_club_membership", GATING_CLUB_MEMBERSHIP),
)

CODE_TYPE_WELCOME = "welcome"
CODE_TYPE_PROMOTIONAL = "promotional"

REASON_OK = "OK"
REASON_NOT_FOUND = "NOT_FOUND"
REASON_EXPIRED = "EXPIRED"
REASON_EXHAUSTED = "EXHAUSTED"
REASON_NOT_OWNED_BY_USER = "NOT_OWNED_BY_USER"
REASON_ALREADY_USED = "ALREADY_USED"
REASON_SCOPE_MISMATCH = "SCOPE_MISMATCH"
REASON_BELOW_MINIMUM_ORDER = "BELOW_MINIMUM_ORDER"
REASON_GATE_NOT_SATISFIED = "GATE_NOT_SATISFIED"

DEFAULT_REQUIRED_BALANCE = Decimal("1")
DEFAULT_CHAIN_IDS: tuple[int, ...] = (1,)
MAX_PERCENTAGE_VALUE = Decimal("100")
CENT = Decimal("0.01")

WELCOME_CODE_PREFIX = "WELCOME"
WELCOME_CODE_SUFFIX_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
WELCOME_CODE_SUFFIX_LENGTH = 3
WELCOME_CODE_MAX_ATTEMPTS = 5
