from __future__ import annotations

import re

_DISCOUNT_CODE_WHITESPACE_PATTERN = re.compile(r"\s+")
MAX_DISCOUNT_CODE_LENGTH = 64


def normalize_discount_code(raw_code: str | None) -> str:
    if not raw_code:
        return ""
    normalized = _DISCOUNT_CODE_WHITESPACE_PATTERN.sub("", raw_code).upper()
    return normalized[:MAX_DISCOUNT_CODE_LENGTH]


def normalize_wallet_address(address: str) -> str:
    return address.strip().lower()


def normalize_wallet_addresses(addresses: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for address in addresses:
        if not isinstance(address, str):
            continue
        normalized = normalize_wallet_address(address)
        if normalized:
            seen.setdefault(normalized, None)
    return tuple(seen)
