from __future__ import annotations

import re

from app.economy.discounts.welcome import build_welcome_code

WELCOME_CODE_RE = re.compile(r"^WELCOME15-\d{6}[A-Z0-9]{3}$")


def test_welcome_code_pads_short_fids() -> None:
    code = build_welcome_code(fid=42, percent=15)

    assert WELCOME_CODE_RE.match(code)
    assert code.startswith("WELCOME15-000042")


def test_welcome_code_keeps_last_six_fid_digits() -> None:
    code = build_welcome_code(fid=123456789, percent=15)

    assert code.startswith("WELCOME15-456789")
    assert len(code) == len("WELCOME15-") + 9


def test_welcome_code_suffix_varies() -> None:
    codes = {build_welcome_code(fid=7, percent=15) for _ in range(50)}

    assert len(codes) > 1
