"""
Decimal string <-> scaled integer conversion.

- Parsing walks the digit string and builds the integer directly; no float
  and no Decimal participates, so 18 fractional digits survive untouched.
- Excess fractional digits are truncated toward zero (the remote pool never
  receives a larger amount than the user typed); `strict=True` rejects them.
- Output is always `<int>.<zero-padded fraction>`, never scientific notation.
"""

from __future__ import annotations

import re
from typing import NewType

from amm_engine.exceptions import InvalidAmount

DEFAULT_SCALE = 18

ScaledAmount = NewType("ScaledAmount", int)

_DECIMAL_RE = re.compile(r"^(?P<int>[0-9]*)(?:\.(?P<frac>[0-9]*))?$")


def ensure_scaled(value: object, name: str = "amount") -> ScaledAmount:
    """Validate a base-unit amount: non-negative int, bool rejected."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an int in base units, got {type(value).__name__}", value=value)
    if value < 0:
        raise InvalidAmount(f"{name} must be >= 0, got {value}", value=value)
    return ScaledAmount(value)


def _check_scale(scale: int) -> None:
    if isinstance(scale, bool) or not isinstance(scale, int) or scale < 0:
        raise ValueError(f"scale must be a non-negative int, got {scale!r}")


def to_scaled(
    text: str,
    *,
    scale: int = DEFAULT_SCALE,
    require_positive: bool = False,
    strict: bool = False,
) -> ScaledAmount:
    """Parse a human-entered decimal string into base units.

    Raises InvalidAmount for anything that is not a plain non-negative
    decimal, for zero when `require_positive`, and for over-precision input
    when `strict`.
    """
    _check_scale(scale)
    if not isinstance(text, str):
        raise InvalidAmount(f"amount must be a decimal string, got {type(text).__name__}", value=text)

    s = text.strip()
    m = _DECIMAL_RE.match(s)
    if m is None:
        raise InvalidAmount(f"not a non-negative decimal: {text!r}", value=text)

    int_part = m.group("int") or ""
    frac_part = m.group("frac") or ""
    if not int_part and not frac_part:
        raise InvalidAmount(f"not a non-negative decimal: {text!r}", value=text)

    if len(frac_part) > scale:
        if strict:
            raise InvalidAmount(
                f"{text!r} has {len(frac_part)} fractional digits, supported precision is {scale}",
                value=text,
            )
        frac_part = frac_part[:scale]

    digits = (int_part or "0") + frac_part.ljust(scale, "0")
    amount = int(digits)

    if require_positive and amount == 0:
        raise InvalidAmount(f"amount must be > 0: {text!r}", value=text)
    return ScaledAmount(amount)


def from_scaled(amount: int, *, scale: int = DEFAULT_SCALE) -> str:
    """Exact decimal representation of a base-unit amount."""
    _check_scale(scale)
    ensure_scaled(amount)
    if scale == 0:
        return str(amount)
    whole, frac = divmod(amount, 10 ** scale)
    return f"{whole}.{frac:0{scale}d}"


def format_amount(amount: int, *, scale: int = DEFAULT_SCALE, places: int = 6) -> str:
    """Display helper: exact value truncated to `places` fractional digits."""
    if places < 0:
        raise ValueError("places must be >= 0")
    full = from_scaled(amount, scale=scale)
    if scale == 0:
        return full if places == 0 else f"{full}.{'0' * places}"
    whole, frac = full.split(".")
    if places == 0:
        return whole
    return f"{whole}.{frac[:places].ljust(places, '0')}"


def canonicalize(text: str, *, scale: int = DEFAULT_SCALE) -> str:
    return from_scaled(to_scaled(text, scale=scale), scale=scale)


__all__ = [
    "DEFAULT_SCALE",
    "ScaledAmount",
    "ensure_scaled",
    "to_scaled",
    "from_scaled",
    "format_amount",
    "canonicalize",
]
