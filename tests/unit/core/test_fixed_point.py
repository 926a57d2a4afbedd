from __future__ import annotations

import pytest

from amm_engine.core import canonicalize, ensure_scaled, format_amount, from_scaled, to_scaled
from amm_engine.exceptions import InvalidAmount


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1", 10**18),
        ("1.5", 15 * 10**17),
        ("0.000000000000000001", 1),
        (".5", 5 * 10**17),
        ("5.", 5 * 10**18),
        ("  42  ", 42 * 10**18),
        ("0", 0),
    ],
)
def test_to_scaled_parses_plain_decimals(text: str, expected: int) -> None:
    assert to_scaled(text) == expected


def test_to_scaled_beyond_float_precision() -> None:
    text = "123456789012345678.123456789012345678"
    assert to_scaled(text) == 123456789012345678123456789012345678
    assert from_scaled(to_scaled(text)) == text


@pytest.mark.parametrize("text", ["", " ", ".", "-1", "+1", "1e18", "1,000", "nan", "inf", "0x10", "1.2.3", "١"])
def test_to_scaled_rejects_malformed_input(text: str) -> None:
    with pytest.raises(InvalidAmount):
        to_scaled(text)


def test_to_scaled_rejects_non_string() -> None:
    with pytest.raises(InvalidAmount):
        to_scaled(1.5)  # type: ignore[arg-type]


def test_over_precision_truncates_by_default() -> None:
    assert to_scaled("0.1234567", scale=6) == 123456
    assert to_scaled("0.9999999", scale=6) == 999999


def test_over_precision_rejected_when_strict() -> None:
    with pytest.raises(InvalidAmount):
        to_scaled("0.1234567", scale=6, strict=True)
    assert to_scaled("0.123456", scale=6, strict=True) == 123456


def test_require_positive() -> None:
    with pytest.raises(InvalidAmount):
        to_scaled("0.000", require_positive=True)
    # truncated to zero is still zero
    with pytest.raises(InvalidAmount):
        to_scaled("0.0000001", scale=6, require_positive=True)
    assert to_scaled("0.000001", scale=6, require_positive=True) == 1


def test_from_scaled_canonical_form() -> None:
    assert from_scaled(10**18) == "1.000000000000000000"
    assert from_scaled(1) == "0.000000000000000001"
    assert from_scaled(0) == "0.000000000000000000"
    assert from_scaled(1234, scale=0) == "1234"
    assert from_scaled(1234, scale=2) == "12.34"


def test_from_scaled_rejects_invalid() -> None:
    with pytest.raises(InvalidAmount):
        from_scaled(-1)
    with pytest.raises(InvalidAmount):
        from_scaled(1.0)  # type: ignore[arg-type]
    with pytest.raises(InvalidAmount):
        from_scaled(True)  # type: ignore[arg-type]


@pytest.mark.parametrize("text, canonical", [("1", "1.000000"), ("0.5", "0.500000"), (".25", "0.250000"), ("7.000001", "7.000001")])
def test_canonical_round_trip(text: str, canonical: str) -> None:
    assert canonicalize(text, scale=6) == canonical
    assert to_scaled(canonicalize(text, scale=6), scale=6) == to_scaled(text, scale=6)


@pytest.mark.parametrize(
    "text",
    [
        "123456789.123456789012345678",
        "0.000000000000000001",
        "0.999999999999999999",
        "1.000000000000000000",
        "115792089237316195423570985008687907853269984665640564039457.584007913129639935",
    ],
)
def test_canonical_round_trip_at_full_scale(text: str) -> None:
    assert from_scaled(to_scaled(text)) == text
    assert to_scaled(canonicalize(text)) == to_scaled(text)


@pytest.mark.parametrize("amount", [0, 1, 10**18 - 1, 10**18, 2**256 - 1])
def test_scaled_amount_survives_text_round_trip(amount: int) -> None:
    assert to_scaled(from_scaled(amount)) == amount
    assert to_scaled(from_scaled(amount), strict=True) == amount


def test_format_amount_truncates() -> None:
    amount = to_scaled("1.9999999")
    assert format_amount(amount, places=6) == "1.999999"
    assert format_amount(amount, places=0) == "1"
    assert format_amount(5, scale=0, places=2) == "5.00"


def test_ensure_scaled() -> None:
    assert ensure_scaled(5, "x") == 5
    with pytest.raises(InvalidAmount):
        ensure_scaled(-5, "x")
    with pytest.raises(InvalidAmount):
        ensure_scaled(False, "x")
