"""
Integer-domain amount primitives.

Every token quantity inside amm_engine is a ScaledAmount: a non-negative
Python int in base units at a fixed fractional scale. Decimal strings exist
only at the I/O boundary (user input, display, logs).
"""

from .fixed_point import (
    DEFAULT_SCALE,
    ScaledAmount,
    ensure_scaled,
    to_scaled,
    from_scaled,
    format_amount,
    canonicalize,
)

__all__ = [
    "DEFAULT_SCALE",
    "ScaledAmount",
    "ensure_scaled",
    "to_scaled",
    "from_scaled",
    "format_amount",
    "canonicalize",
]
