from .types import Side, SwapDirection, DepositQuote, SwapQuote, RemovalQuote
from .engine import QuoteEngine, DEFAULT_FEE_BPS, DEFAULT_FEE_DENOMINATOR, DEFAULT_TOLERANCE
from .tracker import QuoteTracker, QuoteInput, TrackedQuote

__all__ = [
    "Side",
    "SwapDirection",
    "DepositQuote",
    "SwapQuote",
    "RemovalQuote",
    "QuoteEngine",
    "DEFAULT_FEE_BPS",
    "DEFAULT_FEE_DENOMINATOR",
    "DEFAULT_TOLERANCE",
    "QuoteTracker",
    "QuoteInput",
    "TrackedQuote",
]
