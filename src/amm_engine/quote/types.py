from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Any, Dict


class Side(str, Enum):
    X = "x"
    Y = "y"

    @property
    def other(self) -> "Side":
        return Side.Y if self is Side.X else Side.X


class SwapDirection(str, Enum):
    X_TO_Y = "x_to_y"
    Y_TO_X = "y_to_x"

    @property
    def input_side(self) -> Side:
        return Side.X if self is SwapDirection.X_TO_Y else Side.Y

    @property
    def output_side(self) -> Side:
        return self.input_side.other


@dataclass(frozen=True)
class DepositQuote:
    """Counterpart requirement for a deposit.

    `required` is None when the pool is empty: any positive pair is accepted
    and no ratio check applies (`unconstrained`).
    """

    side: Side
    amount: int
    required: int | None
    unconstrained: bool
    snapshot_ts: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "side": self.side.value,
            "amount": self.amount,
            "required": self.required,
            "unconstrained": self.unconstrained,
            "snapshot_ts": self.snapshot_ts,
        }


@dataclass(frozen=True)
class SwapQuote:
    direction: SwapDirection
    amount_in: int
    fee: int
    effective_input: int
    amount_out: int
    fee_free_out: int
    spot_out: int
    price_impact: Fraction
    unconstrained: bool
    snapshot_ts: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "amount_in": self.amount_in,
            "fee": self.fee,
            "effective_input": self.effective_input,
            "amount_out": self.amount_out,
            "fee_free_out": self.fee_free_out,
            "spot_out": self.spot_out,
            "price_impact": self.price_impact,
            "unconstrained": self.unconstrained,
            "snapshot_ts": self.snapshot_ts,
        }


@dataclass(frozen=True)
class RemovalQuote:
    lp_amount: int
    amount_x: int
    amount_y: int
    share: Fraction
    snapshot_ts: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lp_amount": self.lp_amount,
            "amount_x": self.amount_x,
            "amount_y": self.amount_y,
            "share": self.share,
            "snapshot_ts": self.snapshot_ts,
        }
