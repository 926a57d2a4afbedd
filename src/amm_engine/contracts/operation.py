from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Union

from amm_engine.core import ensure_scaled
from amm_engine.data.snapshot import AccountPosition
from amm_engine.exceptions import InvalidAmount
from amm_engine.quote.types import SwapDirection

TokenKey = Literal["token_x", "token_y", "lp_token"]


class OperationKind(str, Enum):
    SWAP = "swap"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"
    MINT = "mint"


def _positive(value: int, name: str) -> None:
    ensure_scaled(value, name)
    if value == 0:
        raise InvalidAmount(f"{name} must be > 0", value=value)


@dataclass(frozen=True)
class SwapRequest:
    direction: SwapDirection
    amount_in: int
    kind: OperationKind = OperationKind.SWAP

    def __post_init__(self):
        object.__setattr__(self, "direction", SwapDirection(self.direction))
        _positive(self.amount_in, "amount_in")

    @property
    def input_token(self) -> TokenKey:
        return "token_x" if self.direction is SwapDirection.X_TO_Y else "token_y"

    def spends(self) -> Dict[str, int]:
        return {self.input_token: self.amount_in}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "direction": self.direction.value, "amount_in": self.amount_in}


@dataclass(frozen=True)
class AddLiquidityRequest:
    amount_x: int
    amount_y: int
    kind: OperationKind = OperationKind.ADD_LIQUIDITY

    def __post_init__(self):
        _positive(self.amount_x, "amount_x")
        _positive(self.amount_y, "amount_y")

    def spends(self) -> Dict[str, int]:
        return {"token_x": self.amount_x, "token_y": self.amount_y}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "amount_x": self.amount_x, "amount_y": self.amount_y}


@dataclass(frozen=True)
class RemoveLiquidityRequest:
    lp_amount: int
    kind: OperationKind = OperationKind.REMOVE_LIQUIDITY

    def __post_init__(self):
        _positive(self.lp_amount, "lp_amount")

    def spends(self) -> Dict[str, int]:
        return {"lp_token": self.lp_amount}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "lp_amount": self.lp_amount}


@dataclass(frozen=True)
class MintRequest:
    """Test-token faucet: mint `amount` of a pool token to the sender."""

    token: TokenKey
    amount: int
    kind: OperationKind = OperationKind.MINT

    def __post_init__(self):
        if self.token not in ("token_x", "token_y"):
            raise InvalidAmount(f"mint token must be token_x or token_y, got {self.token!r}", value=self.token)
        _positive(self.amount, "amount")

    def spends(self) -> Dict[str, int]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "token": self.token, "amount": self.amount}


OperationRequest = Union[SwapRequest, AddLiquidityRequest, RemoveLiquidityRequest, MintRequest]


def remove_all(position: AccountPosition) -> RemoveLiquidityRequest:
    """Withdraw the account's whole LP balance."""
    if position.lp_balance == 0:
        raise InvalidAmount("no LP tokens to remove", value=0)
    return RemoveLiquidityRequest(lp_amount=position.lp_balance)
