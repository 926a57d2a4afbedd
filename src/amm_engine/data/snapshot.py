from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from amm_engine.core import ensure_scaled


@dataclass(frozen=True)
class PoolSnapshot:
    """
    Frozen view of the remote pool at `fetched_at` (unix seconds).

    Invariant: both reserves are zero (uninitialised pool) or both positive.
    """

    reserve_x: int
    reserve_y: int
    lp_total_supply: int
    fetched_at: float

    def __post_init__(self):
        ensure_scaled(self.reserve_x, "reserve_x")
        ensure_scaled(self.reserve_y, "reserve_y")
        ensure_scaled(self.lp_total_supply, "lp_total_supply")
        if (self.reserve_x == 0) != (self.reserve_y == 0):
            raise ValueError(
                f"PoolSnapshot reserves must be both zero or both positive "
                f"(reserve_x={self.reserve_x}, reserve_y={self.reserve_y})"
            )

    @property
    def is_empty(self) -> bool:
        return self.reserve_x == 0

    @property
    def k(self) -> int:
        """Constant-product invariant reserve_x * reserve_y."""
        return self.reserve_x * self.reserve_y

    def age(self, now: float) -> float:
        return max(0.0, float(now) - self.fetched_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reserve_x": self.reserve_x,
            "reserve_y": self.reserve_y,
            "lp_total_supply": self.lp_total_supply,
            "fetched_at": self.fetched_at,
        }

    @staticmethod
    def from_mapping(payload: Mapping[str, Any], fetched_at: float) -> "PoolSnapshot":
        return PoolSnapshot(
            reserve_x=payload["reserve_x"],
            reserve_y=payload["reserve_y"],
            lp_total_supply=payload["lp_total_supply"],
            fetched_at=float(fetched_at),
        )


@dataclass(frozen=True)
class AccountPosition:
    """Balances of the connected account, in base units."""

    account: str
    token_x_balance: int
    token_y_balance: int
    lp_balance: int

    def __post_init__(self):
        ensure_scaled(self.token_x_balance, "token_x_balance")
        ensure_scaled(self.token_y_balance, "token_y_balance")
        ensure_scaled(self.lp_balance, "lp_balance")

    def balance_of(self, token: str) -> int:
        return {
            "token_x": self.token_x_balance,
            "token_y": self.token_y_balance,
            "lp_token": self.lp_balance,
        }[token]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "token_x_balance": self.token_x_balance,
            "token_y_balance": self.token_y_balance,
            "lp_balance": self.lp_balance,
        }


@dataclass(frozen=True)
class PoolState:
    """Unit of replacement in the cache: snapshot and position fetched together."""

    snapshot: PoolSnapshot
    position: AccountPosition | None = None
    stale: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot": self.snapshot.to_dict(),
            "position": None if self.position is None else self.position.to_dict(),
            "stale": self.stale,
        }
