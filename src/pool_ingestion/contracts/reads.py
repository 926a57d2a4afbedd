from __future__ import annotations

from typing import Protocol, Tuple, runtime_checkable


@runtime_checkable
class PoolReadService(Protocol):
    """
    Read side of the remote pool service.

    Every amount is a scaled integer in base units. Implementations are
    asynchronous: a call suspends the caller without blocking other work.
    """

    async def get_reserves(self) -> Tuple[int, int]:
        """Return (reserve_x, reserve_y)."""
        ...

    async def get_lp_total_supply(self) -> int:
        ...

    async def get_balance(self, token: str, account: str) -> int:
        """Balance of `account` in the token contract at address `token`."""
        ...


@runtime_checkable
class CounterpartReadService(PoolReadService, Protocol):
    """Optional extension: the pool's own answer for a proportional deposit."""

    async def get_required_counterpart(self, amount: int, side: str) -> int:
        """Counterpart required to deposit `amount` of side "x" or "y"."""
        ...
