from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict

from pool_ingestion.contracts.reads import PoolReadService


@dataclass(frozen=True)
class TokenAddresses:
    token_x: str
    token_y: str
    lp_token: str


class PoolStateSource:
    """
    One fetch = one bundle of reads (reserves, LP supply and, when an account
    is connected, its three balances) issued concurrently.

    The reads are separate remote calls, so the bundle is only as consistent
    as the remote allows; `started_at`/`fetched_at` bracket the window.
    """

    def __init__(
        self,
        read_service: PoolReadService,
        *,
        tokens: TokenAddresses,
        account: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._service = read_service
        self._tokens = tokens
        self._account = account
        self._clock = clock

    @property
    def read_service(self) -> PoolReadService:
        return self._service

    @property
    def account(self) -> str | None:
        return self._account

    def connect(self, account: str | None) -> None:
        """Switch the account whose balances are fetched (None disconnects)."""
        self._account = account

    async def fetch(self) -> Dict[str, Any]:
        started_at = self._clock()
        account = self._account

        pool_reads = asyncio.gather(
            self._service.get_reserves(),
            self._service.get_lp_total_supply(),
        )
        if account is None:
            (reserve_x, reserve_y), supply = await pool_reads
            balances: tuple[int, ...] = ()
        else:
            account_reads = asyncio.gather(
                self._service.get_balance(self._tokens.token_x, account),
                self._service.get_balance(self._tokens.token_y, account),
                self._service.get_balance(self._tokens.lp_token, account),
            )
            ((reserve_x, reserve_y), supply), balances = await asyncio.gather(pool_reads, account_reads)

        raw: Dict[str, Any] = {
            "reserve_x": reserve_x,
            "reserve_y": reserve_y,
            "lp_total_supply": supply,
            "started_at": started_at,
            "fetched_at": self._clock(),
        }
        if account is not None:
            raw["account"] = account
            raw["token_x_balance"], raw["token_y_balance"], raw["lp_balance"] = balances
        return raw
