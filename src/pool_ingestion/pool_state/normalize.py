from __future__ import annotations

from typing import Any, Mapping

from pool_ingestion.contracts.tick import PoolTick, normalize_tick

_POOL_FIELDS = ("reserve_x", "reserve_y", "lp_total_supply")
_ACCOUNT_FIELDS = ("token_x_balance", "token_y_balance", "lp_balance")


def _as_amount(raw: Mapping[str, Any], key: str) -> int:
    value = raw[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"pool read '{key}' must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"pool read '{key}' must be >= 0, got {value}")
    return value


class PoolStateNormalizer:
    """
    Raw read bundle -> PoolTick.

    Expected raw keys:
        reserve_x, reserve_y, lp_total_supply, fetched_at, started_at
        account (optional) with token_x_balance, token_y_balance, lp_balance
    """

    def __init__(self, *, pool: str):
        self.pool = pool

    def normalize(self, *, raw: Mapping[str, Any]) -> PoolTick:
        payload: dict[str, Any] = {key: _as_amount(raw, key) for key in _POOL_FIELDS}

        account = raw.get("account")
        if account is not None:
            payload["account"] = str(account)
            for key in _ACCOUNT_FIELDS:
                payload[key] = _as_amount(raw, key)

        return normalize_tick(
            timestamp=raw["fetched_at"],
            data_ts=raw.get("started_at"),
            pool=self.pool,
            payload=payload,
        )
