from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Literal

Domain = Literal["pool_state"]


@dataclass(frozen=True)
class PoolTick:
    """
    Canonical ingestion tick.

    This is the ONLY object allowed to cross the boundary:
        Ingestion -> Synchronizer -> PoolStateCache

    Semantics:
        - `timestamp` : time the fetch completed (float, seconds)
        - `data_ts`   : time the fetch started; reads are not atomic across calls
        - `domain`    : data domain identifier
        - `pool`      : pool contract address
        - `payload`   : normalized integer reads
    """

    timestamp: float
    data_ts: float
    domain: Domain
    pool: str
    payload: Mapping[str, Any]


def normalize_tick(
    *,
    timestamp: float,
    pool: str,
    payload: Mapping[str, Any],
    data_ts: float | None = None,
    domain: Domain = "pool_state",
) -> PoolTick:
    """
    Build a canonical PoolTick.

    Rules:
        - data_ts defaults to timestamp
        - no mutation, no enrichment, no inference
    """
    ts = float(timestamp)
    fetch_ts = float(data_ts) if data_ts is not None else ts

    return PoolTick(
        timestamp=ts,
        data_ts=fetch_ts,
        domain=domain,
        pool=str(pool),
        payload=dict(payload),
    )
