from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Dict, Optional

from amm_engine.core import ensure_scaled
from amm_engine.data.snapshot import PoolState


@dataclass(frozen=True)
class DepositBaseline:
    """Amounts the account first put into the pool; fee accrual is measured against them."""

    amount_x: int
    amount_y: int
    recorded_at: float = 0.0

    def __post_init__(self):
        ensure_scaled(self.amount_x, "amount_x")
        ensure_scaled(self.amount_y, "amount_y")


@dataclass(frozen=True)
class FeeAccrual:
    """Claimable amounts minus the deposit baseline; negative when the position shrank."""

    x: int
    y: int
    # (x + y) / (baseline_x + baseline_y); None for an all-zero baseline
    relative: Optional[Fraction] = None


@dataclass(frozen=True)
class PoolView:
    """
    Presentation values derived from exactly one PoolState.

    Never patched in place; a new snapshot always produces a new view.
    """

    ratio: Optional[Fraction]
    inverse_ratio: Optional[Fraction]
    pool_share: Fraction
    claimable_x: int
    claimable_y: int
    fee_accrual: Optional[FeeAccrual]
    k: int
    fetched_at: float
    stale: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ratio": self.ratio,
            "inverse_ratio": self.inverse_ratio,
            "pool_share": self.pool_share,
            "claimable_x": self.claimable_x,
            "claimable_y": self.claimable_y,
            "fee_accrual": self.fee_accrual,
            "k": self.k,
            "fetched_at": self.fetched_at,
            "stale": self.stale,
        }


def recompute_view(state: PoolState, baseline: DepositBaseline | None = None) -> PoolView:
    snap = state.snapshot
    if snap.is_empty:
        ratio = inverse = None
    else:
        ratio = Fraction(snap.reserve_y, snap.reserve_x)
        inverse = Fraction(snap.reserve_x, snap.reserve_y)

    lp = 0 if state.position is None else state.position.lp_balance
    supply = snap.lp_total_supply
    if supply > 0 and lp > 0:
        share = Fraction(min(lp, supply), supply)
        claim_x = lp * snap.reserve_x // supply
        claim_y = lp * snap.reserve_y // supply
    else:
        share = Fraction(0)
        claim_x = claim_y = 0

    accrual = None
    if baseline is not None:
        dx = claim_x - baseline.amount_x
        dy = claim_y - baseline.amount_y
        base_total = baseline.amount_x + baseline.amount_y
        relative = Fraction(dx + dy, base_total) if base_total > 0 else None
        accrual = FeeAccrual(dx, dy, relative)

    return PoolView(
        ratio=ratio,
        inverse_ratio=inverse,
        pool_share=share,
        claimable_x=claim_x,
        claimable_y=claim_y,
        fee_accrual=accrual,
        k=snap.k,
        fetched_at=snap.fetched_at,
        stale=state.stale,
    )
