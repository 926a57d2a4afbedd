"""
Constant-product quote and invariant engine (pool math only).

Stateless: every method takes the PoolSnapshot it must use, so a refresh
landing mid-computation can never mix reserves from two snapshots. All
arithmetic is on Python ints, multiplying before dividing; Fraction is used
only for ratios handed to presentation.
"""

from __future__ import annotations

from fractions import Fraction

from amm_engine.core import ensure_scaled
from amm_engine.data.snapshot import PoolSnapshot
from amm_engine.exceptions import InvalidAmount, RatioMismatch
from amm_engine.utils.logger import get_logger, log_debug

from .types import Side, SwapDirection, DepositQuote, SwapQuote, RemovalQuote

DEFAULT_FEE_BPS = 30
DEFAULT_FEE_DENOMINATOR = 10_000
DEFAULT_TOLERANCE = 1


def _reserves(snapshot: PoolSnapshot, side: Side) -> tuple[int, int]:
    """(same-side reserve, other-side reserve)."""
    if side is Side.X:
        return snapshot.reserve_x, snapshot.reserve_y
    return snapshot.reserve_y, snapshot.reserve_x


def _positive(value: int, name: str) -> int:
    ensure_scaled(value, name)
    if value == 0:
        raise InvalidAmount(f"{name} must be > 0", value=value)
    return value


class QuoteEngine:
    """Reproduces the remote pool's fee and ratio arithmetic off-line."""

    def __init__(
        self,
        fee_bps: int = DEFAULT_FEE_BPS,
        fee_denominator: int = DEFAULT_FEE_DENOMINATOR,
        tolerance: int = DEFAULT_TOLERANCE,
    ):
        if fee_denominator <= 0:
            raise ValueError("fee_denominator must be > 0")
        if not 0 <= fee_bps < fee_denominator:
            raise ValueError("fee must satisfy 0 <= fee_bps < fee_denominator")
        if tolerance < 0:
            raise ValueError("tolerance must be >= 0")
        self.fee_bps = int(fee_bps)
        self.fee_denominator = int(fee_denominator)
        self.tolerance = int(tolerance)
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------
    def required_counterpart(self, snapshot: PoolSnapshot, amount: int, side: Side = Side.X) -> DepositQuote:
        """Counterpart needed to deposit `amount` of `side` at the current ratio."""
        ensure_scaled(amount, "amount")
        side = Side(side)
        if snapshot.is_empty:
            return DepositQuote(side, amount, None, True, snapshot.fetched_at)
        same, other = _reserves(snapshot, side)
        required = amount * other // same
        log_debug(self._logger, "QuoteEngine required_counterpart", side=side, amount=amount, required=required)
        return DepositQuote(side, amount, required, False, snapshot.fetched_at)

    def validate_ratio(self, required: int, supplied: int, tolerance: int | None = None) -> int:
        """Accept `supplied` when within tolerance of `required`; raise RatioMismatch otherwise."""
        tol = self.tolerance if tolerance is None else int(tolerance)
        if abs(int(supplied) - int(required)) > tol:
            raise RatioMismatch(required=int(required), supplied=int(supplied), tolerance=tol)
        return supplied

    def check_deposit(self, snapshot: PoolSnapshot, amount_x: int, amount_y: int) -> DepositQuote:
        """Validate a deposit pair; token X drives, token Y is the checked counterpart."""
        _positive(amount_x, "amount_x")
        _positive(amount_y, "amount_y")
        quote = self.required_counterpart(snapshot, amount_x, Side.X)
        if quote.unconstrained:
            return quote
        assert quote.required is not None
        self.validate_ratio(quote.required, amount_y)
        return quote

    def lp_mint_estimate(self, snapshot: PoolSnapshot, amount_x: int, amount_y: int) -> int | None:
        """LP tokens a proportional deposit mints; None for a first deposit."""
        if snapshot.is_empty or snapshot.lp_total_supply == 0:
            return None
        supply = snapshot.lp_total_supply
        return min(amount_x * supply // snapshot.reserve_x, amount_y * supply // snapshot.reserve_y)

    # ------------------------------------------------------------------
    # Swaps
    # ------------------------------------------------------------------
    def fee_for(self, amount_in: int) -> int:
        return amount_in * self.fee_bps // self.fee_denominator

    def swap_quote(self, snapshot: PoolSnapshot, direction: SwapDirection, amount_in: int) -> SwapQuote:
        """Output of an exact-in swap, fee taken on the input side.

        effective = in - floor(in * fee / den)
        out       = effective * R_out // (R_in + effective)
        """
        ensure_scaled(amount_in, "amount_in")
        direction = SwapDirection(direction)
        fee = self.fee_for(amount_in)
        effective = amount_in - fee
        r_in, r_out = _reserves(snapshot, direction.input_side)

        if r_in == 0 or r_out == 0:
            # no liquidity, no trustworthy quote: identity estimate
            return SwapQuote(
                direction=direction,
                amount_in=amount_in,
                fee=fee,
                effective_input=effective,
                amount_out=effective,
                fee_free_out=amount_in,
                spot_out=effective,
                price_impact=Fraction(0),
                unconstrained=True,
                snapshot_ts=snapshot.fetched_at,
            )

        amount_out = effective * r_out // (r_in + effective)
        fee_free_out = amount_in * r_out // (r_in + amount_in)
        spot_out = effective * r_out // r_in
        impact = Fraction(0) if spot_out == 0 else 1 - Fraction(amount_out, spot_out)

        log_debug(
            self._logger,
            "QuoteEngine swap_quote",
            direction=direction,
            amount_in=amount_in,
            fee=fee,
            amount_out=amount_out,
        )
        return SwapQuote(
            direction=direction,
            amount_in=amount_in,
            fee=fee,
            effective_input=effective,
            amount_out=amount_out,
            fee_free_out=fee_free_out,
            spot_out=spot_out,
            price_impact=impact,
            unconstrained=False,
            snapshot_ts=snapshot.fetched_at,
        )

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------
    def removal_quote(self, snapshot: PoolSnapshot, lp_amount: int) -> RemovalQuote:
        """Pro-rata reserves released by burning `lp_amount`."""
        _positive(lp_amount, "lp_amount")
        supply = snapshot.lp_total_supply
        if supply == 0:
            raise InvalidAmount("pool has no LP supply to withdraw from", value=lp_amount)
        if lp_amount > supply:
            raise InvalidAmount(f"lp_amount {lp_amount} exceeds total supply {supply}", value=lp_amount)
        return RemovalQuote(
            lp_amount=lp_amount,
            amount_x=lp_amount * snapshot.reserve_x // supply,
            amount_y=lp_amount * snapshot.reserve_y // supply,
            share=Fraction(lp_amount, supply),
            snapshot_ts=snapshot.fetched_at,
        )

    # ------------------------------------------------------------------
    # Pool-level figures
    # ------------------------------------------------------------------
    @staticmethod
    def spot_ratio(snapshot: PoolSnapshot) -> Fraction | None:
        """Units of Y per unit of X; None for an empty pool."""
        if snapshot.is_empty:
            return None
        return Fraction(snapshot.reserve_y, snapshot.reserve_x)

    @staticmethod
    def invariant_k(snapshot: PoolSnapshot) -> int:
        return snapshot.k
