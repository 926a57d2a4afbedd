from __future__ import annotations

import argparse
import asyncio
import time
from pathlib import Path

from pool_ingestion.pool_state import PoolStateSource, TokenAddresses

from amm_engine.config import load_engine_config
from amm_engine.contracts import AddLiquidityRequest, MintRequest, SwapRequest, remove_all
from amm_engine.core import from_scaled, format_amount, to_scaled
from amm_engine.data.cache import PoolStateCache
from amm_engine.exceptions import RatioMismatch
from amm_engine.execution import OperationOrchestrator
from amm_engine.quote import QuoteEngine, QuoteInput, QuoteTracker, Side, SwapDirection
from amm_engine.runtime.log_router import attach_artifact_handlers
from amm_engine.runtime.sync import StateSynchronizer
from amm_engine.sim import SimulatedPool
from amm_engine.utils.logger import get_logger, init_logging, log_info, log_warn


logger = get_logger(__name__)
ROOT = Path(__file__).resolve().parents[1]


async def main(config_path: Path, mode: str, run_id: str) -> None:
    # -------------------------------------------------
    # 1. Configuration & logging
    # -------------------------------------------------
    init_logging(str(ROOT / "configs" / "logging.json"), run_id=run_id, mode=mode)
    attach_artifact_handlers(get_logger("amm_engine"), run_id=run_id, operations=True, refresh=True)
    cfg = load_engine_config(config_path)
    addresses = cfg.addresses
    scale = cfg.scale

    # -------------------------------------------------
    # 2. Remote side (simulated) & wiring
    # -------------------------------------------------
    pool = SimulatedPool(
        addresses,
        fee_bps=cfg.fee_bps,
        fee_denominator=cfg.fee_denominator,
        tolerance=cfg.ratio_tolerance,
    )
    pool.seed(to_scaled("1000", scale=scale), to_scaled("2000", scale=scale))

    engine = QuoteEngine(cfg.fee_bps, cfg.fee_denominator, cfg.ratio_tolerance)
    cache = PoolStateCache(window=cfg.history_window)
    source = PoolStateSource(
        pool,
        tokens=TokenAddresses(addresses.token_x, addresses.token_y, addresses.lp_token),
    )
    sync = StateSynchronizer(
        cache,
        source,
        pool=addresses.pool,
        interval_s=cfg.refresh_interval_s,
        account=pool.account,
    )
    orchestrator = OperationOrchestrator(
        pool,
        cache,
        engine,
        addresses,
        confirmation_timeout_s=cfg.confirmation_timeout_s,
        max_snapshot_age_s=cfg.max_snapshot_age_s,
    )
    sync.attach(orchestrator)
    tracker = QuoteTracker(cache, engine, read_service=pool, scale=scale)
    tracker.attach()

    await sync.refresh()
    sync.start()

    try:
        # -------------------------------------------------
        # 3. Faucet, deposit (with one-click ratio correction), swap, withdraw
        # -------------------------------------------------
        for token in ("token_x", "token_y"):
            await orchestrator.submit(MintRequest(token, to_scaled("500", scale=scale)))

        quoted = await tracker.set_input(QuoteInput("deposit", "100", side=Side.X))
        assert quoted is not None and quoted.ok
        amount_x = quoted.amount
        amount_y = to_scaled("199", scale=scale)
        try:
            orchestrator.validate(AddLiquidityRequest(amount_x, amount_y))
        except RatioMismatch as exc:
            log_warn(logger, "demo.ratio_corrected", supplied=exc.supplied, required=exc.required)
            amount_y = exc.required

        op = await orchestrator.submit(AddLiquidityRequest(amount_x, amount_y))
        log_info(logger, "demo.deposit", op_id=op.op_id, phase=op.phase, steps=len(op.steps))

        swap_in = to_scaled("25", scale=scale)
        quote = engine.swap_quote(cache.snapshot, SwapDirection.X_TO_Y, swap_in)
        op = await orchestrator.submit(SwapRequest(SwapDirection.X_TO_Y, swap_in))
        log_info(
            logger,
            "demo.swap",
            op_id=op.op_id,
            phase=op.phase,
            quoted_out=from_scaled(quote.amount_out, scale=scale),
        )

        view = sync.view
        assert view is not None
        print(f"ratio Y/X      : {float(view.ratio):.6f}")
        print(f"pool share     : {float(view.pool_share) * 100:.4f}%")
        print(f"claimable X/Y  : {format_amount(view.claimable_x, scale=scale)} / {format_amount(view.claimable_y, scale=scale)}")
        if view.fee_accrual is not None:
            print(f"fee accrual X/Y: {format_amount(max(view.fee_accrual.x, 0), scale=scale)} / {format_amount(max(view.fee_accrual.y, 0), scale=scale)}")

        assert cache.position is not None
        op = await orchestrator.submit(remove_all(cache.position))
        log_info(logger, "demo.withdraw", op_id=op.op_id, phase=op.phase)

        for op_id, state in orchestrator.operations.items():
            if state.is_terminal:
                orchestrator.acknowledge(op_id)
        print(cache.window_df().tail())
    finally:
        tracker.detach()
        await sync.stop()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="AMM engine demo against a simulated pool.")
    parser.add_argument("--config", default=str(ROOT / "configs" / "pool.json"), help="engine config path")
    parser.add_argument("--mode", default="demo", help="logging profile name")
    parser.add_argument("--run-id", default=None, help="run id for log context")
    args = parser.parse_args()
    asyncio.run(main(Path(args.config), args.mode, args.run_id or f"demo_{int(time.time())}"))
