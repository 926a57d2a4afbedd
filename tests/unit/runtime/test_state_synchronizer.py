from __future__ import annotations

import asyncio
from fractions import Fraction

import pytest

from helpers.factories import make_stack

from pool_ingestion.contracts.tick import normalize_tick

from amm_engine.contracts import SwapRequest
from amm_engine.exceptions import RefreshError
from amm_engine.execution import OperationPhase
from amm_engine.quote import QuoteEngine, QuoteInput, QuoteTracker, SwapDirection
from amm_engine.runtime.sync import tick_to_state
from amm_engine.runtime.views import DepositBaseline, PoolView
from amm_engine.sim import SimulatedPool


@pytest.fixture
def square_pool(sim_pool: SimulatedPool) -> SimulatedPool:
    sim_pool.seed(500, 500)
    sim_pool.fund("token_x", 100)
    return sim_pool


@pytest.mark.asyncio
async def test_refresh_recomputes_ratio(square_pool: SimulatedPool) -> None:
    cache, sync, _orch = make_stack(square_pool)
    views: list[PoolView] = []
    sync.subscribe(views.append)

    state = await sync.refresh()
    assert state is cache.state
    assert sync.view.ratio == 1
    assert views[-1] is sync.view

    square_pool.reserve_x, square_pool.reserve_y = 550, 454
    await sync.refresh()
    assert sync.view.ratio == Fraction(454, 550)
    assert sync.view.fetched_at == cache.snapshot.fetched_at


@pytest.mark.asyncio
async def test_confirmed_swap_triggers_refresh(square_pool: SimulatedPool) -> None:
    cache, sync, orchestrator = make_stack(square_pool)
    await sync.refresh()
    tracker = QuoteTracker(cache, QuoteEngine(), scale=0)

    op = await orchestrator.submit(SwapRequest(SwapDirection.X_TO_Y, 50))

    assert op.phase is OperationPhase.CONFIRMED
    # 50 in, fee floors to 0: out = 50 * 500 // 550 = 45
    assert (cache.snapshot.reserve_x, cache.snapshot.reserve_y) == (550, 455)
    assert sync.view.ratio == Fraction(455, 550)

    quote = await tracker.set_input(QuoteInput("swap", "10"))
    assert quote.quote.snapshot_ts == cache.snapshot.fetched_at
    assert quote.quote.amount_out == 10 * 455 // 560


@pytest.mark.asyncio
async def test_refresh_failure_keeps_values_and_flags_stale(square_pool: SimulatedPool) -> None:
    cache, sync, _orch = make_stack(square_pool)
    await sync.refresh()
    before = cache.snapshot

    square_pool.fail_reads(1)
    with pytest.raises(RefreshError):
        await sync.refresh()

    assert cache.is_stale
    assert cache.snapshot is before
    assert sync.view.stale

    await sync.refresh()
    assert not cache.is_stale
    assert not sync.view.stale


@pytest.mark.asyncio
async def test_periodic_refresh_picks_up_changes(square_pool: SimulatedPool) -> None:
    cache, sync, _orch = make_stack(square_pool)
    sync.start()
    assert sync.running
    with pytest.raises(RuntimeError):
        sync.start()

    await asyncio.sleep(0.03)
    square_pool.reserve_x, square_pool.reserve_y = 600, 420
    square_pool.fail_reads(1)
    await asyncio.sleep(0.08)
    await sync.stop()

    assert not sync.running
    assert (cache.snapshot.reserve_x, cache.snapshot.reserve_y) == (600, 420)
    assert not cache.is_stale
    assert len(cache.get_window()) >= 2


@pytest.mark.asyncio
async def test_out_of_order_tick_is_dropped(square_pool: SimulatedPool) -> None:
    cache, sync, _orch = make_stack(square_pool)
    base = {"reserve_x": 500, "reserve_y": 500, "lp_total_supply": 500}
    newer = normalize_tick(timestamp=20.0, data_ts=19.0, pool="0xpool", payload=base)
    older = normalize_tick(
        timestamp=21.0,
        data_ts=10.0,
        pool="0xpool",
        payload={**base, "reserve_x": 400, "reserve_y": 400},
    )

    await sync._on_tick(newer)
    await sync._on_tick(older)
    assert cache.snapshot.reserve_x == 500
    assert len(cache.get_window()) == 1


def test_tick_to_state_with_account() -> None:
    tick = normalize_tick(
        timestamp=5.0,
        pool="0xpool",
        payload={
            "reserve_x": 1,
            "reserve_y": 2,
            "lp_total_supply": 1,
            "account": "0xabc",
            "token_x_balance": 3,
            "token_y_balance": 4,
            "lp_balance": 1,
        },
    )
    state = tick_to_state(tick)
    assert state.snapshot.fetched_at == 5.0
    assert state.position.account == "0xabc"
    assert state.position.lp_balance == 1


@pytest.mark.asyncio
async def test_baseline_feeds_fee_accrual(square_pool: SimulatedPool) -> None:
    square_pool.fund("lp_token", 50)
    cache, sync, _orch = make_stack(square_pool)
    await sync.refresh()
    assert sync.view.fee_accrual is None

    sync.set_baseline(DepositBaseline(40, 40))
    assert sync.baseline == DepositBaseline(40, 40)
    # 50 of 550 LP over reserves (500, 500)
    assert sync.view.claimable_x == 50 * 500 // 550
    assert sync.view.fee_accrual.x == 50 * 500 // 550 - 40


@pytest.mark.asyncio
async def test_malformed_remote_state_raises_refresh_error(square_pool: SimulatedPool) -> None:
    cache, sync, _orch = make_stack(square_pool)
    await sync.refresh()
    before = cache.snapshot

    # one reserve drained: PoolSnapshot rejects it
    square_pool.reserve_y = 0
    with pytest.raises(RefreshError):
        await sync.refresh()

    assert cache.is_stale
    assert cache.snapshot is before

    square_pool.reserve_y = 700
    await sync.refresh()
    assert cache.snapshot.reserve_y == 700
    assert not cache.is_stale


@pytest.mark.asyncio
async def test_periodic_refresh_survives_malformed_remote_state(square_pool: SimulatedPool) -> None:
    cache, sync, _orch = make_stack(square_pool)
    await sync.refresh()

    square_pool.reserve_y = 0
    sync.start()
    await asyncio.sleep(0.05)
    assert sync.running
    assert cache.is_stale
    assert cache.snapshot.reserve_y == 500

    square_pool.reserve_y = 700
    await asyncio.sleep(0.08)
    assert sync.running
    await sync.stop()

    assert cache.snapshot.reserve_y == 700
    assert not cache.is_stale
