from __future__ import annotations

import asyncio

import pytest

from helpers.factories import FakeClock, make_state

from amm_engine.data.cache import PoolStateCache
from amm_engine.exceptions import InvalidAmount, StaleSnapshotError
from amm_engine.quote import QuoteEngine, QuoteInput, QuoteTracker, Side, SwapQuote


class GatedRemote:
    """Remote counterpart service whose answers are released by the test."""

    def __init__(self, skew: int = 0):
        self.skew = skew
        self.gates: dict[int, asyncio.Event] = {}

    def _gate(self, amount: int) -> asyncio.Event:
        return self.gates.setdefault(amount, asyncio.Event())

    def release(self, amount: int) -> None:
        self._gate(amount).set()

    async def get_required_counterpart(self, amount: int, side: str) -> int:
        await self._gate(amount).wait()
        return amount * 2 + self.skew


class BrokenRemote:
    async def get_required_counterpart(self, amount: int, side: str) -> int:
        raise ConnectionError("rpc down")


@pytest.mark.asyncio
async def test_last_writer_wins_by_generation(cache: PoolStateCache, engine: QuoteEngine) -> None:
    cache.replace(make_state(1000, 2000))
    remote = GatedRemote()
    tracker = QuoteTracker(cache, engine, read_service=remote, scale=0)
    applied = []
    tracker.subscribe(applied.append)

    first = asyncio.create_task(tracker.set_input(QuoteInput("deposit", "100")))
    await asyncio.sleep(0)
    second = asyncio.create_task(tracker.set_input(QuoteInput("deposit", "300")))
    await asyncio.sleep(0)

    # the newer input resolves first, the older one resolves late
    remote.release(300)
    latest = await second
    remote.release(100)
    stale = await first

    assert stale is None
    assert latest is not None and latest.generation == 2
    assert tracker.current is latest
    assert tracker.current.quote.required == 600
    assert [q.generation for q in applied] == [2]


@pytest.mark.asyncio
async def test_remote_value_wins_on_disagreement(cache: PoolStateCache, engine: QuoteEngine) -> None:
    cache.replace(make_state(1000, 2000))
    remote = GatedRemote(skew=5)
    remote.release(100)
    tracker = QuoteTracker(cache, engine, read_service=remote, scale=0)

    result = await tracker.set_input(QuoteInput("deposit", "100"))
    assert result is not None and result.ok
    assert result.remote_required == 205
    assert result.quote.required == 205


@pytest.mark.asyncio
async def test_remote_failure_keeps_local_quote(cache: PoolStateCache, engine: QuoteEngine) -> None:
    cache.replace(make_state(1000, 2000))
    tracker = QuoteTracker(cache, engine, read_service=BrokenRemote(), scale=0)

    result = await tracker.set_input(QuoteInput("deposit", "100", side=Side.X))
    assert result is not None and result.ok
    assert result.remote_required is None
    assert result.quote.required == 200


@pytest.mark.asyncio
async def test_invalid_input_is_reported_not_raised(cache: PoolStateCache, engine: QuoteEngine) -> None:
    cache.replace(make_state(1000, 2000))
    tracker = QuoteTracker(cache, engine, scale=0)

    result = await tracker.set_input(QuoteInput("swap", "0"))
    assert result is not None
    assert not result.ok
    assert isinstance(result.error, InvalidAmount)

    result = await tracker.set_input(QuoteInput("swap", "abc"))
    assert isinstance(result.error, InvalidAmount)


@pytest.mark.asyncio
async def test_strict_freshness_reports_stale_snapshot(engine: QuoteEngine) -> None:
    clock = FakeClock(1_000.0)
    cache = PoolStateCache(clock=clock)
    tracker = QuoteTracker(cache, engine, scale=0, max_age_s=10.0)

    missing = await tracker.set_input(QuoteInput("swap", "5"))
    assert isinstance(missing.error, StaleSnapshotError)

    cache.replace(make_state(1000, 2000, fetched_at=1_000.0))
    fresh = await tracker.set_input(QuoteInput("swap", "5"))
    assert fresh.ok and isinstance(fresh.quote, SwapQuote)

    clock.advance(30.0)
    old = await tracker.set_input(QuoteInput("swap", "5"))
    assert isinstance(old.error, StaleSnapshotError)


@pytest.mark.asyncio
async def test_new_snapshot_requotes_last_input(cache: PoolStateCache, engine: QuoteEngine) -> None:
    cache.replace(make_state(1000, 2000))
    tracker = QuoteTracker(cache, engine, scale=0)
    tracker.attach()

    first = await tracker.set_input(QuoteInput("deposit", "100"))
    assert first.quote.required == 200

    cache.replace(make_state(1000, 3000))
    await tracker.wait_idle()
    assert tracker.current.quote.required == 300
    assert tracker.current.generation == 2

    tracker.detach()
    cache.replace(make_state(1000, 4000))
    await tracker.wait_idle()
    assert tracker.current.quote.required == 300


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others(cache: PoolStateCache, engine: QuoteEngine) -> None:
    cache.replace(make_state(1000, 2000))
    tracker = QuoteTracker(cache, engine, scale=0)
    tracker.attach()
    seen: list[int] = []

    def broken(_quote) -> None:
        raise RuntimeError("listener down")

    tracker.subscribe(broken)
    tracker.subscribe(lambda q: seen.append(q.generation))

    result = await tracker.set_input(QuoteInput("deposit", "100"))
    assert result is tracker.current
    assert seen == [1]

    # re-quote scheduled from a cache update runs the same listeners
    cache.replace(make_state(1000, 3000))
    await tracker.wait_idle()
    assert seen == [1, 2]
    assert tracker.current.quote.required == 300
