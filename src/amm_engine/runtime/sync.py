from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List, Optional

from pool_ingestion.contracts.tick import PoolTick
from pool_ingestion.pool_state import PoolStateNormalizer, PoolStateSource, PoolStateWorker

from amm_engine.contracts.operation import AddLiquidityRequest
from amm_engine.data.cache import PoolStateCache
from amm_engine.data.snapshot import AccountPosition, PoolSnapshot, PoolState
from amm_engine.exceptions import RefreshError
from amm_engine.utils.asyncio import cancel_and_wait
from amm_engine.utils.logger import (
    get_logger,
    log_debug,
    log_info,
    log_warn,
    log_exception,
    log_pool_refresh,
)
from amm_engine.utils.timer import timed_block

from .views import DepositBaseline, PoolView, recompute_view

ViewListener = Callable[[PoolView], None]


def tick_to_state(tick: PoolTick) -> PoolState:
    """Ingestion tick -> engine PoolState (snapshot plus optional account position)."""
    payload = tick.payload
    snapshot = PoolSnapshot.from_mapping(payload, tick.timestamp)
    position = None
    if payload.get("account") is not None:
        position = AccountPosition(
            account=str(payload["account"]),
            token_x_balance=payload["token_x_balance"],
            token_y_balance=payload["token_y_balance"],
            lp_balance=payload["lp_balance"],
        )
    return PoolState(snapshot=snapshot, position=position)


class StateSynchronizer:
    """
    Sole writer of the PoolStateCache.

    Responsibilities:
      - periodic refresh (PoolStateWorker polling the source every `interval_s`);
      - out-of-band refresh after every CONFIRMED operation (`attach`);
      - recompute the PoolView from the latest cached state on every cache
        change; the view is never patched.

    A fetch that started before the last applied one is dropped, so a slow
    periodic read cannot overwrite a newer post-confirmation refresh.
    """

    def __init__(
        self,
        cache: PoolStateCache,
        source: PoolStateSource,
        *,
        pool: str = "pool",
        interval_s: float = 5.0,
        account: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.cache = cache
        self.source = source
        self.normalizer = PoolStateNormalizer(pool=pool)
        self.interval_s = float(interval_s)
        self._clock = clock

        if account is not None:
            source.connect(account)

        self._lock = asyncio.Lock()
        self._last_data_ts: float | None = None
        self._baselines: Dict[Optional[str], DepositBaseline] = {}
        self._view: PoolView | None = None
        self._view_listeners: List[ViewListener] = []
        self._worker: PoolStateWorker | None = None
        self._task: asyncio.Task | None = None
        self._logger = get_logger(__name__)

        cache.subscribe(self._on_state)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def view(self) -> PoolView | None:
        return self._view

    @property
    def account(self) -> str | None:
        return self.source.account

    @property
    def baseline(self) -> DepositBaseline | None:
        return self._baselines.get(self.account)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: ViewListener) -> None:
        if listener not in self._view_listeners:
            self._view_listeners.append(listener)

    def unsubscribe(self, listener: ViewListener) -> None:
        if listener in self._view_listeners:
            self._view_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Account / baseline
    # ------------------------------------------------------------------
    def connect(self, account: str | None) -> None:
        """Switch the connected account; takes effect on the next refresh."""
        self.source.connect(account)
        log_info(self._logger, "StateSynchronizer account connected", account=account)

    def set_baseline(self, baseline: DepositBaseline, account: str | None = None) -> None:
        key = self.account if account is None else account
        self._baselines[key] = baseline
        state = self.cache.state
        if state is not None:
            self._on_state(state)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    async def refresh(self) -> PoolState:
        """Fetch now and replace the cache.

        On failure the cache keeps its last values, is flagged stale and
        RefreshError is raised to the caller.
        """
        async with self._lock:
            try:
                with timed_block("sync.refresh", self._logger, account=self.account):
                    tick = self.normalizer.normalize(raw=await self.source.fetch())
                    return self._apply(tick)
            except Exception as exc:
                self._record_failure(exc)
                raise RefreshError(f"pool refresh failed: {exc}") from exc

    async def _on_tick(self, tick: PoolTick) -> None:
        async with self._lock:
            try:
                self._apply(tick)
            except Exception as exc:
                # malformed remote state; keep polling
                self._record_failure(exc)

    def _apply(self, tick: PoolTick) -> PoolState:
        if self._last_data_ts is not None and tick.data_ts < self._last_data_ts:
            log_debug(
                self._logger,
                "StateSynchronizer dropped out-of-order tick",
                data_ts=tick.data_ts,
                last_data_ts=self._last_data_ts,
            )
            state = self.cache.state
            assert state is not None
            return state

        state = tick_to_state(tick)
        self._last_data_ts = tick.data_ts
        self.cache.replace(state)
        log_pool_refresh(
            self._logger,
            "pool.refreshed",
            pool=tick.pool,
            reserve_x=state.snapshot.reserve_x,
            reserve_y=state.snapshot.reserve_y,
            lp_total_supply=state.snapshot.lp_total_supply,
            fetched_at=tick.timestamp,
            latency_s=round(tick.timestamp - tick.data_ts, 6),
        )
        return state

    def _record_failure(self, exc: Exception) -> None:
        log_warn(self._logger, "StateSynchronizer refresh failed", error=exc, account=self.account)
        self.cache.mark_stale(f"refresh failed: {type(exc).__name__}: {exc}")

    def _on_state(self, state: PoolState) -> None:
        view = recompute_view(state, self._baselines.get(self.account))
        self._view = view
        for listener in list(self._view_listeners):
            try:
                listener(view)
            except Exception:
                log_exception(self._logger, "StateSynchronizer view listener failed", listener=repr(listener))

    # ------------------------------------------------------------------
    # Periodic task
    # ------------------------------------------------------------------
    def start(self) -> asyncio.Task:
        """Start periodic polling on the running loop."""
        if self.running:
            raise RuntimeError("StateSynchronizer already running")
        self._worker = PoolStateWorker(
            normalizer=self.normalizer,
            source=self.source,
            poll_interval=self.interval_s,
            on_error=self._record_failure,
        )
        self._task = asyncio.get_running_loop().create_task(self._worker.run(self._on_tick))
        log_info(self._logger, "StateSynchronizer started", interval_s=self.interval_s)
        return self._task

    async def stop(self) -> None:
        if self._worker is not None:
            self._worker.stop()
        await cancel_and_wait(self._task)
        self._task = None
        self._worker = None
        log_info(self._logger, "StateSynchronizer stopped")

    # ------------------------------------------------------------------
    # Orchestrator hook
    # ------------------------------------------------------------------
    def attach(self, orchestrator) -> None:
        """Refresh out-of-band whenever an operation of `orchestrator` confirms."""
        orchestrator.on_confirmed(self._after_confirmed)

    async def _after_confirmed(self, op) -> None:
        request = op.request
        if isinstance(request, AddLiquidityRequest) and self.baseline is None:
            before = op.state_before
            held_lp = before is not None and before.position is not None and before.position.lp_balance > 0
            if not held_lp:
                # first deposit of this account
                self._baselines[self.account] = DepositBaseline(
                    request.amount_x, request.amount_y, recorded_at=self._clock()
                )
                log_info(
                    self._logger,
                    "StateSynchronizer deposit baseline recorded",
                    account=self.account,
                    amount_x=request.amount_x,
                    amount_y=request.amount_y,
                )
        try:
            await self.refresh()
        except RefreshError:
            # cache already flagged stale; the next periodic refresh retries
            log_warn(self._logger, "StateSynchronizer post-confirmation refresh failed", op_id=op.op_id)
