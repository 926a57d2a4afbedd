from __future__ import annotations

import asyncio
import inspect
from typing import Callable

from pool_ingestion.contracts.tick import PoolTick
from pool_ingestion.contracts.worker import IngestWorker, EmitFn
from pool_ingestion.pool_state.normalize import PoolStateNormalizer
from pool_ingestion.pool_state.source import PoolStateSource


class PoolStateWorker(IngestWorker):
    """
    Periodic pool state poller.
    The only responsibility is:
        fetch -> normalize -> emit tick, every `poll_interval` seconds
    Caching, staleness and derived values are NOT handled here.

    A failed fetch or emit is handed to `on_error` (when given) and polling
    goes on; without `on_error` the exception ends `run()`.
    """

    def __init__(
        self,
        *,
        normalizer: PoolStateNormalizer,
        source: PoolStateSource,
        poll_interval: float,
        on_error: Callable[[Exception], None] | None = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self._normalizer = normalizer
        self._source = source
        self._poll_interval = float(poll_interval)
        self._on_error = on_error
        self._stopped = asyncio.Event()

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    async def run(self, emit: EmitFn) -> None:
        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                tick = self._normalize(await self._source.fetch())
                result = emit(tick)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                if self._on_error is None:
                    raise
                self._on_error(exc)
            await self._sleep()

    def stop(self) -> None:
        self._stopped.set()

    async def _sleep(self) -> None:
        # wakes early on stop()
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass

    def _normalize(self, raw: dict) -> PoolTick:
        return self._normalizer.normalize(raw=raw)
