from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Literal, Union

from amm_engine.core import DEFAULT_SCALE, to_scaled
from amm_engine.data.cache import PoolStateCache
from amm_engine.data.snapshot import PoolState
from amm_engine.exceptions import AMMError, StaleSnapshotError
from amm_engine.utils.logger import get_logger, log_debug, log_warn, log_exception

from .engine import QuoteEngine
from .types import Side, SwapDirection, DepositQuote, SwapQuote, RemovalQuote

QuoteKind = Literal["deposit", "swap", "removal"]
AnyQuote = Union[DepositQuote, SwapQuote, RemovalQuote]


@dataclass(frozen=True)
class QuoteInput:
    """Raw user input for one quote field."""

    kind: QuoteKind
    text: str
    side: Side = Side.X
    direction: SwapDirection = SwapDirection.X_TO_Y


@dataclass(frozen=True)
class TrackedQuote:
    """Quote applied to visible state, tagged with the input generation it answers."""

    generation: int
    input: QuoteInput
    amount: int | None
    quote: AnyQuote | None
    error: AMMError | None = None
    remote_required: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


QuoteListener = Callable[[TrackedQuote], None]


class QuoteTracker:
    """
    Owns the visible quote for the current user input.

    Semantics:
      - every input change bumps `generation`;
      - the quote is computed against the PoolState captured when the
        computation starts, never the live cache;
      - a result is applied only if its generation is still the latest
        (last-writer-wins by generation, not by arrival order);
      - a new cache snapshot re-quotes the last input.
    """

    def __init__(
        self,
        cache: PoolStateCache,
        engine: QuoteEngine,
        *,
        read_service: Any | None = None,
        scale: int = DEFAULT_SCALE,
        max_age_s: float | None = None,
    ):
        self.cache = cache
        self.engine = engine
        self.read_service = read_service
        self.scale = scale
        self.max_age_s = max_age_s

        self._generation = 0
        self._last_input: QuoteInput | None = None
        self._current: TrackedQuote | None = None
        self._listeners: List[QuoteListener] = []
        self._pending: set[asyncio.Task] = set()
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def attach(self) -> None:
        self.cache.subscribe(self._on_state)

    def detach(self) -> None:
        self.cache.unsubscribe(self._on_state)

    def subscribe(self, listener: QuoteListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current(self) -> TrackedQuote | None:
        return self._current

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    async def set_input(self, inp: QuoteInput) -> TrackedQuote | None:
        """Quote `inp`; returns the applied result, or None if it was superseded."""
        self._generation += 1
        generation = self._generation
        self._last_input = inp

        result = await self._compute(generation, inp)

        if generation != self._generation:
            log_debug(
                self._logger,
                "QuoteTracker discarded superseded quote",
                generation=generation,
                latest=self._generation,
            )
            return None

        self._current = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                log_exception(self._logger, "QuoteTracker listener failed", listener=repr(listener))
        return result

    async def wait_idle(self) -> None:
        """Wait for re-quotes scheduled by cache updates."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_state(self, state: PoolState) -> None:
        inp = self._last_input
        if inp is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log_debug(self._logger, "QuoteTracker re-quote skipped: no running loop")
            return
        task = loop.create_task(self.set_input(inp))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _compute(self, generation: int, inp: QuoteInput) -> TrackedQuote:
        try:
            amount = to_scaled(inp.text, scale=self.scale, require_positive=(inp.kind != "deposit"))
        except AMMError as exc:
            return TrackedQuote(generation, inp, None, None, error=exc)

        try:
            state = self.cache.capture(self.max_age_s)
        except StaleSnapshotError as exc:
            return TrackedQuote(generation, inp, amount, None, error=exc)
        if state is None:
            return TrackedQuote(generation, inp, amount, None, error=StaleSnapshotError(None, self.max_age_s or 0.0))

        snapshot = state.snapshot
        try:
            if inp.kind == "swap":
                return TrackedQuote(generation, inp, amount, self.engine.swap_quote(snapshot, inp.direction, amount))
            if inp.kind == "removal":
                return TrackedQuote(generation, inp, amount, self.engine.removal_quote(snapshot, amount))
            quote = self.engine.required_counterpart(snapshot, amount, inp.side)
        except AMMError as exc:
            return TrackedQuote(generation, inp, amount, None, error=exc)

        remote = None
        if not quote.unconstrained and amount > 0:
            remote = await self._remote_required(amount, inp.side)
            if remote is not None and quote.required is not None and abs(remote - quote.required) > self.engine.tolerance:
                log_warn(
                    self._logger,
                    "QuoteTracker local counterpart disagrees with remote",
                    local=quote.required,
                    remote=remote,
                    side=inp.side,
                )
                quote = replace(quote, required=remote)
        return TrackedQuote(generation, inp, amount, quote, remote_required=remote)

    async def _remote_required(self, amount: int, side: Side) -> int | None:
        fetch = getattr(self.read_service, "get_required_counterpart", None)
        if fetch is None:
            return None
        try:
            return int(await fetch(amount, side.value))
        except Exception as exc:
            # cross-check only: the local quote stands
            log_warn(self._logger, "QuoteTracker remote counterpart unavailable", error=exc)
            return None
