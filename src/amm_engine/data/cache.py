from __future__ import annotations

import time
from collections import deque
from dataclasses import replace as dc_replace
from typing import Callable, List

import pandas as pd

from amm_engine.data.snapshot import PoolSnapshot, AccountPosition, PoolState
from amm_engine.exceptions import StaleSnapshotError
from amm_engine.utils.logger import get_logger, log_debug, log_warn, log_exception

StateListener = Callable[[PoolState], None]


class PoolStateCache:
    """
    Last-fetched pool/account state, replaced as a whole.

    - Empty at start; keeps the last good state indefinitely (stale-but-present).
    - `replace()` swaps the PoolState reference in one assignment; readers never
      observe a half-updated snapshot.
    - Every write notifies subscribers with the new PoolState.
    - A bounded history of snapshots feeds `window_df()` for charts.
    """

    def __init__(self, window: int = 200, clock: Callable[[], float] = time.time):
        if int(window) <= 0:
            raise ValueError("PoolStateCache window must be > 0")
        self.window = int(window)
        self.buffer: deque[PoolSnapshot] = deque(maxlen=self.window)
        self._state: PoolState | None = None
        self._stale_reason: str | None = None
        self._listeners: List[StateListener] = []
        self._clock = clock
        self._logger = get_logger(__name__)
        log_debug(self._logger, "PoolStateCache initialized", window=self.window)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def state(self) -> PoolState | None:
        return self._state

    @property
    def snapshot(self) -> PoolSnapshot | None:
        state = self._state
        return None if state is None else state.snapshot

    @property
    def position(self) -> AccountPosition | None:
        state = self._state
        return None if state is None else state.position

    @property
    def is_stale(self) -> bool:
        state = self._state
        return state is not None and state.stale

    @property
    def stale_reason(self) -> str | None:
        return self._stale_reason

    def capture(self, max_age_s: float | None = None) -> PoolState | None:
        """Return the current PoolState reference for one computation.

        With `max_age_s`, strict freshness applies: a missing, flagged or
        too-old snapshot raises StaleSnapshotError.
        """
        state = self._state
        if max_age_s is None:
            return state
        if state is None:
            raise StaleSnapshotError(None, max_age_s)
        age = state.snapshot.age(self._clock())
        if state.stale:
            raise StaleSnapshotError(age, max_age_s, flagged=True)
        if age > max_age_s:
            raise StaleSnapshotError(age, max_age_s)
        return state

    # ------------------------------------------------------------------
    # Write side (synchronizer only)
    # ------------------------------------------------------------------
    def replace(self, state: PoolState) -> None:
        if not isinstance(state, PoolState):
            raise TypeError("PoolStateCache.replace expects a PoolState")
        if state.stale:
            state = dc_replace(state, stale=False)
        self._state = state
        self._stale_reason = None
        self.buffer.append(state.snapshot)
        log_debug(
            self._logger,
            "PoolStateCache replaced",
            reserve_x=state.snapshot.reserve_x,
            reserve_y=state.snapshot.reserve_y,
            size=len(self.buffer),
        )
        self._notify(state)

    def mark_stale(self, reason: str) -> None:
        """Flag the cached state stale without clearing it."""
        self._stale_reason = reason
        state = self._state
        if state is None:
            log_warn(self._logger, "PoolStateCache stale before first snapshot", reason=reason)
            return
        if state.stale:
            return
        state = dc_replace(state, stale=True)
        self._state = state
        log_warn(self._logger, "PoolStateCache marked stale", reason=reason)
        self._notify(state)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------
    def subscribe(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, state: PoolState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                # a broken subscriber must not block the cache write
                log_exception(self._logger, "PoolStateCache listener failed", listener=repr(listener))

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def get_window(self) -> list[PoolSnapshot]:
        return list(self.buffer)

    def window_df(self) -> pd.DataFrame:
        """Snapshot history as a DataFrame; amounts stay exact Python ints."""
        snaps = list(self.buffer)
        # object columns: 18-decimal reserves overflow int64
        return pd.DataFrame({
            "fetched_at": pd.Series([s.fetched_at for s in snaps], dtype="float64"),
            "reserve_x": pd.Series([s.reserve_x for s in snaps], dtype=object),
            "reserve_y": pd.Series([s.reserve_y for s in snaps], dtype=object),
            "lp_total_supply": pd.Series([s.lp_total_supply for s in snaps], dtype=object),
        })

    def last_timestamp(self) -> float | None:
        snap = self.snapshot
        return None if snap is None else snap.fetched_at

    def clear_history(self) -> None:
        log_debug(self._logger, "PoolStateCache history cleared")
        self.buffer.clear()
