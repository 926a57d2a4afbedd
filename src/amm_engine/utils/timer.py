import time
from contextlib import contextmanager
from logging import Logger

from .logger import get_logger, log_debug


@contextmanager
def timed_block(name: str, logger: Logger | None = None, **context):
    """Profile wall-clock time of a block (sync or inside a coroutine)."""
    logger = logger or get_logger("amm_engine.timer")

    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = (time.perf_counter() - start) * 1000  # ms
        log_debug(logger, f"[TIMER] {name}", elapsed_ms=round(elapsed, 3), **context)


"""
Example usage:
from amm_engine.utils.timer import timed_block

with timed_block("sync.refresh", pool=addresses.pool):
    state = await synchronizer.refresh()
"""
