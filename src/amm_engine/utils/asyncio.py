from __future__ import annotations

import asyncio
from logging import Logger
from typing import Any, Awaitable, TypeVar

from .logger import log_warn

T = TypeVar("T")


async def wait_bounded(
    awaitable: Awaitable[T],
    *,
    timeout_s: float | None,
    logger: Logger,
    op: str,
    **context: Any,
) -> T:
    """Await with an upper bound; re-raise asyncio.TimeoutError after logging.

    No retry happens here: callers decide what a timeout means.
    """
    if timeout_s is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError:
        log_warn(logger, "async.timeout", op=op, timeout_s=timeout_s, **context)
        raise


async def cancel_and_wait(task: asyncio.Task | None) -> None:
    """Cancel a background task and wait until it actually finished."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
