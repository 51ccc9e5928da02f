"""Small helpers for running asynchronous work."""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Coroutine, TypeVar, Union

R = TypeVar("R")
Duration = Union[float, int, timedelta]

_background: set[asyncio.Task] = set()


class Elapsed(TimeoutError):
    """Raised when a deadline passes before the awaited work finishes."""

    def __init__(self, message: str = "deadline has elapsed") -> None:
        super().__init__(message)


def _seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


def spawn(coro: Coroutine[Any, Any, None]) -> asyncio.Task:
    """Run ``coro`` in the background on the running event loop."""
    task = asyncio.ensure_future(coro)
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


def block_in_place(fn: Callable[[], R]) -> R:
    """Run a blocking function and return its result."""
    return fn()


async def sleep(duration: Duration) -> None:
    """Sleep for ``duration`` (seconds or a timedelta)."""
    await asyncio.sleep(max(_seconds(duration), 0.0))


async def sleep_until(deadline: float) -> None:
    """Sleep until the monotonic clock reaches ``deadline``."""
    await asyncio.sleep(max(deadline - time.monotonic(), 0.0))


async def timeout(duration: Duration, awaitable: Awaitable[R]) -> R:
    """Await ``awaitable``, raising :class:`Elapsed` if it takes longer than ``duration``."""
    try:
        return await asyncio.wait_for(awaitable, _seconds(duration))
    except asyncio.TimeoutError as exc:
        raise Elapsed() from exc