"""Bounded calls to external capabilities (recognition, document assembly)."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TypeVar

from textlens.logging.logger import Log

T = TypeVar("T")


async def call_external(
    call: Awaitable[T],
    timeout_seconds: float,
    on_discard: Callable[[T], None] | None = None,
) -> T:
    """Await ``call`` for at most ``timeout_seconds``.

    On timeout the call is cancelled and ``TimeoutError`` is raised.
    If the awaiting coroutine itself is cancelled, the call keeps running to
    completion in the background; its result is dropped and handed to
    ``on_discard`` so the caller can release anything it produced.
    """
    task = asyncio.ensure_future(call)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout_seconds)
    except TimeoutError:
        task.cancel()
        raise
    except asyncio.CancelledError:
        task.add_done_callback(partial(_discard_result, on_discard))
        raise


def _discard_result(
    on_discard: Callable[[T], None] | None,
    task: "asyncio.Future[T]",
) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        Log.warning("Abandoned external call failed", error=exc)
        return
    if on_discard is None:
        return
    try:
        on_discard(task.result())
    except Exception as exc:
        Log.error("Failed to release result of abandoned external call", error=exc)
