"""
awarekv.resilience.timeout - Bounded Waiting
==============================================

with_timeout() races an awaitable against a timer:

    operation finishes first  → its result (or its exception, unchanged)
    timer fires first         → OperationTimeoutError("Timeout after Nms")
    timeout_ms <= 0           → OperationTimeoutError immediately

Cancellation Semantics:
    Expiry only stops the *waiting*. The operation keeps running as a
    background task; an HTTP request already on the wire is not aborted and
    callers must not assume it released its resources. A late result or
    exception from such a task is consumed and dropped.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from awarekv.core.exceptions import OperationTimeoutError

T = TypeVar("T")

# Strong references to operations that outlived their timeout. The event
# loop only keeps weak references to tasks.
_orphaned: set[asyncio.Future] = set()


async def with_timeout(operation: Awaitable[T], timeout_ms: float) -> T:
    """Await ``operation`` for at most ``timeout_ms`` milliseconds.

    Args:
        operation: A coroutine, task or future.
        timeout_ms: Time budget in milliseconds. Zero or negative values
            time out immediately.

    Returns:
        The operation's result.

    Raises:
        OperationTimeoutError: If the timer fires before the operation
            completes.
        Exception: Whatever the operation raised, if it failed first.

    Example:
        >>> value = await with_timeout(transport.get("ml:abc:base"), 2000)
    """
    task = asyncio.ensure_future(operation)

    if timeout_ms <= 0:
        _orphan(task)
        raise OperationTimeoutError(timeout_ms=timeout_ms)

    await asyncio.wait({task}, timeout=timeout_ms / 1000)

    if task.done():
        return task.result()

    _orphan(task)
    raise OperationTimeoutError(timeout_ms=timeout_ms)


def _orphan(task: asyncio.Future) -> None:
    """Let an abandoned operation finish on its own, silently."""
    if task.done():
        _consume(task)
        return
    _orphaned.add(task)
    task.add_done_callback(_release)


def _release(task: asyncio.Future) -> None:
    _orphaned.discard(task)
    _consume(task)


def _consume(task: asyncio.Future) -> None:
    # Retrieving the exception marks it as handled for the event loop.
    if not task.cancelled():
        task.exception()
