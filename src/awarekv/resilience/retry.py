"""
awarekv.resilience.retry - Retry With Exponential Backoff
===========================================================

with_retry() re-invokes a failing async operation with growing delays:

    attempt 1 ──fail──> log recovery_attempt, sleep ~base_delay
    attempt 2 ──fail──> log recovery_attempt, sleep ~base_delay * multiplier
    attempt 3 ──fail──> re-raise the attempt-3 exception object, unchanged

It is a pure *policy* primitive: it retries every ``Exception`` and knows
nothing about which failures are transient. Callers that must not retry a
permanent failure either raise only for transient conditions inside the
operation (see CloudflareKVTransport._send) or do not wrap it at all.
Operations that are not idempotent must not be wrapped: a write that timed
out on the client may still have been applied on the server.

Delays come from RetryPolicy.calculate_delay_ms() (awarekv.core.config).
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from awarekv.core.config import RetryPolicy

T = TypeVar("T")

_DEFAULT_POLICY = RetryPolicy()


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    *,
    policy: Optional[RetryPolicy] = None,
    max_attempts: Optional[int] = None,
    logger: Optional[Any] = None,
) -> T:
    """Run ``operation`` until it succeeds or the attempt budget is spent.

    Args:
        operation: Zero-argument callable returning a fresh awaitable on
            every call (e.g. ``lambda: client.get(url)``).
        operation_name: Human-readable name used in recovery logs.
        policy: Backoff configuration. Defaults to RetryPolicy().
        max_attempts: Overrides ``policy.max_attempts`` when given.
        logger: structlog logger for recovery records. Defaults to
            ``structlog.get_logger()``.

    Returns:
        The result of the first successful attempt.

    Raises:
        ValueError: If max_attempts is below 1.
        Exception: The exact exception raised by the final attempt.

    Example:
        >>> body = await with_retry(lambda: fetch_body(key), "KV GET ml:abc:base")
    """
    policy = policy or _DEFAULT_POLICY
    attempts = max_attempts if max_attempts is not None else policy.max_attempts
    if attempts < 1:
        raise ValueError(f"max_attempts must be at least 1 (got {attempts})")

    log = logger if logger is not None else structlog.get_logger()

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            attempt += 1
            if attempt >= attempts:
                raise

            delay_ms = policy.calculate_delay_ms(attempt - 1)
            log.warning(
                "recovery_attempt",
                attempt=attempt,
                max_attempts=attempts,
                operation=operation_name,
                error_message=str(error),
                error_type=type(error).__name__,
                jitter_enabled=policy.jitter,
                delay_ms=round(delay_ms),
            )
            await asyncio.sleep(delay_ms / 1000)
