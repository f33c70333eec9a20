"""
Tests for awarekv.resilience.timeout
======================================

What's Being Tested:
    - Fast operations return their result
    - Failures before the timer propagate unchanged
    - Slow operations raise OperationTimeoutError("Timeout after Nms")
    - timeout_ms <= 0 always times out
    - Expiry does not cancel the underlying operation

All tests are async (pytest-asyncio with asyncio_mode=auto).
"""

import asyncio
import time

import pytest

from awarekv.core.exceptions import OperationTimeoutError
from awarekv.resilience.timeout import with_timeout


async def _value_after(seconds: float, value: str = "done") -> str:
    await asyncio.sleep(seconds)
    return value


async def _immediate(value: str = "done") -> str:
    return value


# =============================================================================
# Test: Completion Before The Timer
# =============================================================================
class TestWithTimeoutCompletes:
    """Tests for operations that beat the timer."""

    async def test_returns_result(self) -> None:
        assert await with_timeout(_value_after(0.001), 1000) == "done"

    async def test_accepts_a_task(self) -> None:
        task = asyncio.ensure_future(_immediate("task"))
        assert await with_timeout(task, 1000) == "task"

    async def test_failure_propagates_unchanged(self) -> None:
        error = ValueError("boom")

        async def failing() -> None:
            raise error

        with pytest.raises(ValueError) as exc_info:
            await with_timeout(failing(), 1000)
        assert exc_info.value is error


# =============================================================================
# Test: Expiry
# =============================================================================
class TestWithTimeoutExpires:
    """Tests for operations that lose the race."""

    async def test_raises_operation_timeout(self) -> None:
        with pytest.raises(OperationTimeoutError) as exc_info:
            await with_timeout(_value_after(1.0), 20)
        assert str(exc_info.value) == "Timeout after 20ms"
        assert exc_info.value.timeout_ms == 20

    async def test_returns_promptly(self) -> None:
        started = time.perf_counter()
        with pytest.raises(OperationTimeoutError):
            await with_timeout(asyncio.Event().wait(), 20)
        assert time.perf_counter() - started < 0.5

    async def test_catchable_as_builtin_timeout(self) -> None:
        with pytest.raises(TimeoutError):
            await with_timeout(_value_after(1.0), 5)

    @pytest.mark.parametrize("timeout_ms", [0, -1])
    async def test_non_positive_budget_always_times_out(self, timeout_ms: int) -> None:
        with pytest.raises(OperationTimeoutError):
            await with_timeout(_immediate(), timeout_ms)

    async def test_operation_keeps_running_after_expiry(self) -> None:
        finished = asyncio.Event()

        async def slow() -> None:
            await asyncio.sleep(0.03)
            finished.set()

        with pytest.raises(OperationTimeoutError):
            await with_timeout(slow(), 5)

        await asyncio.wait_for(finished.wait(), timeout=1.0)
        assert finished.is_set()

    async def test_late_failure_is_swallowed(self) -> None:
        """A failure after expiry must not surface as an unhandled task error."""
        loop = asyncio.get_running_loop()
        unhandled: list[dict] = []
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))
        try:
            async def slow_failure() -> None:
                await asyncio.sleep(0.01)
                raise RuntimeError("late")

            with pytest.raises(OperationTimeoutError):
                await with_timeout(slow_failure(), 1)
            await asyncio.sleep(0.05)
        finally:
            loop.set_exception_handler(None)

        assert unhandled == []
