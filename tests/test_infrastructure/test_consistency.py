"""
Tests for awarekv.infrastructure.consistency
==============================================

What's Being Tested:
    - Returns True at once when every key is readable
    - Keeps polling until late keys appear
    - Returns False (never raises) once the wait budget is spent
    - Disabled polling and empty key lists short-circuit
"""

import asyncio

from structlog.testing import capture_logs

from awarekv.core.config import ConsistencyConfig
from awarekv.infrastructure.consistency import wait_for_consistency

FAST = ConsistencyConfig(max_wait_ms=50, check_interval_ms=10)


# =============================================================================
# Tests: wait_for_consistency
# =============================================================================
class TestWaitForConsistency:
    """Tests for post-write key polling."""

    async def test_all_keys_present(self, recording_transport) -> None:
        await recording_transport.put("ml:a:base", {})
        await recording_transport.put("ml:a:lang:en", {})
        recording_transport.calls.clear()

        ok = await wait_for_consistency(
            recording_transport, "a", ["ml:a:base", "ml:a:lang:en"], FAST
        )

        assert ok is True
        assert len(recording_transport.keys_called("get")) == 2

    async def test_waits_for_late_key(self, recording_transport) -> None:
        await recording_transport.put("ml:a:base", {})

        async def late_write() -> None:
            await asyncio.sleep(0.015)
            await recording_transport.put("ml:a:lang:en", {})

        writer = asyncio.ensure_future(late_write())
        ok = await wait_for_consistency(
            recording_transport,
            "a",
            ["ml:a:base", "ml:a:lang:en"],
            ConsistencyConfig(max_wait_ms=1000, check_interval_ms=10),
        )
        await writer

        assert ok is True
        assert recording_transport.keys_called("get").count("ml:a:base") >= 2

    async def test_timeout_returns_false(self, recording_transport) -> None:
        with capture_logs() as logs:
            ok = await wait_for_consistency(recording_transport, "a", ["ml:a:base"], FAST)

        assert ok is False
        # ceil(50 / 10) polls
        assert len(recording_transport.keys_called("get")) == 5
        timeout = next(e for e in logs if e["event"] == "kv_consistency_timeout")
        assert timeout["missing_keys"] == ["ml:a:base"]
        assert timeout["log_level"] == "warning"

    async def test_zero_budget_polls_once(self, recording_transport) -> None:
        config = ConsistencyConfig(max_wait_ms=0, check_interval_ms=10)
        assert await wait_for_consistency(recording_transport, "a", ["ml:a:base"], config) is False
        assert len(recording_transport.keys_called("get")) == 1

    async def test_disabled(self, recording_transport) -> None:
        config = ConsistencyConfig(enabled=False)
        assert await wait_for_consistency(recording_transport, "a", ["ml:a:base"], config) is True
        assert recording_transport.calls == []

    async def test_no_keys(self, recording_transport) -> None:
        assert await wait_for_consistency(recording_transport, "a", [], FAST) is True
        assert recording_transport.calls == []
