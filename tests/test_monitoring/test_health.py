"""
Tests for awarekv.monitoring.health
=====================================

What's Being Tested:
    - format_uptime() rendering
    - determine_overall_status() dominance rule
    - KV check classification: True → healthy, False → degraded,
      raise → unhealthy, too slow → unhealthy
    - Health document: details, uptime, optional cache statistics
    - perform_health_check() never raises

All tests are async where the monitor is involved (asyncio_mode=auto).
"""

import asyncio
import time

import pytest
from structlog.testing import capture_logs

from awarekv.core.config import RetryPolicy
from awarekv.core.enums import HealthStatus
from awarekv.core.models import CacheStats, HealthChecks, HealthResult
from awarekv.infrastructure.content_cache import InMemoryContentCache
from awarekv.infrastructure.kv_transport import InMemoryKVTransport
from awarekv.monitoring.health import (
    KV_SOFT_FAILURE_MESSAGE,
    HealthMonitor,
    determine_overall_status,
    format_uptime,
)

NO_DELAY = RetryPolicy(max_attempts=3, base_delay_ms=0, jitter=False)


# =============================================================================
# Test Doubles
# =============================================================================
class _ScriptedTransport(InMemoryKVTransport):
    """Transport whose health_check() returns or raises what the test says."""

    def __init__(self, outcome) -> None:
        super().__init__()
        self.outcome = outcome
        self.calls = 0
        self.release = asyncio.Event()

    async def health_check(self) -> bool:
        self.calls += 1
        if self.outcome == "hang":
            await self.release.wait()
            return True
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class _BrokenStats:
    def get_cache_stats(self):
        raise RuntimeError("stats offline")


class _AsyncStats:
    async def get_cache_stats(self):
        return {"count": 4, "estimatedSizeMB": 0.2}


def _monitor(outcome=True, **kwargs) -> HealthMonitor:
    return HealthMonitor(_ScriptedTransport(outcome), retry_policy=NO_DELAY, **kwargs)


# =============================================================================
# Test: Pure Helpers
# =============================================================================
class TestFormatUptime:
    """Tests for format_uptime()."""

    @pytest.mark.parametrize(
        "uptime_ms, expected",
        [
            (0, "0s"),
            (59_999, "59s"),
            (60_000, "1m 0s"),
            (3_725_000, "1h 2m"),
            (90_061_000, "1d 1h 1m"),
            (-5, "0s"),
        ],
    )
    def test_rendering(self, uptime_ms: int, expected: str) -> None:
        assert format_uptime(uptime_ms) == expected


class TestDetermineOverallStatus:
    """Tests for the dominance rule."""

    def test_all_healthy(self) -> None:
        assert determine_overall_status(["healthy", HealthStatus.HEALTHY]) is HealthStatus.HEALTHY

    def test_degraded_beats_healthy(self) -> None:
        assert determine_overall_status(["healthy", "degraded"]) is HealthStatus.DEGRADED

    def test_unhealthy_dominates(self) -> None:
        statuses = ["degraded", HealthResult(status="unhealthy"), "healthy"]
        assert determine_overall_status(statuses) is HealthStatus.UNHEALTHY

    def test_presence_flags_are_ignored(self) -> None:
        checks = HealthChecks(
            kv=HealthResult(status=HealthStatus.HEALTHY),
            agents=False,
            workflows=False,
        )
        assert determine_overall_status(checks) is HealthStatus.HEALTHY

    def test_mapping_input(self) -> None:
        checks = {"kv": HealthResult(status="degraded"), "agents": True, "extra": None}
        assert determine_overall_status(checks) is HealthStatus.DEGRADED

    def test_serialized_results(self) -> None:
        checks = {"kv": {"status": "unhealthy", "error": "boom"}, "agents": True}
        assert determine_overall_status(checks) is HealthStatus.UNHEALTHY

    def test_dumped_health_checks(self) -> None:
        checks = HealthChecks(kv=HealthResult(status="degraded"), agents=True, workflows=False)
        assert determine_overall_status(checks.model_dump()) is HealthStatus.DEGRADED

    def test_empty(self) -> None:
        assert determine_overall_status([]) is HealthStatus.HEALTHY


# =============================================================================
# Test: KV Check Classification
# =============================================================================
class TestCheckKVHealth:
    """Tests for HealthMonitor.check_kv_health()."""

    async def test_true_is_healthy(self) -> None:
        result = await _monitor(True).check_kv_health()
        assert result.status is HealthStatus.HEALTHY
        assert result.error is None
        assert result.latency_ms >= 0

    async def test_false_is_degraded(self) -> None:
        result = await _monitor(False).check_kv_health()
        assert result.status is HealthStatus.DEGRADED
        assert result.error == KV_SOFT_FAILURE_MESSAGE

    async def test_raise_is_unhealthy_after_retries(self) -> None:
        monitor = _monitor(ConnectionError("KV unreachable"))
        with capture_logs() as logs:
            result = await monitor.check_kv_health()

        assert result.status is HealthStatus.UNHEALTHY
        assert result.error == "KV unreachable"
        assert monitor._transport.calls == 3
        assert "kv_health_check_failed" in [e["event"] for e in logs]

    async def test_real_in_memory_round_trip(self) -> None:
        monitor = HealthMonitor(InMemoryKVTransport(), retry_policy=NO_DELAY)
        assert (await monitor.check_kv_health()).status is HealthStatus.HEALTHY


# =============================================================================
# Test: Full Health Check
# =============================================================================
class TestPerformHealthCheck:
    """Tests for HealthMonitor.perform_health_check()."""

    async def test_healthy_document(self) -> None:
        monitor = _monitor(True, started_at=time.monotonic() - 3725)

        response = await monitor.perform_health_check(
            {"router": object(), "writer": object()}, {"create-microlearning": object()}
        )
        document = response.to_document()

        assert document["status"] == "healthy"
        assert document["uptime"] == "1h 2m"
        assert document["uptimeMs"] >= 3_725_000
        assert document["checks"]["kv"]["status"] == "healthy"
        assert "latencyMs" in document["checks"]["kv"]
        assert document["checks"]["agents"] is True
        assert document["checks"]["workflows"] is True
        assert document["details"] == {
            "agents": ["router", "writer"],
            "workflows": ["create-microlearning"],
            "agentCount": 2,
            "workflowCount": 1,
        }
        assert "cache" not in document
        assert "timestamp" in document

    async def test_empty_registries_do_not_degrade(self) -> None:
        response = await _monitor(True).perform_health_check({}, {})
        assert response.status is HealthStatus.HEALTHY
        assert response.checks.agents is False
        assert response.details.agent_count == 0

    async def test_degraded_kv_degrades_overall(self) -> None:
        response = await _monitor(False).perform_health_check({}, {})
        assert response.status is HealthStatus.DEGRADED

    async def test_raising_kv_is_unhealthy(self) -> None:
        response = await _monitor(RuntimeError("boom")).perform_health_check({}, {})
        assert response.status is HealthStatus.UNHEALTHY
        assert response.checks.kv.error == "boom"

    async def test_timeout_is_unhealthy_and_prompt(self) -> None:
        monitor = _monitor("hang")
        started = time.perf_counter()

        response = await monitor.perform_health_check({}, {}, timeout_ms=20)

        elapsed = time.perf_counter() - started
        monitor._transport.release.set()
        assert response.status is HealthStatus.UNHEALTHY
        assert "timeout" in response.checks.kv.error.lower()
        assert response.checks.kv.error == "Health check timeout: Timeout after 20ms"
        assert elapsed < 1.0

    async def test_default_timeout_used(self) -> None:
        monitor = _monitor("hang", timeout_ms=10)
        response = await monitor.perform_health_check()
        monitor._transport.release.set()
        assert response.checks.kv.error == "Health check timeout: Timeout after 10ms"

    async def test_each_check_is_fresh(self) -> None:
        monitor = _monitor(True)
        first = await monitor.perform_health_check({}, {})
        second = await monitor.perform_health_check({}, {})
        assert first is not second
        assert monitor._transport.calls == 2


# =============================================================================
# Test: Cache Statistics
# =============================================================================
class TestCacheStats:
    """Tests for optional cache statistics in the health document."""

    async def test_attached_when_available(self) -> None:
        cache = InMemoryContentCache(estimated_item_size_kb=1024)
        cache.put("ml:abc:base", {})
        response = await _monitor(True, cache_stats_provider=cache).perform_health_check()

        assert response.to_document()["cache"] == {"count": 1, "estimatedSizeMB": 1.0}

    async def test_async_provider_and_dict_stats(self) -> None:
        stats = await _monitor(cache_stats_provider=_AsyncStats()).get_cache_stats()
        assert stats == CacheStats(count=4, estimated_size_mb=0.2)

    async def test_failing_provider_is_omitted(self) -> None:
        monitor = _monitor(True, cache_stats_provider=_BrokenStats())
        with capture_logs() as logs:
            response = await monitor.perform_health_check()

        assert response.cache is None
        assert response.status is HealthStatus.HEALTHY
        assert "cache_stats_unavailable" in [e["event"] for e in logs]
