"""
awarekv.monitoring.health - Deep Health Checks
================================================

HealthMonitor produces the document served by a monitoring endpoint. One
check runs these steps, with no state carried between checks:

    1. KV check        transport.health_check() under with_retry(), the whole
                       check bounded by with_timeout()
    2. Latency         wall-clock time of the KV check
    3. Presence        are any agents / workflows registered
    4. Aggregation     determine_overall_status() over the check results
    5. Decoration      process uptime, content cache statistics if available

KV Check Outcomes:

    health_check() returned True    → HEALTHY
    health_check() returned False   → DEGRADED  ("KV health check returned false")
    health_check() raised           → UNHEALTHY (the error message)
    check exceeded its time budget  → UNHEALTHY ("Health check timeout ...")

perform_health_check() never raises. It is the last line of observability, so
every internal failure is encoded in the returned document instead.
"""

from __future__ import annotations

import inspect
import time
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from awarekv.core.config import RetryPolicy
from awarekv.core.enums import HealthStatus
from awarekv.core.exceptions import OperationTimeoutError
from awarekv.core.models import (
    CacheStats,
    HealthCheckResponse,
    HealthChecks,
    HealthDetails,
    HealthResult,
)
from awarekv.infrastructure.kv_transport import KVTransport
from awarekv.resilience.retry import with_retry
from awarekv.resilience.timeout import with_timeout

# Reference point for process uptime.
PROCESS_STARTED_AT = time.monotonic()

KV_SOFT_FAILURE_MESSAGE = "KV health check returned false"

StatusLike = Union[HealthResult, HealthStatus, str]


# =============================================================================
# Pure Helpers
# =============================================================================
def format_uptime(uptime_ms: int) -> str:
    """Render an uptime as 'Nd Nh Nm', 'Nh Nm', 'Nm Ns' or 'Ns'.

    Example:
        >>> format_uptime(3_725_000)
        '1h 2m'
    """
    seconds = max(0, int(uptime_ms)) // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def determine_overall_status(
    checks: Union[HealthChecks, Mapping[str, Any], Iterable[StatusLike]],
) -> HealthStatus:
    """Aggregate sub-check statuses with the dominance rule.

    Any UNHEALTHY → UNHEALTHY; otherwise any DEGRADED → DEGRADED; otherwise
    HEALTHY. Boolean presence checks (agents, workflows) carry no status and
    are ignored.

    Args:
        checks: A HealthChecks model, a mapping of check name to
            HealthResult/HealthStatus, or an iterable of either. Plain dicts
            with a "status" key (a serialized HealthResult) are accepted too.

    Example:
        >>> determine_overall_status({"kv": HealthResult(status="degraded")})
        <HealthStatus.DEGRADED: 'degraded'>
    """
    if isinstance(checks, HealthChecks):
        values: Iterable[Any] = [checks.kv]
    elif isinstance(checks, Mapping):
        values = checks.values()
    else:
        values = checks

    overall = HealthStatus.HEALTHY
    for value in values:
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, HealthResult):
            status = value.status
        elif isinstance(value, Mapping):
            status = HealthStatus(value["status"])
        else:
            status = HealthStatus(value)
        if status.severity > overall.severity:
            overall = status
    return overall


# =============================================================================
# Health Monitor
# =============================================================================
class HealthMonitor:
    """Runs deep health checks against one KV transport.

    Args:
        transport: Transport whose health_check() is checked.
        cache_stats_provider: Object exposing get_cache_stats() (e.g. an
            InMemoryContentCache). Its stats are attached when available.
        retry_policy: Backoff around transport.health_check().
        timeout_ms: Default time budget for the KV check.
        started_at: time.monotonic() value uptime is measured from.
            Defaults to module import time.
        logger: Optional structlog logger.

    Example:
        >>> monitor = HealthMonitor(InMemoryKVTransport())
        >>> response = await monitor.perform_health_check({"router": agent}, {})
        >>> response.to_document()["status"]
        'healthy'
    """

    def __init__(
        self,
        transport: KVTransport,
        *,
        cache_stats_provider: Optional[Any] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_ms: float = 5000,
        started_at: Optional[float] = None,
        logger: Optional[Any] = None,
    ) -> None:
        self._transport = transport
        self._cache_stats_provider = cache_stats_provider
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout_ms = timeout_ms
        self._started_at = PROCESS_STARTED_AT if started_at is None else started_at
        self._logger = (logger or structlog.get_logger()).bind(component="health_monitor")

    # =========================================================================
    # Individual Checks
    # =========================================================================

    async def check_kv_health(self) -> HealthResult:
        """Check the KV store once (with retries) and classify the outcome."""
        started = time.perf_counter()
        try:
            healthy = await with_retry(
                self._transport.health_check,
                "KV health check",
                policy=self._retry_policy,
                logger=self._logger,
            )
        except Exception as e:
            latency_ms = _elapsed_ms(started)
            error = str(e) or type(e).__name__
            self._logger.error(
                "kv_health_check_failed", error_message=error, latency_ms=latency_ms
            )
            return HealthResult(status=HealthStatus.UNHEALTHY, latency_ms=latency_ms, error=error)

        latency_ms = _elapsed_ms(started)
        if healthy:
            return HealthResult(status=HealthStatus.HEALTHY, latency_ms=latency_ms)

        self._logger.warning("kv_health_check_degraded", latency_ms=latency_ms)
        return HealthResult(
            status=HealthStatus.DEGRADED,
            latency_ms=latency_ms,
            error=KV_SOFT_FAILURE_MESSAGE,
        )

    def get_uptime(self) -> tuple[str, int]:
        """Return (formatted uptime, uptime in milliseconds)."""
        uptime_ms = max(0, int((time.monotonic() - self._started_at) * 1000))
        return format_uptime(uptime_ms), uptime_ms

    async def get_cache_stats(self) -> Optional[CacheStats]:
        """Ask the provider for stats. None when absent, empty or failing."""
        if self._cache_stats_provider is None:
            return None
        try:
            stats = self._cache_stats_provider.get_cache_stats()
            if inspect.isawaitable(stats):
                stats = await stats
            if stats is None or isinstance(stats, CacheStats):
                return stats
            return CacheStats.model_validate(stats)
        except Exception as e:
            self._logger.warning(
                "cache_stats_unavailable",
                error_message=str(e),
                error_type=type(e).__name__,
            )
            return None

    # =========================================================================
    # Full Check
    # =========================================================================

    async def perform_health_check(
        self,
        agents: Optional[Mapping[str, Any]] = None,
        workflows: Optional[Mapping[str, Any]] = None,
        timeout_ms: Optional[float] = None,
    ) -> HealthCheckResponse:
        """Run every check and build the health document. Never raises.

        Args:
            agents: Registered agents by name. Only the names are read.
            workflows: Registered workflows by name. Only the names are read.
            timeout_ms: Budget for the KV check. Defaults to the monitor's.

        Returns:
            A fresh HealthCheckResponse.
        """
        budget = self._timeout_ms if timeout_ms is None else timeout_ms
        uptime, uptime_ms = self.get_uptime()

        kv = await self._bounded_kv_check(budget)

        try:
            agent_names = [str(name) for name in (agents or {})]
            workflow_names = [str(name) for name in (workflows or {})]
        except Exception as e:
            self._logger.error("health_registry_unreadable", error_message=str(e))
            agent_names, workflow_names = [], []

        checks = HealthChecks(
            kv=kv,
            agents=len(agent_names) > 0,
            workflows=len(workflow_names) > 0,
        )
        response = HealthCheckResponse(
            status=determine_overall_status(checks),
            uptime=uptime,
            uptime_ms=uptime_ms,
            checks=checks,
            details=HealthDetails(
                agents=agent_names,
                workflows=workflow_names,
                agent_count=len(agent_names),
                workflow_count=len(workflow_names),
            ),
            cache=await self.get_cache_stats(),
        )

        self._logger.info(
            "health_check_completed",
            status=response.status.value,
            kv_status=kv.status.value,
            kv_latency_ms=kv.latency_ms,
        )
        return response

    async def _bounded_kv_check(self, budget_ms: float) -> HealthResult:
        started = time.perf_counter()
        try:
            return await with_timeout(self.check_kv_health(), budget_ms)
        except OperationTimeoutError as e:
            error = f"Health check timeout: {e.message}"
        except Exception as e:
            error = str(e) or type(e).__name__

        latency_ms = _elapsed_ms(started)
        self._logger.error("kv_health_check_failed", error_message=error, latency_ms=latency_ms)
        return HealthResult(status=HealthStatus.UNHEALTHY, latency_ms=latency_ms, error=error)


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)
