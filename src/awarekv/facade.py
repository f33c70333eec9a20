"""
awarekv.facade - AwareKV Top-Level Facade
===========================================

This module implements the AwareKV facade, the single entry point that wires
configuration, transports, stores, the content cache and the health monitor
together.

Architecture Context:

    ┌───────────────────────────────────────────────────────────┐
    │                     AwareKV (Facade)                       │
    │                                                            │
    │   store_for(MICROLEARNING)  store_for(PHISHING)  ...       │
    │        │                         │                         │
    │   ┌────▼──────────┐        ┌─────▼─────────┐               │
    │   │ ArtifactStore │        │ ArtifactStore │  ──┐          │
    │   └────┬──────────┘        └─────┬─────────┘    │ shared   │
    │        │                         │              │ content  │
    │   ┌────▼──────────┐        ┌─────▼─────────┐    │ cache    │
    │   │  KVTransport  │        │  KVTransport  │  ◄─┘          │
    │   │  (ml ns)      │        │ (phishing ns) │               │
    │   └────┬──────────┘        └───────────────┘               │
    │        │                                                   │
    │   ┌────▼──────────┐                                        │
    │   │ HealthMonitor │  checks the microlearning namespace    │
    │   └───────────────┘                                        │
    └───────────────────────────────────────────────────────────┘

    Every transport built by the facade shares one httpx.AsyncClient, closed
    on shutdown. Transports passed in by the caller are not closed.

Usage:
    >>> async with AwareKV(load_config()) as kv:
    ...     store = kv.store_for(ResourceType.PHISHING)
    ...     await store.save_phishing(pid, payload, "en-gb")
    ...     report = await kv.health(agents, workflows)
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import httpx
import structlog

from awarekv.core.config import AwareKVConfig
from awarekv.core.enums import ResourceType
from awarekv.core.models import HealthCheckResponse
from awarekv.infrastructure.artifact_store import ArtifactStore
from awarekv.infrastructure.consistency import wait_for_consistency
from awarekv.infrastructure.content_cache import InMemoryContentCache
from awarekv.infrastructure.kv_transport import CloudflareKVTransport, KVTransport
from awarekv.monitoring.health import HealthMonitor


# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()


class AwareKV:
    """Top-level facade for awarekv.

    Lifecycle:
        1. ``AwareKV(config)``: build transports, stores, cache, monitor
        2. ``await initialize()``: check every namespace once
        3. ``store_for(...)`` / ``health(...)``: use it
        4. ``await shutdown()``: close the HTTP client

    Or use the async context manager:
        async with AwareKV(config) as kv:
            ...

    Args:
        config: awarekv configuration. Defaults to AwareKVConfig(), which
            reads AWAREKV_* environment variables.
        transports: Transports to use instead of building Cloudflare ones,
            by resource type (e.g. InMemoryKVTransport in tests). Resource
            types not listed get a CloudflareKVTransport.
        http_client: httpx.AsyncClient shared by the Cloudflare transports.
            Created (and later closed) by the facade when not given.
        cache: Content cache shared by every store. Defaults to an
            InMemoryContentCache sized from config.health.

    Example:
        >>> kv = AwareKV(transports={t: InMemoryKVTransport() for t in ResourceType})
        >>> await kv.initialize()
        >>> await kv.store_for("microlearning").get_microlearning("abc")
    """

    def __init__(
        self,
        config: Optional[AwareKVConfig] = None,
        *,
        transports: Optional[Mapping[ResourceType, KVTransport]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[InMemoryContentCache] = None,
    ) -> None:
        self._config = config or AwareKVConfig()
        self._logger = logger.bind(component="awarekv")

        self._provided = {
            ResourceType(t): transport for t, transport in (transports or {}).items()
        }
        self._owns_http_client = http_client is None and len(self._provided) < len(ResourceType)
        self._http_client = http_client

        self._cache = cache or InMemoryContentCache(
            estimated_item_size_kb=self._config.health.estimated_item_size_kb,
        )
        self._wire()

        self._initialized = False

    def _wire(self) -> None:
        """Build the owned HTTP client, the transports, stores and health monitor."""
        if self._owns_http_client:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.kv.request_timeout_seconds),
            )

        self._transports: dict[ResourceType, KVTransport] = dict(self._provided)
        for resource_type in ResourceType:
            if resource_type not in self._transports:
                self._transports[resource_type] = CloudflareKVTransport(
                    self._config.kv,
                    resource_type=resource_type,
                    retry_policy=self._config.retry,
                    client=self._http_client,
                )

        self._stores = {
            resource_type: ArtifactStore(transport, cache=self._cache)
            for resource_type, transport in self._transports.items()
        }
        self._health_monitor = HealthMonitor(
            self._transports[ResourceType.MICROLEARNING],
            cache_stats_provider=self._cache,
            retry_policy=self._config.retry,
            timeout_ms=self._config.health.timeout_ms,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> AwareKVConfig:
        return self._config

    @property
    def cache(self) -> InMemoryContentCache:
        return self._cache

    @property
    def health_monitor(self) -> HealthMonitor:
        return self._health_monitor

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Check every namespace once and mark the facade ready.

        Unreachable namespaces are logged, not raised: the stores degrade to
        falsy results until the namespace becomes reachable. A facade that
        was shut down gets a fresh HTTP client, transports and stores.

        Idempotent: Safe to call multiple times.
        """
        if self._initialized:
            self._logger.debug("awarekv_already_initialized")
            return

        if self._owns_http_client and self._http_client.is_closed:
            self._wire()

        self._logger.info("awarekv_initializing", environment=self._config.environment)
        for resource_type, store in self._stores.items():
            if not await store.check_namespace():
                self._logger.warning(
                    "namespace_unreachable",
                    resource_type=resource_type.value,
                    namespace_id=store.namespace_id,
                )

        self._initialized = True
        self._logger.info("awarekv_initialized")

    async def shutdown(self) -> None:
        """Close the owned HTTP client and drop cached content.

        The owned client is closed even if initialize() was never called.

        Idempotent: Safe to call multiple times.
        """
        if not self._initialized:
            await self._close_http_client()
            self._logger.debug("awarekv_not_initialized_skipping_shutdown")
            return

        self._logger.info("awarekv_shutting_down")
        await self._close_http_client()
        self._cache.clear()

        self._initialized = False
        self._logger.info("awarekv_shutdown_complete")

    async def _close_http_client(self) -> None:
        if self._owns_http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> AwareKV:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Stores and Health
    # =========================================================================

    def store_for(self, resource_type: ResourceType) -> ArtifactStore:
        """Return the store bound to a resource type's namespace."""
        self._ensure_initialized()
        return self._stores[ResourceType(resource_type)]

    async def health(
        self,
        agents: Optional[Mapping[str, Any]] = None,
        workflows: Optional[Mapping[str, Any]] = None,
        timeout_ms: Optional[float] = None,
    ) -> HealthCheckResponse:
        """Run a deep health check. Never raises."""
        return await self._health_monitor.perform_health_check(agents, workflows, timeout_ms)

    async def wait_for_consistency(
        self,
        resource_type: ResourceType,
        resource_id: str,
        expected_keys: Sequence[str],
    ) -> bool:
        """Poll the resource type's namespace until ``expected_keys`` are readable."""
        self._ensure_initialized()
        return await wait_for_consistency(
            self._transports[ResourceType(resource_type)],
            resource_id,
            expected_keys,
            self._config.consistency,
        )

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _ensure_initialized(self) -> None:
        """Raise RuntimeError if initialize() has not been called."""
        if not self._initialized:
            raise RuntimeError(
                "AwareKV has not been initialized. "
                "Call await kv.initialize() or use 'async with AwareKV() as kv:'"
            )

    def __repr__(self) -> str:
        return (
            f"AwareKV("
            f"initialized={self._initialized}, "
            f"environment={self._config.environment!r})"
        )
