"""
Shared Test Fixtures for awarekv
==================================

This module provides reusable pytest fixtures used across the entire
test suite. Fixtures are organized by layer:

    1. Configuration fixtures (fast retry policy, KV settings)
    2. Transport fixtures (in-memory, recording, httpx MockTransport)
    3. Store fixtures (ArtifactStore, content cache)

No test talks to a real KV provider: HTTP behaviour is exercised through
httpx.MockTransport, everything else through InMemoryKVTransport.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import pytest

from awarekv.core.config import AwareKVConfig, ConsistencyConfig, KVConfig, RetryPolicy
from awarekv.core.enums import ValueEncoding
from awarekv.infrastructure.artifact_store import ArtifactStore
from awarekv.infrastructure.content_cache import InMemoryContentCache
from awarekv.infrastructure.kv_transport import CloudflareKVTransport, InMemoryKVTransport


# =============================================================================
# Test Doubles
# =============================================================================
class RecordingKVTransport(InMemoryKVTransport):
    """InMemoryKVTransport that records every call and can fail chosen keys.

    Attributes:
        calls: (method, key) pairs in call order.
        failing_puts: Keys whose put() reports failure (the call is still recorded).
    """

    def __init__(self, namespace_id: str = "recording") -> None:
        super().__init__(namespace_id)
        self.calls: list[tuple[str, str]] = []
        self.failing_puts: set[str] = set()

    async def put(self, key: str, value: Any) -> bool:
        self.calls.append(("put", key))
        if key in self.failing_puts:
            return False
        return await super().put(key, value)

    async def get(self, key: str, decode: ValueEncoding = ValueEncoding.AUTO) -> Any:
        self.calls.append(("get", key))
        return await super().get(key, decode)

    async def delete(self, key: str) -> bool:
        self.calls.append(("delete", key))
        return await super().delete(key)

    async def list(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        self.calls.append(("list", prefix))
        return await super().list(prefix, limit)

    def keys_called(self, method: str) -> list[str]:
        return [key for called, key in self.calls if called == method]


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Three attempts with no delay between them."""
    return RetryPolicy(max_attempts=3, base_delay_ms=0, jitter=False)


@pytest.fixture
def kv_config() -> KVConfig:
    """KV settings pointing at a fake account."""
    return KVConfig(
        api_base_url="https://kv.test/client/v4",
        account_id="acct-1",
        api_token="secret-token",
        microlearning_namespace_id="ns-ml",
        phishing_namespace_id="ns-phishing",
        smishing_namespace_id="ns-smishing",
    )


@pytest.fixture
def config(kv_config: KVConfig, fast_retry: RetryPolicy) -> AwareKVConfig:
    """AwareKVConfig with fast retries and fast consistency polling."""
    return AwareKVConfig(
        kv=kv_config,
        retry=fast_retry,
        consistency=ConsistencyConfig(max_wait_ms=50, check_interval_ms=10),
    )


# =============================================================================
# Transports
# =============================================================================

@pytest.fixture
def memory_transport() -> InMemoryKVTransport:
    """Fresh InMemoryKVTransport."""
    return InMemoryKVTransport()


@pytest.fixture
def recording_transport() -> RecordingKVTransport:
    """Fresh RecordingKVTransport with no failing keys."""
    return RecordingKVTransport()


@pytest.fixture
def make_cloudflare(
    kv_config: KVConfig,
    fast_retry: RetryPolicy,
) -> Callable[[Callable[[httpx.Request], httpx.Response]], CloudflareKVTransport]:
    """Factory: CloudflareKVTransport whose requests are answered by ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> CloudflareKVTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return CloudflareKVTransport(kv_config, retry_policy=fast_retry, client=client)

    return _make


# =============================================================================
# Stores
# =============================================================================

@pytest.fixture
def content_cache() -> InMemoryContentCache:
    """Fresh, unbounded InMemoryContentCache."""
    return InMemoryContentCache()


@pytest.fixture
def artifact_store(recording_transport: RecordingKVTransport) -> ArtifactStore:
    """ArtifactStore over a RecordingKVTransport, without a cache."""
    return ArtifactStore(recording_transport)
