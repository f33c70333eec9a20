"""
awarekv - Resilient Artifact Storage for Security-Awareness Content
=====================================================================

awarekv stores microlearning modules, phishing simulations and smishing
simulations in a REST key-value store, and reports on the store's health:

    Callers  →  ArtifactStore  →  KVTransport  →  KV REST API
                     │
    Monitor  →  HealthMonitor  ───┘

Layers (top to bottom):
    1. Facade          - AwareKV: wiring and lifecycle
    2. Monitoring      - HealthMonitor: deep KV check, uptime, cache stats
    3. Infrastructure  - ArtifactStore, key schema, transports, cache
    4. Resilience      - with_retry, with_timeout
    5. Core            - config, enums, models, exceptions, logging

Quick Start:
    >>> from awarekv import AwareKV, ResourceType
    >>> async with AwareKV() as kv:
    ...     store = kv.store_for(ResourceType.MICROLEARNING)
    ...     module = await store.get_microlearning("phishing-101", language="en-gb")
"""

# =============================================================================
# Package Version
# =============================================================================
__version__ = "0.1.0"

# =============================================================================
# Package-Level Exports
# =============================================================================
# For specific components, import from submodules directly:
#   from awarekv.infrastructure import InMemoryKVTransport
#   from awarekv.resilience import with_retry
# =============================================================================
from awarekv.core.config import AwareKVConfig, load_config
from awarekv.core.enums import HealthStatus, ResourceType
from awarekv.facade import AwareKV

__all__ = [
    "AwareKV",
    "AwareKVConfig",
    "HealthStatus",
    "ResourceType",
    "load_config",
    "__version__",
]
