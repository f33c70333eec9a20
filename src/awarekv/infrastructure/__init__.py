"""
awarekv.infrastructure - Storage Layer
========================================

    - key_schema:      Colon-delimited key layout for multi-part artifacts
    - kv_transport:    KVTransport ABC, CloudflareKVTransport, InMemoryKVTransport
    - artifact_store:  ArtifactStore (save / get / update / search)
    - content_cache:   InMemoryContentCache for base records
    - consistency:     wait_for_consistency() after writes

Dependency Rule:
    infrastructure/ depends on core/ and resilience/ only.
"""

from awarekv.infrastructure.artifact_store import ArtifactStore
from awarekv.infrastructure.consistency import wait_for_consistency
from awarekv.infrastructure.content_cache import InMemoryContentCache
from awarekv.infrastructure.key_schema import (
    ArtifactKey,
    build_expected_microlearning_keys,
    build_expected_phishing_keys,
    build_expected_smishing_keys,
    build_key,
    parse_key,
)
from awarekv.infrastructure.kv_transport import (
    CloudflareKVTransport,
    InMemoryKVTransport,
    KVTransport,
)

__all__ = [
    # Keys
    "ArtifactKey",
    "build_key",
    "parse_key",
    "build_expected_microlearning_keys",
    "build_expected_phishing_keys",
    "build_expected_smishing_keys",
    # Transport
    "KVTransport",
    "CloudflareKVTransport",
    "InMemoryKVTransport",
    # Store
    "ArtifactStore",
    "InMemoryContentCache",
    "wait_for_consistency",
]
