"""
awarekv.core - Foundation Layer
=================================

This package contains the building blocks every other awarekv module
depends on:

    - config:      Configuration management (AwareKVConfig, KVConfig, RetryPolicy, ...)
    - enums:       Type-safe enumerations (ResourceType, ArtifactPart, HealthStatus, ...)
    - models:      Pydantic data models (payloads, CacheStats, health documents)
    - exceptions:  Custom exception hierarchy for structured error handling
    - logging:     structlog configuration and logger factory

Dependency Rule:
    core/ depends on NOTHING else in the awarekv package.
"""

from awarekv.core.config import (
    AwareKVConfig,
    ConsistencyConfig,
    HealthConfig,
    KVConfig,
    RetryPolicy,
)
from awarekv.core.enums import ArtifactPart, HealthStatus, ResourceType, ValueEncoding
from awarekv.core.exceptions import (
    ArtifactValidationError,
    AwareKVError,
    ConfigurationError,
    KVTransportError,
    OperationTimeoutError,
)
from awarekv.core.logging import configure_logging, get_logger
from awarekv.core.models import (
    CacheStats,
    HealthCheckResponse,
    HealthChecks,
    HealthDetails,
    HealthResult,
    MicrolearningPayload,
    PhishingPayload,
    SmishingPayload,
)

__all__ = [
    # Config
    "AwareKVConfig",
    "KVConfig",
    "RetryPolicy",
    "HealthConfig",
    "ConsistencyConfig",
    # Enums
    "ResourceType",
    "ArtifactPart",
    "HealthStatus",
    "ValueEncoding",
    # Models
    "MicrolearningPayload",
    "PhishingPayload",
    "SmishingPayload",
    "CacheStats",
    "HealthResult",
    "HealthChecks",
    "HealthDetails",
    "HealthCheckResponse",
    # Exceptions
    "AwareKVError",
    "ConfigurationError",
    "ArtifactValidationError",
    "KVTransportError",
    "OperationTimeoutError",
    # Logging
    "configure_logging",
    "get_logger",
]
