"""
awarekv.core.config - Configuration Management
================================================

This module provides the configuration system for awarekv. Configuration
can be loaded from multiple sources with the following priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with AWAREKV_)
    3. YAML configuration file (awarekv.yaml)
    4. Default values defined in the models below

Architecture Context:
    Configuration flows DOWN through the system. The top-level AwareKVConfig
    is created once and handed to the facade, which passes each section to
    the component that needs it:

        AwareKVConfig
            ├── KVConfig           → CloudflareKVTransport (one per namespace)
            ├── RetryPolicy        → with_retry() inside transports and health checks
            ├── HealthConfig       → HealthMonitor, InMemoryContentCache
            └── ConsistencyConfig  → wait_for_consistency()

Usage:
    # Load from environment variables:
    config = AwareKVConfig()

    # Load from YAML file:
    config = load_config("awarekv.yaml")

    # Explicit overrides:
    config = AwareKVConfig(log_level="DEBUG", environment="prod")

Environment Variables:
    AWAREKV_LOG_LEVEL=DEBUG
    AWAREKV_KV__ACCOUNT_ID=0123456789abcdef
    AWAREKV_KV__API_TOKEN=...
    AWAREKV_KV__PHISHING_NAMESPACE_ID=...
    AWAREKV_RETRY__MAX_ATTEMPTS=5
    AWAREKV_HEALTH__TIMEOUT_MS=3000
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from awarekv.core.enums import ResourceType
from awarekv.core.exceptions import ConfigurationError


# =============================================================================
# KV Configuration
# =============================================================================
# Connection settings for the REST key-value provider. Every resource type
# has its own namespace; a transport is bound to exactly one of them.
# =============================================================================
class KVConfig(BaseModel):
    """Configuration for the REST key-value store.

    Attributes:
        api_base_url: Root of the provider's REST API.
        account_id: Account that owns the namespaces.
        api_token: Bearer token used for every request. None means requests
            are sent unauthenticated (and will fail with 401/403).
        microlearning_namespace_id: Namespace holding microlearning keys.
        phishing_namespace_id: Namespace holding phishing simulation keys.
        smishing_namespace_id: Namespace holding smishing simulation keys.
        request_timeout_seconds: Per-request HTTP timeout.
        list_limit: Default page size for prefix listings.
    """

    api_base_url: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Base URL of the KV REST API",
    )
    account_id: str = Field(
        default="",
        description="Account identifier that owns the KV namespaces",
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token for the KV REST API",
    )
    microlearning_namespace_id: str = Field(
        default="c96ef0b5a2424edca1426f6e7a85b9dc",
        description="Namespace for microlearning artifacts",
    )
    phishing_namespace_id: str = Field(
        default="",
        description="Namespace for phishing simulation artifacts",
    )
    smishing_namespace_id: str = Field(
        default="",
        description="Namespace for smishing simulation artifacts",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120.0,
        description="HTTP timeout in seconds for a single KV request",
    )
    list_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Default maximum number of keys returned by a listing",
    )

    def namespace_for(self, resource_type: ResourceType) -> str:
        """Return the configured namespace id for a resource type.

        Phishing and smishing fall back to the microlearning namespace when
        they have not been given their own.
        """
        namespaces = {
            ResourceType.MICROLEARNING: self.microlearning_namespace_id,
            ResourceType.PHISHING: self.phishing_namespace_id,
            ResourceType.SMISHING: self.smishing_namespace_id,
        }
        return namespaces[ResourceType(resource_type)] or self.microlearning_namespace_id


# =============================================================================
# Retry Policy
# =============================================================================
# Configures how with_retry() spaces out attempts. The delay uses exponential
# backoff with proportional jitter:
#
#   delay = min(base_delay_ms * (backoff_multiplier ^ attempt) + jitter, max_delay_ms)
#
# Example delay progression (default settings):
#   Attempt 0: ~1000ms
#   Attempt 1: ~2000ms
#   Attempt 2: ~4000ms
#   Attempt N: capped at 10000ms
# =============================================================================
class RetryPolicy(BaseModel):
    """Configuration for retry behavior with exponential backoff and jitter.

    Attributes:
        max_attempts: Total number of attempts, including the first one.
        base_delay_ms: Delay before the first retry.
        max_delay_ms: Cap on any single delay.
        backoff_multiplier: Growth factor applied per attempt.
        jitter: Whether to add up to 10% random noise to each delay.

    Example:
        >>> policy = RetryPolicy(max_attempts=5, base_delay_ms=500)
        >>> policy.calculate_delay_ms(attempt=2)  # ~2000ms (500 * 2^2 + jitter)
    """

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Total attempts before the last error is re-raised",
    )
    base_delay_ms: float = Field(
        default=1000.0,
        ge=0,
        le=30000.0,
        description="Base delay in milliseconds for the first retry",
    )
    max_delay_ms: float = Field(
        default=10000.0,
        ge=0,
        le=300000.0,
        description="Maximum delay cap in milliseconds",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Multiplier for exponential backoff",
    )
    jitter: bool = Field(
        default=True,
        description="Add proportional random jitter to each delay",
    )

    def calculate_delay_ms(self, attempt: int) -> float:
        """Calculate the delay before retrying after a zero-based attempt.

        Args:
            attempt: Zero-based index of the attempt that just failed.

        Returns:
            Delay in milliseconds, never above max_delay_ms.
        """
        base_delay = self.base_delay_ms * (self.backoff_multiplier ** attempt)
        # Jitter de-synchronizes concurrent retries against the same store.
        jitter = random.uniform(0, base_delay * 0.1) if self.jitter else 0.0
        return min(base_delay + jitter, self.max_delay_ms)


# =============================================================================
# Health Configuration
# =============================================================================
class HealthConfig(BaseModel):
    """Configuration for the deep health check.

    Attributes:
        timeout_ms: Budget for the whole KV round trip.
        estimated_item_size_kb: Assumed size of one cached artifact, used to
            estimate the content cache's memory footprint.
    """

    timeout_ms: int = Field(
        default=5000,
        ge=0,
        le=60000,
        description="Timeout budget in milliseconds for the KV check",
    )
    estimated_item_size_kb: float = Field(
        default=50.0,
        gt=0,
        description="Assumed size in KB of one cached artifact",
    )


# =============================================================================
# Consistency Configuration
# =============================================================================
# The KV provider is eventually consistent: a key written in one region may
# not be readable for a short while. wait_for_consistency() polls at a fixed
# interval (not a tight loop, to stay under the provider's rate limits).
# =============================================================================
class ConsistencyConfig(BaseModel):
    """Configuration for post-write key availability polling."""

    enabled: bool = Field(
        default=True,
        description="Poll for written keys before reporting them as saved",
    )
    max_wait_ms: int = Field(
        default=10000,
        ge=0,
        le=120000,
        description="Maximum total time spent polling",
    )
    check_interval_ms: int = Field(
        default=1000,
        ge=1,
        le=30000,
        description="Delay between polls",
    )


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   AWAREKV_LOG_LEVEL          → config.log_level
#   AWAREKV_KV__ACCOUNT_ID     → config.kv.account_id (double underscore = nested)
#   AWAREKV_RETRY__JITTER      → config.retry.jitter
# =============================================================================
class AwareKVConfig(BaseSettings):
    """Top-level configuration for awarekv.

    Attributes:
        environment: Deployment environment.
        log_level: Logging level for structlog/stdlib logging.
        log_json: Render logs as JSON lines instead of console output.
        kv: KV store connection configuration.
        retry: Retry policy for transient KV failures.
        health: Health check configuration.
        consistency: Post-write polling configuration.

    Example:
        >>> config = AwareKVConfig(
        ...     environment="dev",
        ...     kv=KVConfig(account_id="acct-1", api_token="token"),
        ... )
    """

    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines (production) instead of console output",
    )

    kv: KVConfig = Field(
        default_factory=KVConfig,
        description="KV store connection configuration",
    )
    retry: RetryPolicy = Field(
        default_factory=RetryPolicy,
        description="Retry policy for transient failures",
    )
    health: HealthConfig = Field(
        default_factory=HealthConfig,
        description="Health check configuration",
    )
    consistency: ConsistencyConfig = Field(
        default_factory=ConsistencyConfig,
        description="Post-write key availability polling",
    )

    model_config = {
        "env_prefix": "AWAREKV_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> AwareKVConfig:
    """Load awarekv configuration from a YAML file and/or environment variables.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'awarekv.yaml' in the current directory. If that doesn't
            exist either, uses pure defaults + environment variables.

    Returns:
        A fully validated AwareKVConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    if path is None:
        default_path = Path("awarekv.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}. "
                f"Create one or use AWAREKV_* environment variables."
            )

        try:
            with open(config_path) as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                message=f"Configuration file is not valid YAML: {path}",
                error_code="INVALID_YAML",
                details={"path": path, "error": str(e)},
            ) from e

        if isinstance(raw_data, dict):
            yaml_data = raw_data

    try:
        return AwareKVConfig(**yaml_data)
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Invalid awarekv configuration: {e.error_count()} error(s)",
            error_code="INVALID_CONFIG",
            details={"errors": e.errors(include_url=False)},
        ) from e


def get_default_config() -> AwareKVConfig:
    """Create an AwareKVConfig with all defaults (overridden by any set env vars)."""
    return AwareKVConfig()
