"""
awarekv.core.models - Core Data Models
========================================

This module defines the Pydantic data models that flow between the layers of
awarekv.

Model Hierarchy:
    MicrolearningPayload → What a microlearning save splits into parts
    PhishingPayload      → What a phishing save splits into parts
    SmishingPayload      → What a smishing save splits into parts
    CacheStats           → Size of the process-local content cache
    HealthResult         → Outcome of one dependency check
    HealthCheckResponse  → The document returned to monitoring endpoints

Wire Format:
    Health models are built with snake_case attribute names but serialize to
    the camelCase field names operators' dashboards expect (latencyMs,
    uptimeMs, agentCount, estimatedSizeMB). Use ``to_document()`` to get the
    JSON-ready dict.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from awarekv.core.enums import HealthStatus


def _now() -> datetime:
    """Current UTC timestamp. Every timestamp in awarekv is UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Artifact Payloads
# =============================================================================
# A payload is the in-memory form of one artifact before the store splits it
# into KV parts. Optional parts left as None are skipped, not written empty.
#
#   MicrolearningPayload → base + lang:<lang> (+ inbox:<dept>:<lang>)
#   PhishingPayload      → base (+ email:<lang>) (+ landing:<lang>)
#   SmishingPayload      → base (+ sms:<lang>) (+ landing:<lang>)
# =============================================================================
class MicrolearningPayload(BaseModel):
    """Parts of a microlearning module.

    Attributes:
        microlearning: Base record (metadata, scenes, language_availability).
        language_content: Content for the language being saved. Required.
        inbox_content: Department inbox content for that language. Optional.

    Example:
        >>> payload = MicrolearningPayload(
        ...     microlearning={"microlearning_metadata": {"title": "Phishing 101"}},
        ...     language_content={"scenes": []},
        ... )
    """

    microlearning: dict[str, Any] = Field(
        description="Base record for the module",
    )
    language_content: Any = Field(
        description="Per-language content for the module",
    )
    inbox_content: Optional[Any] = Field(
        default=None,
        description="Per-department inbox content (skipped when None)",
    )


class PhishingPayload(BaseModel):
    """Parts of a phishing email simulation."""

    base: dict[str, Any] = Field(
        description="Base record (analysis, metadata, language_availability)",
    )
    email: Optional[Any] = Field(
        default=None,
        description="Email template for the language (skipped when None)",
    )
    landing_page: Optional[Any] = Field(
        default=None,
        description="Landing page for the language (skipped when None)",
    )


class SmishingPayload(BaseModel):
    """Parts of a smishing (SMS) simulation."""

    base: dict[str, Any] = Field(
        description="Base record (analysis, metadata, language_availability)",
    )
    sms: Optional[Any] = Field(
        default=None,
        description="SMS messages for the language (skipped when None)",
    )
    landing_page: Optional[Any] = Field(
        default=None,
        description="Landing page for the language (skipped when None)",
    )


# =============================================================================
# Cache Statistics
# =============================================================================
class CacheStats(BaseModel):
    """Size of the process-local content cache.

    Attributes:
        count: Number of cached artifacts.
        estimated_size_mb: Estimated memory footprint in megabytes.
    """

    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(ge=0, description="Number of cached artifacts")
    estimated_size_mb: float = Field(
        ge=0,
        alias="estimatedSizeMB",
        description="Estimated memory footprint in MB",
    )


# =============================================================================
# Health Models
# =============================================================================
class HealthResult(BaseModel):
    """Outcome of one dependency check.

    Attributes:
        status: HEALTHY, DEGRADED or UNHEALTHY.
        latency_ms: Wall-clock time the check took, when measured.
        error: Description of what went wrong, when something did.

    Example:
        >>> HealthResult(status=HealthStatus.HEALTHY, latency_ms=42).to_document()
        {'status': 'healthy', 'latencyMs': 42}
    """

    model_config = ConfigDict(populate_by_name=True)

    status: HealthStatus
    latency_ms: Optional[int] = Field(default=None, alias="latencyMs")
    error: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape, dropping unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HealthChecks(BaseModel):
    """The individual checks that make up one health check."""

    kv: HealthResult
    agents: bool
    workflows: bool


class HealthDetails(BaseModel):
    """Names and counts of the registered in-process collaborators."""

    model_config = ConfigDict(populate_by_name=True)

    agents: list[str] = Field(default_factory=list)
    workflows: list[str] = Field(default_factory=list)
    agent_count: int = Field(default=0, alias="agentCount")
    workflow_count: int = Field(default=0, alias="workflowCount")


class HealthCheckResponse(BaseModel):
    """The document a monitoring endpoint returns.

    Attributes:
        status: Aggregated status (dominance rule over all sub-checks).
        timestamp: When the check was performed (UTC).
        uptime: Human-readable process uptime, e.g. "2h 5m".
        uptime_ms: Raw process uptime in milliseconds.
        checks: The individual checks.
        details: Agent/workflow names and counts.
        cache: Content cache statistics, omitted when unavailable.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: HealthStatus
    timestamp: datetime = Field(default_factory=_now)
    uptime: str
    uptime_ms: int = Field(alias="uptimeMs")
    checks: HealthChecks
    details: Optional[HealthDetails] = None
    cache: Optional[CacheStats] = None

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON document served to operators."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
