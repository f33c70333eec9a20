"""
awarekv.core.enums - Type-Safe Enumerations
=============================================

This module defines the enumeration types used throughout awarekv.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in JSON/YAML (Pydantic-friendly)
    - They can be compared with plain strings: ResourceType.PHISHING == "phishing"
    - They have human-readable representations

Architecture Mapping:
    ┌─────────────────────────────────────────────────────────────────┐
    │  ARTIFACT LAYER                                                 │
    │    ResourceType: The three content artifact families            │
    │    ArtifactPart: The stored pieces of one artifact              │
    ├─────────────────────────────────────────────────────────────────┤
    │  TRANSPORT LAYER                                                │
    │    ValueEncoding: How a raw KV body is handed back to callers   │
    ├─────────────────────────────────────────────────────────────────┤
    │  MONITORING LAYER                                               │
    │    HealthStatus: healthy / degraded / unhealthy                 │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Resource Type Enumeration
# =============================================================================
# Each resource type lives in its own KV namespace and owns a key prefix:
#
#   MICROLEARNING → "ml:<id>:..."
#   PHISHING      → "phishing:<id>:..."
#   SMISHING      → "smishing:<id>:..."
# =============================================================================
class ResourceType(str, Enum):
    """The content artifact families persisted by the store.

    Usage:
        >>> ResourceType.MICROLEARNING.key_prefix
        'ml'
        >>> ResourceType("phishing") is ResourceType.PHISHING
        True
    """

    MICROLEARNING = "microlearning"   # Training module: base + per-language + inbox
    PHISHING = "phishing"             # Email simulation: base + email + landing page
    SMISHING = "smishing"             # SMS simulation: base + sms + landing page

    @property
    def key_prefix(self) -> str:
        """The first segment of every KV key owned by this resource type."""
        return _KEY_PREFIXES[self]

    @classmethod
    def from_key_prefix(cls, prefix: str) -> "ResourceType":
        """Resolve a resource type from the first segment of a key.

        Raises:
            ValueError: If no resource type owns the prefix.
        """
        for resource_type, known in _KEY_PREFIXES.items():
            if known == prefix:
                return resource_type
        raise ValueError(f"Unknown key prefix: '{prefix}'")


_KEY_PREFIXES = {
    ResourceType.MICROLEARNING: "ml",
    ResourceType.PHISHING: "phishing",
    ResourceType.SMISHING: "smishing",
}


# =============================================================================
# Artifact Part Enumeration
# =============================================================================
# The third key segment. Some parts carry further colon-delimited subparts:
#
#   BASE     → ml:<id>:base
#   LANG     → ml:<id>:lang:<lang>
#   INBOX    → ml:<id>:inbox:<dept>:<lang>
#   HISTORY  → ml:<id>:history:<version>
#   EMAIL    → phishing:<id>:email:<lang>
#   LANDING  → phishing:<id>:landing:<lang>  /  smishing:<id>:landing:<lang>
#   SMS      → smishing:<id>:sms:<lang>
# =============================================================================
class ArtifactPart(str, Enum):
    """The named parts an artifact is split into when stored."""

    BASE = "base"           # Existence marker and metadata for the whole artifact
    LANG = "lang"           # Per-language microlearning content
    INBOX = "inbox"         # Per-department, per-language inbox content
    HISTORY = "history"     # Version history entry for a microlearning update
    EMAIL = "email"         # Phishing email body (per language)
    LANDING = "landing"     # Landing page (per language)
    SMS = "sms"             # Smishing SMS messages (per language)

    @property
    def subpart_count(self) -> int:
        """How many colon-delimited segments follow this part in a key."""
        return _SUBPART_COUNTS[self]


_SUBPART_COUNTS = {
    ArtifactPart.BASE: 0,
    ArtifactPart.LANG: 1,
    ArtifactPart.INBOX: 2,
    ArtifactPart.HISTORY: 1,
    ArtifactPart.EMAIL: 1,
    ArtifactPart.LANDING: 1,
    ArtifactPart.SMS: 1,
}


# =============================================================================
# Value Encoding Enumeration
# =============================================================================
# Controls how KVTransport.get() turns a raw response body into a value:
#
#   AUTO → JSON objects/arrays are decoded, everything else stays raw text
#   JSON → any JSON value is decoded (raw text if the body is not JSON)
#   TEXT → the body is always returned as raw text
# =============================================================================
class ValueEncoding(str, Enum):
    """Decoding mode for values read back from the KV store."""

    AUTO = "auto"
    JSON = "json"
    TEXT = "text"


# =============================================================================
# Health Status Enumeration
# =============================================================================
# Ordered by severity. Aggregation uses a dominance rule:
#   any UNHEALTHY → UNHEALTHY, else any DEGRADED → DEGRADED, else HEALTHY
# =============================================================================
class HealthStatus(str, Enum):
    """Status of one dependency check or of the whole health check.

    Usage:
        >>> HealthStatus.DEGRADED.severity > HealthStatus.HEALTHY.severity
        True
    """

    HEALTHY = "healthy"         # Check succeeded
    DEGRADED = "degraded"       # Soft failure signal (no exception, no timeout)
    UNHEALTHY = "unhealthy"     # Check raised or timed out

    @property
    def severity(self) -> int:
        """Numeric rank used by the dominance rule."""
        return _SEVERITY[self]


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}
