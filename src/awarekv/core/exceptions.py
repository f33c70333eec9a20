"""
awarekv.core.exceptions - Custom Exception Hierarchy
======================================================

This module defines a structured exception hierarchy for awarekv.
Components raise and catch specific exception types that carry contextual
information instead of bare strings.

Exception Hierarchy:
    AwareKVError (base)
        ├── ConfigurationError       - Invalid config, missing required values
        ├── ArtifactValidationError  - Malformed input to a store method
        ├── KVTransportError         - Raw request failure (absorbed by the transport)
        └── OperationTimeoutError    - with_timeout() expired (also a TimeoutError)

Propagation Policy:
    KVTransportError   → never leaves KVTransport; mapped to False / None / []
    OperationTimeoutError → propagated to the caller, who decides what to do
    ArtifactValidationError → propagated to the caller
    anything           → absorbed by HealthMonitor into an UNHEALTHY result

Usage:
    >>> from awarekv.core.exceptions import ArtifactValidationError
    >>> raise ArtifactValidationError(
    ...     message="Microlearning ID is required",
    ...     field="microlearning_id",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All awarekv exceptions inherit from this base class. This allows catching
# all library-specific errors with a single except clause:
#
#   try:
#       await store.save_microlearning(...)
#   except AwareKVError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class AwareKVError(Exception):
    """Base exception for all awarekv errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code (UPPER_SNAKE_CASE).
        details: Arbitrary dict with additional debugging context.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(AwareKVError):
    """Raised when awarekv configuration is invalid or unreadable.

    Example:
        >>> raise ConfigurationError(
        ...     message="Config file is not a mapping",
        ...     details={"path": "awarekv.yaml"},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Artifact Validation Error
# =============================================================================
# Raised before any I/O when a caller hands the store something that cannot be
# mapped onto keys: an empty ID, an ID containing the key separator, a payload
# that fails model validation, etc.
# =============================================================================
class ArtifactValidationError(AwareKVError):
    """Raised when input to an artifact store or key schema call is malformed.

    Attributes:
        field: Name of the offending field, when known.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = "INVALID_ARTIFACT",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if field:
            enriched_details["field"] = field

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.field = field


# =============================================================================
# KV Transport Error
# =============================================================================
# Raised by the raw request layer inside KVTransport implementations so that
# with_retry() can see a failure. It never crosses the transport boundary:
# put/get/delete/list catch it and degrade to False / None / [].
# =============================================================================
class KVTransportError(AwareKVError):
    """Raised when a single KV request fails.

    Attributes:
        status_code: HTTP status code, or None for network-level failures.
        retryable: Whether the failure is transient (network error, 429, 5xx).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        error_code: str = "KV_TRANSPORT_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["status_code"] = status_code
        enriched_details["retryable"] = retryable

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.status_code = status_code
        self.retryable = retryable


# =============================================================================
# Operation Timeout Error
# =============================================================================
# Also a builtin TimeoutError so callers that only know the standard library
# (or asyncio.TimeoutError on Python 3.11+) still catch it.
# =============================================================================
class OperationTimeoutError(AwareKVError, TimeoutError):
    """Raised by with_timeout() when the timer fires before the operation.

    Attributes:
        timeout_ms: The configured timeout in milliseconds.

    Example:
        >>> err = OperationTimeoutError(timeout_ms=5000)
        >>> str(err)
        'Timeout after 5000ms'
    """

    def __init__(
        self,
        timeout_ms: float,
        message: Optional[str] = None,
        error_code: str = "OPERATION_TIMEOUT",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["timeout_ms"] = timeout_ms

        super().__init__(
            message=message or f"Timeout after {_format_ms(timeout_ms)}ms",
            error_code=error_code,
            details=enriched_details,
        )

        self.timeout_ms = timeout_ms


def _format_ms(value: float) -> str:
    """Render 5000.0 as '5000' but keep fractional milliseconds."""
    return str(int(value)) if float(value).is_integer() else str(value)
