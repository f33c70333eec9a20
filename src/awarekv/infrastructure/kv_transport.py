"""
awarekv.infrastructure.kv_transport - Key-Value Transport
===========================================================

This module provides the transport abstraction between the artifact store and
the remote key-value provider. A transport is bound to exactly one namespace
when it is constructed and exposes four primitives plus two checks.

Architecture Context:

    ┌────────────────┐     put / get / delete / list     ┌──────────────────┐
    │ ArtifactStore  │ ────────────────────────────────→ │   KVTransport    │
    │ HealthMonitor  │ ── check_namespace / health_check │  (one namespace) │
    └────────────────┘                                   └────────┬─────────┘
                                                                  │ HTTPS
                                                         ┌────────▼─────────┐
                                                         │  KV REST API     │
                                                         └──────────────────┘

Failure Policy:
    The four primitives never raise. Failures are logged and reported as
    falsy results:

        put / delete → False
        get          → None   (also for a missing key)
        list         → []

    Transient failures (network errors, HTTP 429 and 5xx) are retried with
    with_retry() before they are reported; every primitive is idempotent for a
    given key and value, so repeating one is safe. Any other non-2xx status is
    final on the first attempt. Errors that are not request failures (a
    closed client, a body too deeply nested to decode) are not retried but
    are absorbed the same way.

Value Encoding:
    Strings are stored as-is; anything else is stored as JSON. On read, the
    body is decoded according to a ValueEncoding (see decode_value()).

Implementations:
    - CloudflareKVTransport: httpx-based client for the Cloudflare KV REST API
    - InMemoryKVTransport: Dict-based, for development and testing
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from awarekv.core.config import KVConfig, RetryPolicy
from awarekv.core.enums import ResourceType, ValueEncoding
from awarekv.core.exceptions import KVTransportError
from awarekv.infrastructure.key_schema import health_check_key
from awarekv.resilience.retry import with_retry


# =============================================================================
# Value Encoding Helpers
# =============================================================================
JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"


def encode_value(value: Any) -> tuple[str, str]:
    """Encode a value for storage.

    Returns:
        A (body, content_type) pair. Strings are sent raw as text/plain;
        everything else is JSON-encoded.

    Raises:
        TypeError: If the value is not JSON-serializable.
        ValueError: If the value contains a circular reference or NaN.
    """
    if isinstance(value, str):
        return value, TEXT_CONTENT_TYPE
    return json.dumps(value, allow_nan=False), JSON_CONTENT_TYPE


def decode_value(body: str, encoding: ValueEncoding = ValueEncoding.AUTO) -> Any:
    """Decode a stored body.

    AUTO returns a dict or list when the body is a JSON object or array, and
    the raw text otherwise. "123", "true" and '"quoted"' therefore come back
    as strings, so a string that happens to look like a scalar JSON value
    survives a round trip. JSON decodes any valid JSON value. TEXT never
    decodes.

    Example:
        >>> decode_value('{"a": 1}')
        {'a': 1}
        >>> decode_value('123')
        '123'
        >>> decode_value('123', ValueEncoding.JSON)
        123
    """
    encoding = ValueEncoding(encoding)
    if encoding is ValueEncoding.TEXT:
        return body
    try:
        decoded = json.loads(body)
    except ValueError:
        return body
    if encoding is ValueEncoding.JSON or isinstance(decoded, (dict, list)):
        return decoded
    return body


# =============================================================================
# Abstract KVTransport Interface
# =============================================================================
class KVTransport(ABC):
    """Abstract interface for a namespace-bound key-value transport.

    Implementations must honour the failure policy described in the module
    docstring: put/get/delete/list never raise.

    Args:
        namespace_id: The namespace every request is sent to.
        logger: Optional structlog logger.
    """

    def __init__(self, namespace_id: str, logger: Optional[Any] = None) -> None:
        self._namespace_id = namespace_id
        self._logger = (logger or structlog.get_logger()).bind(
            component="kv_transport",
            namespace_id=namespace_id,
        )

    @property
    def namespace_id(self) -> str:
        """The namespace every request is sent to. Fixed for the transport's lifetime."""
        return self._namespace_id

    @abstractmethod
    async def put(self, key: str, value: Any) -> bool:
        """Store a value. Returns True only if the store acknowledged the write."""
        ...

    @abstractmethod
    async def get(self, key: str, decode: ValueEncoding = ValueEncoding.AUTO) -> Any:
        """Read a value. Returns None if the key is missing or the read failed."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True only if the store acknowledged the delete."""
        ...

    @abstractmethod
    async def list(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        """List key names starting with ``prefix``. Returns [] on failure."""
        ...

    @abstractmethod
    async def check_namespace(self) -> bool:
        """Return True if the namespace is reachable."""
        ...

    async def health_check(self) -> bool:
        """Deep check: namespace reachability, then a put/get/delete round trip.

        A timestamped sentinel key is written, read back and compared, then
        removed. The delete is attempted even when the read-back did not
        match. Never raises.

        Returns:
            True only if every step succeeded and the read-back matched.
        """
        try:
            if not await self.check_namespace():
                self._logger.warning("kv_health_namespace_unreachable")
                return False

            now_ms = int(time.time() * 1000)
            key = health_check_key(now_ms)
            sentinel = {"test": True, "timestamp": now_ms}

            if not await self.put(key, sentinel):
                self._logger.warning("kv_health_write_failed", key=key)
                return False

            read_back = await self.get(key)
            matched = read_back == sentinel
            deleted = await self.delete(key)

            if not matched:
                self._logger.warning("kv_health_value_mismatch", key=key)
                return False
            if not deleted:
                self._logger.warning("kv_health_delete_failed", key=key)
                return False
            return True
        except Exception as e:
            self._logger.error(
                "kv_health_check_error",
                error_message=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def close(self) -> None:
        """Release any network resources held by the transport."""


# =============================================================================
# Cloudflare KV Transport
# =============================================================================
# REST endpoints (relative to {api_base_url}/accounts/{account_id}/storage/kv):
#
#   PUT    /namespaces/{ns}/values/{key}     write a value
#   GET    /namespaces/{ns}/values/{key}     read a value (404 = missing)
#   DELETE /namespaces/{ns}/values/{key}     delete a value
#   GET    /namespaces/{ns}/keys?prefix=&limit=   list key names
#   GET    /namespaces/{ns}                  namespace metadata
#
# Every request carries "Authorization: Bearer <api_token>".
# =============================================================================
class CloudflareKVTransport(KVTransport):
    """KV transport for the Cloudflare Workers KV REST API.

    Args:
        config: KV connection settings.
        resource_type: Selects the namespace from the config when
            ``namespace_id`` is not given.
        namespace_id: Explicit namespace override.
        retry_policy: Backoff for transient failures. Defaults to RetryPolicy().
        client: Pre-built httpx.AsyncClient (e.g. with a MockTransport in
            tests). The transport only closes clients it created itself.
        logger: Optional structlog logger.

    Example:
        >>> async with CloudflareKVTransport(KVConfig(account_id="a", api_token="t")) as kv:
        ...     await kv.put("ml:abc:base", {"microlearning_id": "abc"})
    """

    def __init__(
        self,
        config: KVConfig,
        *,
        resource_type: ResourceType = ResourceType.MICROLEARNING,
        namespace_id: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(namespace_id or config.namespace_for(resource_type), logger)
        self._config = config
        self._retry_policy = retry_policy or RetryPolicy()

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.request_timeout_seconds),
        )

        base = config.api_base_url.rstrip("/")
        self._namespace_url = (
            f"{base}/accounts/{config.account_id}/storage/kv/namespaces/{self._namespace_id}"
        )
        self._headers = {"Authorization": f"Bearer {config.api_token or ''}"}

        if not config.account_id or not config.api_token:
            self._logger.warning(
                "kv_credentials_missing",
                has_account_id=bool(config.account_id),
                has_api_token=bool(config.api_token),
            )

        self._logger.debug("kv_transport_initialized", base_url=base)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CloudflareKVTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Raw Request Layer
    # =========================================================================

    def _value_url(self, key: str) -> str:
        return f"{self._namespace_url}/values/{quote(key, safe='')}"

    async def _send(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, retrying transient failures.

        Returns the final response for any status that is not transient,
        including 4xx. Raises KVTransportError once retries are exhausted.
        """

        async def attempt() -> httpx.Response:
            try:
                response = await self._client.request(
                    method,
                    url,
                    headers={**self._headers, **(headers or {})},
                    **kwargs,
                )
            except httpx.HTTPError as e:
                raise KVTransportError(
                    message=f"{operation} failed: {e or type(e).__name__}",
                    retryable=True,
                    details={"operation": operation},
                ) from e

            if response.status_code == 429 or response.status_code >= 500:
                raise KVTransportError(
                    message=f"{operation} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    retryable=True,
                    details={"operation": operation},
                )
            return response

        return await with_retry(
            attempt,
            operation,
            policy=self._retry_policy,
            logger=self._logger,
        )

    # =========================================================================
    # Primitives
    # =========================================================================
    # Each primitive has two failure arms: KVTransportError from _send (HTTP
    # status or network, already retried), and anything else (closed client,
    # undecodable body). Both end in a falsy result.

    def _log_failure(self, event: str, error: Exception, **context: Any) -> None:
        if isinstance(error, KVTransportError):
            self._logger.error(event, **context, **error.details, error_message=error.message)
        else:
            self._logger.error(
                event,
                **context,
                error_message=str(error),
                error_type=type(error).__name__,
            )

    async def put(self, key: str, value: Any) -> bool:
        try:
            body, content_type = encode_value(value)
        except (TypeError, ValueError, RecursionError) as e:
            self._logger.error("kv_put_unserializable", key=key, error_message=str(e))
            return False

        try:
            response = await self._send(
                "PUT",
                self._value_url(key),
                operation=f"KV PUT {key}",
                headers={"Content-Type": content_type},
                content=body.encode("utf-8"),
            )
            if not response.is_success:
                self._logger.error("kv_put_failed", key=key, status_code=response.status_code)
                return False
        except Exception as e:
            self._log_failure("kv_put_failed", e, key=key)
            return False

        self._logger.debug("kv_put", key=key, size=len(body))
        return True

    async def get(self, key: str, decode: ValueEncoding = ValueEncoding.AUTO) -> Any:
        try:
            response = await self._send("GET", self._value_url(key), operation=f"KV GET {key}")
            if response.status_code == 404:
                self._logger.debug("kv_key_not_found", key=key)
                return None
            if not response.is_success:
                self._logger.error("kv_get_failed", key=key, status_code=response.status_code)
                return None
            return decode_value(response.text, decode)
        except Exception as e:
            self._log_failure("kv_get_failed", e, key=key)
            return None

    async def delete(self, key: str) -> bool:
        try:
            response = await self._send(
                "DELETE", self._value_url(key), operation=f"KV DELETE {key}"
            )
            if not response.is_success:
                self._logger.error("kv_delete_failed", key=key, status_code=response.status_code)
                return False
        except Exception as e:
            self._log_failure("kv_delete_failed", e, key=key)
            return False

        self._logger.debug("kv_delete", key=key)
        return True

    async def list(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        params = {"prefix": prefix, "limit": limit or self._config.list_limit}
        try:
            response = await self._send(
                "GET",
                f"{self._namespace_url}/keys",
                operation=f"KV LIST {prefix}",
                params=params,
            )
            if not response.is_success:
                self._logger.error(
                    "kv_list_failed", prefix=prefix, status_code=response.status_code
                )
                return []
        except Exception as e:
            self._log_failure("kv_list_failed", e, prefix=prefix)
            return []

        try:
            return [str(entry["name"]) for entry in response.json()["result"]]
        except Exception as e:
            self._logger.error("kv_list_malformed", prefix=prefix, error_message=str(e))
            return []

    async def check_namespace(self) -> bool:
        try:
            response = await self._send(
                "GET", self._namespace_url, operation="KV NAMESPACE CHECK"
            )
        except Exception as e:
            self._log_failure("kv_namespace_check_failed", e)
            return False

        if not response.is_success:
            self._logger.error("kv_namespace_check_failed", status_code=response.status_code)
            return False
        return True


# =============================================================================
# In-Memory KV Transport
# =============================================================================
class InMemoryKVTransport(KVTransport):
    """Dict-based KV transport for development and testing.

    Values are kept in their encoded wire form, so decoding behaves exactly as
    it does against the real store. Not persistent and not shared between
    processes.

    Example:
        >>> kv = InMemoryKVTransport()
        >>> await kv.put("ml:abc:base", {"microlearning_id": "abc"})
        True
        >>> await kv.list("ml:")
        ['ml:abc:base']
    """

    def __init__(self, namespace_id: str = "in-memory", logger: Optional[Any] = None) -> None:
        super().__init__(namespace_id, logger)
        self._values: dict[str, str] = {}

    async def put(self, key: str, value: Any) -> bool:
        try:
            body, _ = encode_value(value)
        except (TypeError, ValueError, RecursionError) as e:
            self._logger.error("kv_put_unserializable", key=key, error_message=str(e))
            return False
        self._values[key] = body
        return True

    async def get(self, key: str, decode: ValueEncoding = ValueEncoding.AUTO) -> Any:
        body = self._values.get(key)
        if body is None:
            return None
        try:
            return decode_value(body, decode)
        except Exception as e:
            self._logger.error("kv_get_failed", key=key, error_message=str(e))
            return None

    async def delete(self, key: str) -> bool:
        # The REST API acknowledges deletes of missing keys too.
        self._values.pop(key, None)
        return True

    async def list(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        names = sorted(name for name in self._values if name.startswith(prefix))
        return names[:limit] if limit else names

    async def check_namespace(self) -> bool:
        return True
