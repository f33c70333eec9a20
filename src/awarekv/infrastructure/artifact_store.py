"""
awarekv.infrastructure.artifact_store - Multi-Part Artifact Persistence
=========================================================================

This module provides the ArtifactStore, which persists training artifacts as
several KV entries and reassembles them on read.

Architecture Context:
    The ArtifactStore sits between callers (workflows, route handlers) and a
    namespace-bound KVTransport. It is the only consumer of the key schema
    for content keys.

    ┌──────────────┐  save / get / update   ┌───────────────┐   put / get   ┌─────────────┐
    │   Callers    │ ─────────────────────→ │ ArtifactStore │ ────────────→ │ KVTransport │
    └──────────────┘                        │  ┌─────────┐  │               └─────────────┘
                                            │  │  cache  │  │
                                            │  └─────────┘  │
                                            └───────────────┘

Write Policy:
    A save writes every non-base part concurrently, then the base record.
    Every part is attempted even if an earlier one failed; the save reports
    True only if every attempted write succeeded. Nothing is rolled back, so a
    failed save can leave some parts written. The base record acts as the
    existence marker: a get returns None whenever it is missing, without
    reading any other part.

Read-Modify-Write:
    update_language_availability_atomic() serializes updates to the same
    artifact inside this process with a per-artifact asyncio.Lock. Writers in
    other processes are not coordinated; the last write wins.

Usage:
    >>> store = ArtifactStore(InMemoryKVTransport())
    >>> await store.save_microlearning(
    ...     "phishing-101",
    ...     {"microlearning": {"microlearning_metadata": {"title": "Phishing 101"}},
    ...      "language_content": {"scenes": []}},
    ...     language="en-GB",
    ... )
    True
    >>> await store.get_microlearning("phishing-101", language="en-gb")
    {'base': {...}, 'language': {'scenes': []}}
"""

from __future__ import annotations

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Optional, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError

from awarekv.core.enums import ResourceType
from awarekv.core.exceptions import ArtifactValidationError
from awarekv.core.models import MicrolearningPayload, PhishingPayload, SmishingPayload
from awarekv.infrastructure.content_cache import InMemoryContentCache
from awarekv.infrastructure.key_schema import (
    base_key,
    email_key,
    history_key,
    inbox_key,
    is_base_key,
    landing_key,
    language_key,
    normalize_language,
    normalize_languages,
    parse_key,
    resource_prefix,
    sms_key,
)
from awarekv.infrastructure.kv_transport import KVTransport

PayloadT = TypeVar("PayloadT", bound=BaseModel)

# Field stamped into every base record with the artifact's ID.
ID_FIELDS = {
    ResourceType.MICROLEARNING: "microlearning_id",
    ResourceType.PHISHING: "phishing_id",
    ResourceType.SMISHING: "smishing_id",
}

DEFAULT_DEPARTMENT = "all"
DEFAULT_SOURCE_LANGUAGE = "en-gb"


def _coerce_payload(model: type[PayloadT], payload: Union[PayloadT, dict[str, Any]]) -> PayloadT:
    """Accept a payload model or a plain dict; raise ArtifactValidationError otherwise."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ArtifactValidationError(
            message=f"Invalid {model.__name__}: {e.error_count()} error(s)",
            field="payload",
            details={"errors": e.errors(include_url=False)},
        ) from e


def _availability_container(base: dict[str, Any]) -> dict[str, Any]:
    """The dict holding language_availability: microlearning metadata, or the record itself."""
    metadata = base.get("microlearning_metadata")
    return metadata if isinstance(metadata, dict) else base


def _title_fields(record: dict[str, Any]) -> list[str]:
    candidates = [record.get("title"), record.get("name")]
    metadata = record.get("microlearning_metadata")
    if isinstance(metadata, dict):
        candidates.insert(0, metadata.get("title"))
    return [value for value in candidates if isinstance(value, str)]


class ArtifactStore:
    """Persists microlearning, phishing and smishing artifacts over one KV namespace.

    Args:
        transport: Namespace-bound transport every read and write goes through.
        cache: Optional read-through cache for base records. Writes through
            this store invalidate the cached copy.
        logger: Optional structlog logger.
    """

    def __init__(
        self,
        transport: KVTransport,
        *,
        cache: Optional[InMemoryContentCache] = None,
        logger: Optional[Any] = None,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: Counter[str] = Counter()
        self._logger = (logger or structlog.get_logger()).bind(
            component="artifact_store",
            namespace_id=transport.namespace_id,
        )

    @property
    def transport(self) -> KVTransport:
        return self._transport

    @property
    def namespace_id(self) -> str:
        return self._transport.namespace_id

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    async def _read_base(self, key: str, *, use_cache: bool = True) -> Any:
        if use_cache and self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        record = await self._transport.get(key)
        if record is not None and self._cache is not None:
            self._cache.put(key, record)
        return record

    @asynccontextmanager
    async def _artifact_lock(self, key: str) -> AsyncIterator[None]:
        """Hold the per-artifact lock for ``key``.

        The lock is dropped from the map once no task holds or waits for it,
        so the map only ever contains artifacts with an update in flight.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_holders[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[key] -= 1
            if not self._lock_holders[key]:
                del self._lock_holders[key]
                del self._locks[key]

    async def _write(self, key: str, value: Any) -> bool:
        if self._cache is not None:
            self._cache.invalidate(key)
        return await self._transport.put(key, value)

    async def _save_parts(
        self,
        resource_type: ResourceType,
        resource_id: str,
        base: tuple[str, dict[str, Any]],
        parts: list[tuple[str, Any]],
    ) -> bool:
        """Write non-base parts concurrently, then the base record. Attempt all."""
        results = await asyncio.gather(*(self._write(key, value) for key, value in parts))
        base_ok = await self._write(*base)

        failed = [key for (key, _), ok in zip(parts, results) if not ok]
        if not base_ok:
            failed.append(base[0])

        if failed:
            self._logger.warning(
                "artifact_save_partial",
                resource_type=resource_type.value,
                resource_id=resource_id,
                failed_keys=failed,
                attempted=len(parts) + 1,
            )
            return False

        self._logger.info(
            "artifact_saved",
            resource_type=resource_type.value,
            resource_id=resource_id,
            part_count=len(parts) + 1,
        )
        return True

    async def _get_parts(
        self,
        resource_type: ResourceType,
        resource_id: str,
        parts: dict[str, str],
    ) -> Optional[dict[str, Any]]:
        """Read the base record, then the named parts concurrently. Missing parts are omitted."""
        base = await self._read_base(base_key(resource_type, resource_id))
        if base is None:
            self._logger.debug(
                "artifact_not_found",
                resource_type=resource_type.value,
                resource_id=resource_id,
            )
            return None

        result: dict[str, Any] = {"base": base}
        names = list(parts)
        values = await asyncio.gather(*(self._transport.get(parts[name]) for name in names))
        for name, value in zip(names, values):
            if value is not None:
                result[name] = value
        return result

    # =========================================================================
    # Microlearning
    # =========================================================================

    async def save_microlearning(
        self,
        microlearning_id: str,
        payload: Union[MicrolearningPayload, dict[str, Any]],
        language: str,
        department: str = DEFAULT_DEPARTMENT,
    ) -> bool:
        """Save a microlearning module: base, language content and optional inbox.

        The base record is stamped with ``microlearning_id``.

        Returns:
            True only if every attempted write succeeded.

        Raises:
            ArtifactValidationError: If the ID, language, department or
                payload is malformed. Raised before any write.
        """
        payload = _coerce_payload(MicrolearningPayload, payload)
        base = (
            base_key(ResourceType.MICROLEARNING, microlearning_id),
            {**payload.microlearning, ID_FIELDS[ResourceType.MICROLEARNING]: microlearning_id},
        )
        parts = [(language_key(microlearning_id, language), payload.language_content)]
        if payload.inbox_content is not None:
            parts.append(
                (inbox_key(microlearning_id, department, language), payload.inbox_content)
            )

        return await self._save_parts(ResourceType.MICROLEARNING, microlearning_id, base, parts)

    async def get_microlearning(
        self,
        microlearning_id: str,
        language: Optional[str] = None,
        department: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Read a microlearning module.

        Returns:
            None if the base record is missing. Otherwise a dict with "base",
            plus "language" when ``language`` is given and stored, plus
            "inbox" when ``language`` and ``department`` are given and stored.
        """
        parts: dict[str, str] = {}
        if language:
            parts["language"] = language_key(microlearning_id, language)
            if department:
                parts["inbox"] = inbox_key(microlearning_id, department, language)
        return await self._get_parts(ResourceType.MICROLEARNING, microlearning_id, parts)

    async def store_language_content(
        self,
        microlearning_id: str,
        language: str,
        content: Any,
    ) -> bool:
        key = language_key(microlearning_id, language)
        success = await self._write(key, content)
        if not success:
            self._logger.error("language_content_store_failed", key=key)
        return success

    async def store_inbox_content(
        self,
        microlearning_id: str,
        department: str,
        language: str,
        payload: Any,
    ) -> bool:
        key = inbox_key(microlearning_id, department, language)
        success = await self._write(key, payload)
        if not success:
            self._logger.error("inbox_content_store_failed", key=key)
        return success

    async def get_inbox_content(
        self,
        microlearning_id: str,
        department: str,
        language: str,
        fallback_language: Optional[str] = DEFAULT_SOURCE_LANGUAGE,
    ) -> Any:
        """Read department inbox content, falling back to the source language.

        Args:
            fallback_language: Language tried when the requested one has no
                inbox content. None disables the fallback.
        """
        content = await self._transport.get(inbox_key(microlearning_id, department, language))
        if content is not None or not fallback_language:
            return content
        if normalize_language(fallback_language) == normalize_language(language):
            return None

        self._logger.info(
            "inbox_content_fallback",
            microlearning_id=microlearning_id,
            department=department,
            language=language,
            fallback_language=fallback_language,
        )
        return await self._transport.get(
            inbox_key(microlearning_id, department, fallback_language)
        )

    async def update_microlearning(self, microlearning: dict[str, Any]) -> bool:
        """Overwrite a microlearning base record.

        Raises:
            ArtifactValidationError: If the record has no ``microlearning_id``.
        """
        microlearning_id = microlearning.get(ID_FIELDS[ResourceType.MICROLEARNING])
        if not microlearning_id:
            raise ArtifactValidationError(
                message="Microlearning ID is required",
                field="microlearning_id",
            )

        key = base_key(ResourceType.MICROLEARNING, microlearning_id)
        async with self._artifact_lock(key):
            success = await self._write(key, microlearning)
        if not success:
            self._logger.error("microlearning_update_failed", key=key)
        return success

    async def record_history(
        self,
        microlearning_id: str,
        version: Union[str, int],
        changes: Any,
        action: str = "updated",
    ) -> bool:
        """Write a version history entry under ``ml:<id>:history:<version>``."""
        entry = {
            "action": action,
            "version": version,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "changes": changes,
        }
        return await self._write(history_key(microlearning_id, version), entry)

    # =========================================================================
    # Phishing and Smishing
    # =========================================================================

    async def save_phishing(
        self,
        phishing_id: str,
        payload: Union[PhishingPayload, dict[str, Any]],
        language: str,
    ) -> bool:
        """Save a phishing simulation: base, optional email, optional landing page.

        Returns:
            True only if every attempted write succeeded.

        Raises:
            ArtifactValidationError: If the ID, language or payload is malformed.
        """
        payload = _coerce_payload(PhishingPayload, payload)
        base = (
            base_key(ResourceType.PHISHING, phishing_id),
            {**payload.base, ID_FIELDS[ResourceType.PHISHING]: phishing_id},
        )
        parts: list[tuple[str, Any]] = []
        if payload.email is not None:
            parts.append((email_key(phishing_id, language), payload.email))
        if payload.landing_page is not None:
            parts.append(
                (landing_key(ResourceType.PHISHING, phishing_id, language), payload.landing_page)
            )

        return await self._save_parts(ResourceType.PHISHING, phishing_id, base, parts)

    async def get_phishing(self, phishing_id: str, language: str) -> Optional[dict[str, Any]]:
        """Read a phishing simulation: "base", plus "email" and "landing_page" when stored."""
        return await self._get_parts(
            ResourceType.PHISHING,
            phishing_id,
            {
                "email": email_key(phishing_id, language),
                "landing_page": landing_key(ResourceType.PHISHING, phishing_id, language),
            },
        )

    async def save_smishing(
        self,
        smishing_id: str,
        payload: Union[SmishingPayload, dict[str, Any]],
        language: str,
    ) -> bool:
        """Save a smishing simulation: base, optional SMS, optional landing page."""
        payload = _coerce_payload(SmishingPayload, payload)
        base = (
            base_key(ResourceType.SMISHING, smishing_id),
            {**payload.base, ID_FIELDS[ResourceType.SMISHING]: smishing_id},
        )
        parts: list[tuple[str, Any]] = []
        if payload.sms is not None:
            parts.append((sms_key(smishing_id, language), payload.sms))
        if payload.landing_page is not None:
            parts.append(
                (landing_key(ResourceType.SMISHING, smishing_id, language), payload.landing_page)
            )

        return await self._save_parts(ResourceType.SMISHING, smishing_id, base, parts)

    async def get_smishing(self, smishing_id: str, language: str) -> Optional[dict[str, Any]]:
        return await self._get_parts(
            ResourceType.SMISHING,
            smishing_id,
            {
                "sms": sms_key(smishing_id, language),
                "landing_page": landing_key(ResourceType.SMISHING, smishing_id, language),
            },
        )

    # =========================================================================
    # Language Availability
    # =========================================================================

    async def update_language_availability_atomic(
        self,
        resource_id: str,
        languages: Union[str, Iterable[str]],
        resource_type: ResourceType = ResourceType.MICROLEARNING,
    ) -> bool:
        """Add language codes to an artifact's language_availability list.

        Reads the base record (bypassing the cache), unions the stored list
        with ``languages``, lowercases and de-duplicates the result keeping
        first-seen order, and writes the base record back. For microlearning
        records the list lives in ``microlearning_metadata`` when that is a
        dict; otherwise it is a top-level field.

        Args:
            resource_id: The artifact's ID.
            languages: One language code or several.
            resource_type: Artifact family. Defaults to microlearning.

        Returns:
            False if the base record is missing, is not an object, or the
            write failed. True otherwise.

        Raises:
            ArtifactValidationError: If a new language code is malformed.
        """
        if isinstance(languages, str):
            languages = [languages]
        new_codes = normalize_languages(languages)
        key = base_key(resource_type, resource_id)

        async with self._artifact_lock(key):
            base = await self._read_base(key, use_cache=False)
            if base is None:
                self._logger.warning("language_availability_base_missing", key=key)
                return False
            if not isinstance(base, dict):
                self._logger.error("language_availability_base_malformed", key=key)
                return False

            container = _availability_container(base)
            current = container.get("language_availability")
            existing = [
                code for code in (current if isinstance(current, list) else [])
                if isinstance(code, str) and code.strip() and ":" not in code
            ]
            container["language_availability"] = normalize_languages([*existing, *new_codes])

            success = await self._write(key, base)

        if success:
            self._logger.info(
                "language_availability_updated",
                key=key,
                languages=container["language_availability"],
            )
        else:
            self._logger.error("language_availability_update_failed", key=key)
        return success

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        resource_type: ResourceType,
        term: str,
        *,
        limit: int = 100,
        max_scan: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Find base records whose title-like field or ID contains ``term``.

        Lists up to ``limit`` keys under the resource prefix, keeps the base
        keys, fetches those concurrently and filters client-side with a
        case-insensitive substring match. This scans the namespace and is
        meant for small catalogs.

        Args:
            resource_type: Artifact family to search.
            term: Substring to look for.
            limit: Maximum number of keys listed.
            max_scan: Maximum number of base records fetched. None fetches all.

        Returns:
            Matching base records, in key order.
        """
        resource_type = ResourceType(resource_type)
        keys = await self._transport.list(resource_prefix(resource_type), limit=limit)
        base_keys = [key for key in keys if is_base_key(key)]
        if max_scan is not None:
            base_keys = base_keys[:max_scan]

        records = await asyncio.gather(*(self._read_base(key) for key in base_keys))
        needle = term.lower()
        id_field = ID_FIELDS[resource_type]

        matches: list[dict[str, Any]] = []
        for key, record in zip(base_keys, records):
            if not isinstance(record, dict):
                continue
            haystack = [*_title_fields(record), parse_key(key).resource_id]
            if isinstance(record.get(id_field), str):
                haystack.append(record[id_field])
            if any(needle in value.lower() for value in haystack):
                matches.append(record)

        self._logger.debug(
            "artifact_search",
            resource_type=resource_type.value,
            term=term,
            scanned=len(base_keys),
            matched=len(matches),
        )
        return matches

    async def search_microlearnings(self, term: str) -> list[dict[str, Any]]:
        return await self.search(ResourceType.MICROLEARNING, term)

    # =========================================================================
    # Namespace
    # =========================================================================

    async def check_namespace(self) -> bool:
        return await self._transport.check_namespace()
