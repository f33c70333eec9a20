"""
awarekv.infrastructure.content_cache - Process-Local Content Cache
====================================================================

Base records are read on every get, update and search, so the artifact store
keeps a read-through copy of them in memory. Entries are keyed by their KV key
and dropped whenever the store writes that key.

The cache is per process: two workers can hold different copies of the same
record until one of them writes it. It is an optimization, never a source of
truth.

The health monitor reports its size through get_cache_stats().
"""

from __future__ import annotations

import copy
from collections import OrderedDict
from typing import Any, Optional

from awarekv.core.models import CacheStats


class InMemoryContentCache:
    """LRU cache of decoded base records.

    Values are deep-copied on the way in and out, so callers can mutate what
    they get back without corrupting the cached copy.

    Args:
        estimated_item_size_kb: Assumed size of one entry, used for stats.
        max_items: Evict least recently used entries beyond this count.
            None means unbounded.

    Example:
        >>> cache = InMemoryContentCache()
        >>> cache.put("ml:abc:base", {"microlearning_id": "abc"})
        >>> cache.get_cache_stats().count
        1
    """

    def __init__(
        self,
        estimated_item_size_kb: float = 50.0,
        max_items: Optional[int] = None,
    ) -> None:
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._estimated_item_size_kb = estimated_item_size_kb
        self._max_items = max_items

    def get(self, key: str) -> Optional[Any]:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return copy.deepcopy(self._entries[key])

    def put(self, key: str, value: Any) -> None:
        if value is None:
            self.invalidate(key)
            return
        self._entries[key] = copy.deepcopy(value)
        self._entries.move_to_end(key)
        if self._max_items is not None:
            while len(self._entries) > self._max_items:
                self._entries.popitem(last=False)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_cache_stats(self) -> CacheStats:
        """Entry count and estimated footprint (count × item size, in MB)."""
        count = len(self._entries)
        return CacheStats(
            count=count,
            estimated_size_mb=round(count * self._estimated_item_size_kb / 1024, 2),
        )
