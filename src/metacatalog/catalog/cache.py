"""Bounded LRU cache for materialized catalog objects.

Not thread-safe: the catalog that owns a cache is its only exclusion domain.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

MISSING = object()
"""Returned by ``LRUCache.get`` when a key is absent, so ``None`` can be cached."""


class LRUCache(Generic[K, V]):
    """Mapping with least-recently-used eviction once ``max_entries`` is reached."""

    def __init__(self, max_entries: int) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._entries: OrderedDict[K, V] = OrderedDict()
        self._max = max_entries
        self.hits = 0
        self.misses = 0

    def get(self, key: K) -> V | object:
        """Return the cached value or ``MISSING``; a hit refreshes recency."""
        try:
            value = self._entries[key]
        except KeyError:
            self.misses += 1
            return MISSING
        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def peek(self, key: K) -> V | object:
        """Like ``get`` but leaves recency and hit statistics untouched."""
        return self._entries.get(key, MISSING)

    def put(self, key: K, value: V) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        # Evict oldest if over capacity
        while len(self._entries) > self._max:
            self._entries.popitem(last=False)

    def pop(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
