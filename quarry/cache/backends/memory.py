"""
Quarry cache — in-memory LRU backend.

An OrderedDict gives O(1) get/set/delete and O(1) eviction of the least
recently used entry. A threading.Lock serialises access so one backend can
be shared by several Database instances.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Optional

from ..core import CacheBackend, CacheEntry, CacheStats

logger = logging.getLogger("quarry.cache.memory")


class MemoryBackend(CacheBackend):
    """
    In-memory cache backend with LRU eviction.

    Values are stored by reference; callers that hand out mutable values
    should copy them.
    """

    def __init__(self, max_size: int = 1000, default_ttl: Optional[int] = None):
        """
        Args:
            max_size: Maximum number of entries
            default_ttl: TTL in seconds applied when ``set`` gives none
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats(max_size=max_size, backend="memory")

    @property
    def name(self) -> str:
        return "memory:lru"

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            if not entry.is_fresh(max_age):
                del self._store[key]
                self._stats.misses += 1
                self._stats.evictions += 1
                return None

            entry.touch()
            self._store.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = ttl if ttl is not None else self._default_ttl
        expires_at = time.monotonic() + ttl if ttl else None

        with self._lock:
            self._store.pop(key, None)
            while len(self._store) >= self._max_size:
                evicted, _ = self._store.popitem(last=False)
                self._stats.evictions += 1
                logger.debug(f"Evicted cache key {evicted}")

            self._store[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
            self._stats.sets += 1
            self._stats.size = len(self._store)

    def delete(self, key: str) -> bool:
        with self._lock:
            if self._store.pop(key, None) is None:
                return False
            self._stats.deletes += 1
            self._stats.size = len(self._store)
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            entry = self._store.get(key)
            return entry is not None and not entry.is_expired

    def age(self, key: str) -> Optional[float]:
        """Seconds since the entry was stored, or None if absent."""
        with self._lock:
            entry = self._store.get(key)
            return entry.age if entry is not None else None

    def clear(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
            self._stats.size = 0
            return count

    def stats(self) -> CacheStats:
        self._stats.size = len(self._store)
        return self._stats

    def __len__(self) -> int:
        return len(self._store)
