"""
Quarry cache — Null (no-op) backend.

Used when result caching should be disabled without changing code.
"""

from __future__ import annotations

from typing import Any, Optional

from ..core import CacheBackend, CacheStats


class NullBackend(CacheBackend):
    """No-op cache backend — every lookup misses."""

    def __init__(self):
        self._stats = CacheStats(backend="null")

    @property
    def name(self) -> str:
        return "null"

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        self._stats.misses += 1
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._stats.sets += 1

    def delete(self, key: str) -> bool:
        return False

    def exists(self, key: str) -> bool:
        return False

    def clear(self) -> int:
        return 0

    def stats(self) -> CacheStats:
        return self._stats
