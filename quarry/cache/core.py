"""
Quarry result cache — core types and the backend contract.

A backend stores query results under an opaque key. ``get`` takes an
optional ``max_age`` in seconds so the caller, not the writer, decides how
stale a result may be.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# ============================================================================
# Cache Entry
# ============================================================================

@dataclass(slots=True)
class CacheEntry:
    """
    Single cache entry with metadata.

    Compact, slotted dataclass for minimal memory overhead.
    """
    key: str
    value: Any
    created_at: float = field(default_factory=time.monotonic)
    expires_at: Optional[float] = None
    access_count: int = 0

    @property
    def is_expired(self) -> bool:
        """Check if entry has passed its TTL."""
        if self.expires_at is None:
            return False
        return time.monotonic() >= self.expires_at

    @property
    def age(self) -> float:
        """Age of entry in seconds since creation."""
        return time.monotonic() - self.created_at

    def is_fresh(self, max_age: Optional[float] = None) -> bool:
        if self.is_expired:
            return False
        return not max_age or self.age < max_age

    def touch(self) -> None:
        self.access_count += 1

    def __repr__(self) -> str:
        return f"<CacheEntry key={self.key!r} hits={self.access_count} age={self.age:.1f}s>"


# ============================================================================
# Cache Stats
# ============================================================================

@dataclass
class CacheStats:
    """Aggregate cache statistics for observability."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    errors: int = 0
    size: int = 0
    max_size: int = 0
    backend: str = "unknown"

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits / total) * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "errors": self.errors,
            "hit_rate": round(self.hit_rate, 2),
            "size": self.size,
            "max_size": self.max_size,
            "backend": self.backend,
        }


# ============================================================================
# Backend Contract
# ============================================================================

class CacheBackend(ABC):
    """
    Abstract result cache backend.

    All operations are synchronous. A miss is reported as ``None``; backends
    never raise for a missing key.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier for logs and stats."""

    @abstractmethod
    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        """Return the stored value, or None when missing or older than ``max_age``."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns whether something was removed."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def clear(self) -> int:
        """Remove everything. Returns the number of entries removed when known."""

    @abstractmethod
    def stats(self) -> CacheStats:
        ...

    def close(self) -> None:
        """Release backend resources."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
