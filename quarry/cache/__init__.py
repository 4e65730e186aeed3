"""
Quarry result cache — backends that hold SELECT results between executions.
"""

from typing import Any

from .core import CacheBackend, CacheEntry, CacheStats
from .faults import CacheFault, CacheConfigFault, CacheConnectionFault, CacheSerializationFault
from .key_builder import ResultKeyBuilder, result_key
from .serializers import get_serializer
from .backends import DatabaseCacheBackend, MemoryBackend, NullBackend, RedisBackend

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheStats",
    "CacheFault",
    "CacheConfigFault",
    "CacheConnectionFault",
    "CacheSerializationFault",
    "ResultKeyBuilder",
    "result_key",
    "get_serializer",
    "MemoryBackend",
    "NullBackend",
    "DatabaseCacheBackend",
    "RedisBackend",
    "create_backend",
]


def create_backend(name: str = "memory", db: Any = None, **options: Any) -> CacheBackend:
    """
    Build a cache backend by name.

    Args:
        name: "memory", "null", "database" or "redis"
        db: Database instance, required by the "database" backend
        **options: backend constructor arguments
    """
    if name == "memory":
        return MemoryBackend(**options)
    if name == "null":
        return NullBackend()
    if name == "database":
        if db is None:
            raise CacheConfigFault("the database backend needs a Database instance")
        return DatabaseCacheBackend(db, **options)
    if name == "redis":
        return RedisBackend(**options)
    raise CacheConfigFault(f"unknown cache backend '{name}'", metadata={"backend": name})
