"""
Quarry cache backends.
"""

from .memory import MemoryBackend
from .null import NullBackend
from .database import DatabaseCacheBackend
from .redis import RedisBackend

__all__ = ["MemoryBackend", "NullBackend", "DatabaseCacheBackend", "RedisBackend"]
