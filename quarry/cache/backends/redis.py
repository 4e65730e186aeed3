"""
Quarry cache — Redis backend for result caches shared between processes.

Each value is stored together with its write time so ``max_age`` can be
applied by the reader. Redis errors degrade to cache misses: a cache outage
must not fail the query that would have been cached.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from ..core import CacheBackend, CacheStats
from ..faults import CacheConnectionFault, CacheSerializationFault
from ..serializers import get_serializer

logger = logging.getLogger("quarry.cache.redis")


class RedisBackend(CacheBackend):
    """
    Redis-backed cache using redis-py.

    Requires the ``redis`` package: pip install quarry[redis]
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "quarry:",
        serializer: str = "json",
        socket_timeout: float = 5.0,
        client: Any = None,
    ):
        self._url = url
        self._key_prefix = key_prefix
        self._serializer = get_serializer(serializer)
        self._stats = CacheStats(backend="redis")

        if client is None:
            try:
                import redis
            except ImportError:
                raise ImportError(
                    "Redis backend requires 'redis' package. "
                    "Install with: pip install quarry[redis]"
                )
            client = redis.Redis.from_url(url, socket_timeout=socket_timeout, decode_responses=False)
        self._redis = client

    @property
    def name(self) -> str:
        return "redis"

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def ping(self) -> None:
        """Verify the server is reachable."""
        import redis
        try:
            self._redis.ping()
        except redis.RedisError as e:
            raise CacheConnectionFault("redis", str(e)) from e
        logger.info(f"Redis cache connected: {self._url}")

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        import redis
        try:
            raw = self._redis.get(self._full_key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis GET error for key '{key}': {e}")
            self._stats.errors += 1
            return None

        if raw is None:
            self._stats.misses += 1
            return None

        try:
            stored_at, value = self._serializer.deserialize(raw)
        except (ValueError, TypeError) as e:
            self._stats.errors += 1
            raise CacheSerializationFault(key, "deserialize", str(e)) from e

        if max_age and time.time() - stored_at >= max_age:
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        import redis
        try:
            payload = self._serializer.serialize([time.time(), value])
        except (ValueError, TypeError) as e:
            self._stats.errors += 1
            raise CacheSerializationFault(key, "serialize", str(e)) from e

        try:
            if ttl and ttl > 0:
                self._redis.setex(self._full_key(key), ttl, payload)
            else:
                self._redis.set(self._full_key(key), payload)
        except redis.RedisError as e:
            logger.warning(f"Redis SET error for key '{key}': {e}")
            self._stats.errors += 1
            return
        self._stats.sets += 1

    def delete(self, key: str) -> bool:
        removed = bool(self._redis.delete(self._full_key(key)))
        if removed:
            self._stats.deletes += 1
        return removed

    def exists(self, key: str) -> bool:
        return bool(self._redis.exists(self._full_key(key)))

    def clear(self) -> int:
        """Delete every key under this backend's prefix."""
        count = 0
        for full_key in self._redis.scan_iter(match=f"{self._key_prefix}*"):
            count += self._redis.delete(full_key)
        return count

    def stats(self) -> CacheStats:
        return self._stats

    def close(self) -> None:
        self._redis.close()
