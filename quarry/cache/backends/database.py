"""
Quarry cache — database table backend.

Stores entries in a ``cache`` table of the database itself:

    id         CHAR(40)  sha1 of the cache key
    data       BLOB      serialized value
    timestamp  INTEGER   unix time of the write

Lookups never go through the result cache, so the backend can serve the
same Database it caches for.
"""

from __future__ import annotations

import hashlib
import pickle
import logging
import time
from typing import TYPE_CHECKING, Any, Optional

from ..core import CacheBackend, CacheStats
from ..faults import CacheSerializationFault
from ..serializers import get_serializer

if TYPE_CHECKING:
    from ...db.engine import Database

logger = logging.getLogger("quarry.cache.database")

_BLOB_TYPES = {"mysql": "LONGBLOB", "postgresql": "BYTEA"}


class DatabaseCacheBackend(CacheBackend):
    """
    Cache backed by a table.

    Args:
        db: Database holding the cache table
        table: table name
        serializer: "pickle" (default, keeps row value types), "json" or "msgpack"
    """

    def __init__(self, db: "Database", table: str = "cache", serializer: str = "pickle"):
        self.db = db
        self.table = table
        self._serializer = get_serializer(serializer)
        self._stats = CacheStats(backend="database")

    @property
    def name(self) -> str:
        return f"database:{self.table}"

    @staticmethod
    def _id(key: str) -> str:
        return hashlib.sha1(key.encode("utf-8")).hexdigest()

    def create_table(self) -> None:
        """Create the cache table if it does not exist yet."""
        blob = _BLOB_TYPES.get(self.db.dialect.name, "BLOB")
        self.db.exec(
            f'CREATE TABLE IF NOT EXISTS "{self.table}" ('
            f'"id" CHAR(40) NOT NULL PRIMARY KEY, '
            f'"data" {blob} NOT NULL, '
            f'"timestamp" INTEGER NOT NULL)'
        )

    def get(self, key: str, max_age: Optional[float] = None) -> Optional[Any]:
        sql = f'SELECT "data" FROM "{self.table}" WHERE "id" = ?'
        params: list = [self._id(key)]
        if max_age:
            sql += ' AND "timestamp" > ?'
            params.append(int(time.time() - max_age))

        row = self.db.fetch_one(sql, params, as_object=False, cache=0)
        if row is None:
            self._stats.misses += 1
            return None

        try:
            value = self._serializer.deserialize(row["data"])
        except (ValueError, TypeError, EOFError, pickle.UnpicklingError) as e:
            self._stats.errors += 1
            raise CacheSerializationFault(key, "deserialize", str(e)) from e
        self._stats.hits += 1
        return value

    def age(self, key: str) -> Optional[int]:
        """Unix timestamp of the stored entry, or None."""
        row = self.db.fetch_one(
            f'SELECT "timestamp" FROM "{self.table}" WHERE "id" = ?',
            [self._id(key)],
            as_object=False,
            cache=0,
        )
        return row["timestamp"] if row else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        # TTL is not stored; readers apply max_age against the timestamp
        try:
            data = self._serializer.serialize(value)
        except (ValueError, TypeError) as e:
            self._stats.errors += 1
            raise CacheSerializationFault(key, "serialize", str(e)) from e

        with self.db.transaction():
            self.delete(key)
            self.db.insert(self.table, {"id": self._id(key), "data": data, "timestamp": int(time.time())})
        self._stats.sets += 1

    def delete(self, key: str) -> bool:
        removed = self.db.delete(f'DELETE FROM "{self.table}" WHERE "id" = ?', [self._id(key)])
        if removed:
            self._stats.deletes += 1
        return bool(removed)

    def exists(self, key: str) -> bool:
        return bool(self.db.count(
            f'SELECT COUNT(*) FROM "{self.table}" WHERE "id" = ?',
            [self._id(key)],
            cache=0,
        ))

    def clear(self) -> int:
        return self.db.delete(f'DELETE FROM "{self.table}" WHERE 1 = 1')

    def stats(self) -> CacheStats:
        return self._stats
