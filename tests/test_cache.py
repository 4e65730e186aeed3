"""
Test suite for the Quarry result cache.

Covers:
- CacheEntry / CacheStats
- MemoryBackend: LRU eviction, max_age, TTL, stats
- NullBackend: no-op semantics
- DatabaseCacheBackend: table storage, max_age, use as a Database result cache
- RedisBackend: against an in-process fake client
- Serializers: JSON, Pickle
- Result keys
- create_backend() factory and cache faults
"""

from __future__ import annotations

import datetime
import time
from decimal import Decimal

import pytest

# ── Core types ───────────────────────────────────────────────────────────────
from quarry.cache.core import CacheEntry, CacheStats

# ── Backends ─────────────────────────────────────────────────────────────────
from quarry.cache.backends.database import DatabaseCacheBackend
from quarry.cache.backends.memory import MemoryBackend
from quarry.cache.backends.null import NullBackend

# ── Serializers / keys ───────────────────────────────────────────────────────
from quarry.cache.key_builder import ResultKeyBuilder, result_key
from quarry.cache.serializers import (
    JsonCacheSerializer,
    PickleCacheSerializer,
    get_serializer,
)

# ── Factory / faults ─────────────────────────────────────────────────────────
from quarry.cache import create_backend
from quarry.cache.faults import CacheConfigFault, CacheFault, CacheSerializationFault
from quarry.db.engine import Database
from quarry.faults.core import Fault, FaultDomain


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def memory_backend():
    return MemoryBackend(max_size=3)


@pytest.fixture
def table_cache(db):
    backend = DatabaseCacheBackend(db)
    backend.create_table()
    db.queries.clear()
    return backend


def age_entry(backend: MemoryBackend, key: str, seconds: float) -> None:
    backend._store[key].created_at -= seconds


# ============================================================================
# CacheEntry / CacheStats
# ============================================================================


class TestCacheEntry:
    def test_entry_not_expired(self):
        entry = CacheEntry(key="k", value=1, expires_at=time.monotonic() + 60)
        assert not entry.is_expired
        assert entry.is_fresh()

    def test_entry_expired(self):
        entry = CacheEntry(key="k", value=1, expires_at=time.monotonic() - 1)
        assert entry.is_expired
        assert not entry.is_fresh()

    def test_entry_no_ttl(self):
        assert not CacheEntry(key="k", value=1).is_expired

    def test_max_age(self):
        entry = CacheEntry(key="k", value=1, created_at=time.monotonic() - 30)
        assert entry.is_fresh(60)
        assert not entry.is_fresh(10)
        assert entry.is_fresh(None)

    def test_touch(self):
        entry = CacheEntry(key="k", value=1)
        entry.touch()
        entry.touch()
        assert entry.access_count == 2


class TestCacheStats:
    def test_hit_rate_zero_ops(self):
        assert CacheStats().hit_rate == 0.0

    def test_hit_rate_calculation(self):
        assert CacheStats(hits=3, misses=1).hit_rate == 75.0

    def test_to_dict(self):
        data = CacheStats(hits=1, misses=2, backend="memory").to_dict()
        assert data["hit_rate"] == 33.33
        assert data["backend"] == "memory"


# ============================================================================
# MemoryBackend
# ============================================================================


class TestMemoryBackend:
    def test_set_get(self, memory_backend):
        memory_backend.set("k", [{"id": 1}])
        assert memory_backend.get("k") == [{"id": 1}]
        assert memory_backend.exists("k")

    def test_get_miss(self, memory_backend):
        assert memory_backend.get("nope") is None
        assert memory_backend.stats().misses == 1

    def test_delete(self, memory_backend):
        memory_backend.set("k", 1)
        assert memory_backend.delete("k") is True
        assert memory_backend.delete("k") is False
        assert memory_backend.get("k") is None

    def test_lru_eviction(self, memory_backend):
        for key in ("a", "b", "c"):
            memory_backend.set(key, key)
        memory_backend.get("a")
        memory_backend.set("d", "d")

        assert memory_backend.get("b") is None
        assert memory_backend.get("a") == "a"
        assert len(memory_backend) == 3
        assert memory_backend.stats().evictions == 1

    def test_max_age(self, memory_backend):
        memory_backend.set("k", 1)
        age_entry(memory_backend, "k", 120)
        assert memory_backend.get("k", max_age=300) == 1
        assert memory_backend.get("k", max_age=60) is None
        assert not memory_backend.exists("k")

    def test_ttl(self, memory_backend):
        memory_backend.set("k", 1, ttl=60)
        memory_backend._store["k"].expires_at = time.monotonic() - 1
        assert memory_backend.get("k") is None

    def test_default_ttl(self):
        backend = MemoryBackend(default_ttl=30)
        backend.set("k", 1)
        assert backend._store["k"].expires_at is not None

    def test_age(self, memory_backend):
        assert memory_backend.age("k") is None
        memory_backend.set("k", 1)
        age_entry(memory_backend, "k", 5)
        assert memory_backend.age("k") >= 5

    def test_clear(self, memory_backend):
        memory_backend.set("a", 1)
        memory_backend.set("b", 2)
        assert memory_backend.clear() == 2
        assert len(memory_backend) == 0

    def test_stats(self, memory_backend):
        memory_backend.set("k", 1)
        memory_backend.get("k")
        memory_backend.get("x")
        stats = memory_backend.stats()
        assert (stats.hits, stats.misses, stats.sets, stats.size) == (1, 1, 1, 1)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            MemoryBackend(max_size=0)


# ============================================================================
# NullBackend
# ============================================================================


class TestNullBackend:
    def test_always_misses(self):
        backend = NullBackend()
        backend.set("k", 1)
        assert backend.get("k") is None
        assert not backend.exists("k")
        assert backend.delete("k") is False
        assert backend.clear() == 0
        assert backend.stats().sets == 1


# ============================================================================
# DatabaseCacheBackend
# ============================================================================


class TestDatabaseCacheBackend:
    def test_create_table(self, db, table_cache):
        assert "cache" in db.list_tables()
        table_cache.create_table()

    def test_set_get(self, table_cache):
        rows = [{"id": 1, "price": Decimal("9.50"), "day": datetime.date(2024, 1, 2)}]
        table_cache.set("k", rows)
        assert table_cache.get("k") == rows
        assert table_cache.exists("k")
        assert table_cache.stats().hits == 1

    def test_miss(self, table_cache):
        assert table_cache.get("nope") is None
        assert not table_cache.exists("nope")
        assert table_cache.age("nope") is None

    def test_overwrite(self, db, table_cache):
        table_cache.set("k", 1)
        table_cache.set("k", 2)
        assert table_cache.get("k") == 2
        assert db.count('SELECT COUNT(*) FROM "cache"', cache=0) == 1

    def test_age_and_max_age(self, db, table_cache):
        table_cache.set("k", 1)
        assert abs(table_cache.age("k") - time.time()) < 5

        db.exec('UPDATE "cache" SET "timestamp" = "timestamp" - 120')
        assert table_cache.get("k", max_age=300) == 1
        assert table_cache.get("k", max_age=60) is None

    def test_delete_and_clear(self, table_cache):
        table_cache.set("a", 1)
        table_cache.set("b", 2)
        assert table_cache.delete("a") is True
        assert table_cache.delete("a") is False
        assert table_cache.clear() == 1

    def test_keys_are_hashed(self, db, table_cache):
        table_cache.set("some key", 1)
        row = db.fetch_one('SELECT "id" FROM "cache"', as_object=False, cache=0)
        assert len(row["id"]) == 40

    def test_corrupt_data(self, db, table_cache):
        table_cache.set("k", 1)
        db.exec("UPDATE \"cache\" SET \"data\" = X'00'")
        with pytest.raises(CacheSerializationFault):
            table_cache.get("k")

    def test_as_result_cache(self):
        database = Database("cached", {
            "url": "sqlite:///:memory:",
            "cache_results": 60,
            "cache_backend": "database",
            "cache_options": {"table": "query_cache"},
        })
        assert isinstance(database.cache, DatabaseCacheBackend)
        database.cache.create_table()
        database.exec('CREATE TABLE "dorm" ("id" INTEGER PRIMARY KEY, "name" TEXT)')
        database.insert("dorm", {"id": 1, "name": "North"})

        sql = 'SELECT * FROM "dorm" WHERE "id" = ?'
        assert not database.query(sql, [1]).from_cache
        second = database.query(sql, [1])
        assert second.from_cache
        assert second.results() == [{"id": 1, "name": "North"}]
        assert database.cache.exists(result_key(sql, [1]))
        database.disconnect()


# ============================================================================
# RedisBackend
# ============================================================================


class FakeRedis:
    """Just enough of redis.Redis for the backend."""

    def __init__(self, fail: bool = False):
        self.store = {}
        self.ttls = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            import redis
            raise redis.ConnectionError("connection refused")

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        return self.store.get(key)

    def set(self, key, value):
        self._check()
        self.store[key] = value

    def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def exists(self, key):
        return int(key in self.store)

    def scan_iter(self, match):
        prefix = match.rstrip("*")
        return [k for k in list(self.store) if k.startswith(prefix)]

    def close(self):
        pass


class TestRedisBackend:
    @pytest.fixture(autouse=True)
    def _redis(self):
        pytest.importorskip("redis")

    def _backend(self, **kwargs):
        from quarry.cache.backends.redis import RedisBackend
        return RedisBackend(client=FakeRedis(**kwargs))

    def test_set_get(self):
        backend = self._backend()
        backend.set("k", [{"id": 1}])
        assert backend.get("k") == [{"id": 1}]
        assert "quarry:k" in backend._redis.store

    def test_ttl_uses_setex(self):
        backend = self._backend()
        backend.set("k", 1, ttl=30)
        assert backend._redis.ttls == {"quarry:k": 30}

    def test_max_age(self, monkeypatch):
        backend = self._backend()
        backend.set("k", 1)
        later = time.time() + 120
        monkeypatch.setattr(time, "time", lambda: later)
        assert backend.get("k", max_age=300) == 1
        assert backend.get("k", max_age=60) is None

    def test_errors_degrade_to_misses(self):
        backend = self._backend(fail=True)
        backend.set("k", 1)
        assert backend.get("k") is None
        assert backend.stats().errors == 2

    def test_ping_failure(self):
        from quarry.cache.faults import CacheConnectionFault
        with pytest.raises(CacheConnectionFault):
            self._backend(fail=True).ping()

    def test_clear_only_touches_prefix(self):
        backend = self._backend()
        backend.set("a", 1)
        backend.set("b", 2)
        backend._redis.store["other:c"] = b"x"
        assert backend.clear() == 2
        assert list(backend._redis.store) == ["other:c"]


# ============================================================================
# Serializers
# ============================================================================


class TestSerializers:
    def test_json_round_trip(self):
        s = JsonCacheSerializer()
        assert s.deserialize(s.serialize([{"id": 1, "name": "Ann"}])) == [{"id": 1, "name": "Ann"}]

    def test_json_stringifies_dates(self):
        s = JsonCacheSerializer()
        assert s.deserialize(s.serialize({"day": datetime.date(2024, 1, 2)})) == {"day": "2024-01-02"}

    def test_pickle_keeps_types(self):
        s = PickleCacheSerializer()
        value = {"price": Decimal("1.10"), "day": datetime.date(2024, 1, 2)}
        assert s.deserialize(s.serialize(value)) == value

    def test_get_serializer(self):
        assert isinstance(get_serializer("json"), JsonCacheSerializer)
        assert isinstance(get_serializer("pickle"), PickleCacheSerializer)
        with pytest.raises(ValueError):
            get_serializer("yaml")


# ============================================================================
# Result keys
# ============================================================================


class TestResultKeys:
    def test_stable(self):
        assert result_key("SELECT 1", [1]) == result_key("SELECT 1", [1])
        assert len(result_key("SELECT 1")) == 40

    def test_params_and_types_matter(self):
        assert result_key("SELECT ?", [1]) != result_key("SELECT ?", [2])
        assert result_key("SELECT ?", [1]) != result_key("SELECT ?", ["1"])
        assert result_key("SELECT ?", [1]) != result_key("SELECT  ?", [1])

    def test_prefix(self):
        assert ResultKeyBuilder("q:").build("SELECT 1").startswith("q:")


# ============================================================================
# Factory / faults
# ============================================================================


class TestCreateBackend:
    def test_memory(self):
        backend = create_backend("memory", max_size=10)
        assert isinstance(backend, MemoryBackend)
        assert backend.stats().max_size == 10

    def test_null(self):
        assert isinstance(create_backend("null"), NullBackend)

    def test_database(self, db):
        assert isinstance(create_backend("database", db=db), DatabaseCacheBackend)

    def test_database_needs_db(self):
        with pytest.raises(CacheConfigFault):
            create_backend("database")

    def test_unknown(self):
        with pytest.raises(CacheConfigFault) as exc_info:
            create_backend("memcached")
        assert exc_info.value.metadata["backend"] == "memcached"

    def test_unknown_backend_in_database_config(self):
        with pytest.raises(CacheConfigFault):
            Database("x", {"cache_backend": "memcached"})


class TestCacheFaults:
    def test_domain(self):
        fault = CacheConfigFault("bad")
        assert isinstance(fault, CacheFault)
        assert isinstance(fault, Fault)
        assert fault.domain is FaultDomain.CACHE
        assert fault.code == "CACHE_CONFIG_INVALID"
