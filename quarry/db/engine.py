"""
Quarry Database Engine — synchronous, multi-backend connection wrapper.

Provides:
- Database: one logical connection delegating to a driver
- Statement preparation with per-connection statement reuse
- Optional SELECT result caching through a pluggable cache backend
- Query log for inspection in tests and debugging
- A process-wide registry of named instances

Usage:
    db = configure_database("default", "sqlite:///app.db", log_queries=True)
    rows = db.fetch('SELECT * FROM "student" WHERE "dorm_id" = ?', [3])
    new_id = db.insert("student", {"name": "Ann", "dorm_id": 3})
    with db.transaction():
        db.update("student", {"dorm_id": 4}, {"id": new_id})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from ..config import ConfigLoader, DatabaseConfig
from ..faults import (
    ConfigInvalidFault,
    DatabaseConnectionFault,
    DatabaseNotConfiguredFault,
    DriverExecutionFault,
)
from ..query.builder import QueryBuilder
from ..query.query import Query
from .drivers import DRIVERS, DatabaseDriver
from .drivers.base import ColumnInfo
from .statement import Statement

logger = logging.getLogger("quarry.db")

__all__ = [
    "Database",
    "QueryRecord",
    "get_database",
    "configure_database",
    "configure_from",
    "set_database",
    "get_all_databases",
    "reset_databases",
]


@dataclass
class QueryRecord:
    """One entry of the query log."""

    sql: str
    params: List[Any] = field(default_factory=list)
    elapsed: float = 0.0
    cached: bool = False


def _create_driver(config: DatabaseConfig) -> DatabaseDriver:
    """Factory — instantiate the driver matching the URL scheme."""
    driver_cls = DRIVERS.get(config.driver)
    if driver_cls is None:
        raise ConfigInvalidFault("url", f"no driver registered for scheme '{config.driver}'")
    return driver_cls(config)


def _coerce_config(config: Union[DatabaseConfig, Mapping[str, Any], str, None], name: str) -> DatabaseConfig:
    if config is None:
        return DatabaseConfig()
    if isinstance(config, DatabaseConfig):
        return config
    if isinstance(config, str):
        return DatabaseConfig(url=config)
    return DatabaseConfig.from_dict(dict(config), name=name)


class Database:
    """
    Synchronous database wrapper.

    Delegates execution to a driver (SQLite, MySQL or PostgreSQL) chosen
    from the URL. All SQL is written with ``?`` placeholders and ANSI
    double-quoted identifiers; the dialect and driver translate both.

    One instance is one connection. It is not safe to share across threads
    without external locking.

    Args:
        name: instance name used by models to find their database
        config: DatabaseConfig, mapping of its fields, or a URL
        cache: result cache backend; built from ``config.cache_backend``
            when omitted
        driver: pre-built driver, mainly for tests
    """

    def __init__(
        self,
        name: str = "default",
        config: Union[DatabaseConfig, Mapping[str, Any], str, None] = None,
        cache: Any = None,
        driver: Optional[DatabaseDriver] = None,
    ):
        self.name = name
        self.config = _coerce_config(config, name)
        self.driver = driver or _create_driver(self.config)
        self.dialect = self.driver.dialect
        self.queries: List[QueryRecord] = []
        self._statements: Dict[str, Statement] = {}
        self._transaction_depth = 0

        if cache is None:
            from ..cache import create_backend
            cache = create_backend(self.config.cache_backend, db=self, **self.config.cache_options)
        self.cache = cache

    # ── Connection management ────────────────────────────────────────

    def connect(self) -> "Database":
        """Open the connection. Safe to call repeatedly."""
        if self.driver.is_connected:
            return self
        try:
            self.driver.connect()
        except ImportError:
            raise
        except Exception as exc:
            raise DatabaseConnectionFault(self.config.url, str(exc)) from exc
        logger.info(f"Database '{self.name}' connected ({self.driver.name})")
        if self.config.charset and self.driver.name == "sqlite":
            self.driver.set_charset(self.config.charset)
        return self

    def disconnect(self) -> None:
        """Close the connection and forget prepared statements."""
        self._statements.clear()
        if not self.driver.is_connected:
            return
        self.driver.disconnect()
        logger.info(f"Database '{self.name}' disconnected")

    close = disconnect

    @property
    def is_connected(self) -> bool:
        return self.driver.is_connected

    def __enter__(self) -> "Database":
        return self.connect()

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    # ── Statements ───────────────────────────────────────────────────

    def prepare(self, sql: str) -> Statement:
        """
        Prepare a statement, reusing an earlier one for identical SQL when
        statement caching is enabled.
        """
        self.connect()
        sql = self.dialect.filter(sql)

        if self.config.cache_statements:
            statement = self._statements.get(sql)
            if statement is not None:
                return statement

        try:
            prepared = self.driver.prepare(sql)
        except Exception as exc:
            raise DriverExecutionFault("prepare", str(exc), sql=sql) from exc

        statement = Statement(self, sql, prepared)
        if self.config.cache_statements:
            self._statements[sql] = statement
        return statement

    def query(self, sql: str, params: Optional[Sequence[Any]] = None, cache: Optional[int] = None) -> Statement:
        """Prepare and execute; returns the executed statement."""
        statement = self.prepare(sql)
        statement.execute(list(params) if params is not None else [], cache=cache)
        return statement

    def fetch(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        as_object: Any = True,
        cache: Optional[int] = None,
    ) -> List[Any]:
        """
        Run a SELECT and return all rows.

        Args:
            as_object: True for attribute-style rows, False for dicts, or a
                model class to hydrate
            cache: result max age in seconds (None uses the configured
                default, 0 bypasses the cache)
        """
        return self.query(sql, params, cache=cache).results(as_object)

    def fetch_one(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        as_object: Any = True,
        cache: Optional[int] = None,
    ) -> Optional[Any]:
        rows = self.fetch(sql, params, as_object=as_object, cache=cache)
        return rows[0] if rows else None

    def count(self, sql: str, params: Optional[Sequence[Any]] = None, cache: Optional[int] = None) -> int:
        """Run a ``SELECT COUNT(*)`` style query and return the first column."""
        value = self.query(sql, params, cache=cache).fetch_column()
        return int(value or 0)

    def insert(self, table: Any, data: Mapping[str, Any]) -> Any:
        """Insert one row and return the generated id."""
        sql, params = QueryBuilder(self.dialect).compile_insert(table, data)
        return self.query(sql, params).last_insert_id

    def update(self, table: Any, data: Mapping[str, Any], where: Any = None) -> Union[int, bool]:
        """
        Update rows matching ``where`` (a column mapping or a condition).

        Returns the affected row count, or False without running anything
        when no condition is given.
        """
        if not where:
            logger.warning(f"Refusing UPDATE of {table!r} without a WHERE clause")
            return False
        return self.table(table).where(where).update(data)

    def delete(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run a DELETE and return the number of rows removed."""
        return self.query(sql, params).row_count

    def exec(self, sql: str) -> int:
        """Run raw SQL without parameters or statement reuse."""
        self.connect()
        sql = self.dialect.filter(sql)
        statement = Statement(self, sql, self.driver.prepare(sql))
        statement.execute([], cache=0)
        return statement.row_count

    def escape(self, value: Any) -> str:
        """Quote a value as an SQL literal using the driver's rules."""
        self.connect()
        return self.driver.quote_literal(value)

    # ── Builders ─────────────────────────────────────────────────────

    def table(self, table: Any) -> Query:
        """Start a query against ``table``."""
        return Query(self, table=table)

    def builder(self) -> Query:
        return Query(self)

    # ── Transactions ─────────────────────────────────────────────────

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """
        Run a block in a transaction.

        Nested blocks join the outermost transaction; the whole unit commits
        or rolls back together.

        Usage:
            with db.transaction():
                db.insert("club", {"name": "Chess"})
                db.delete('DELETE FROM "club" WHERE "id" = ?', [old_id])
        """
        self.connect()
        if self._transaction_depth:
            self._transaction_depth += 1
            try:
                yield self
            finally:
                self._transaction_depth -= 1
            return

        self.driver.begin()
        self._transaction_depth = 1
        try:
            yield self
        except BaseException:
            self._transaction_depth = 0
            self.driver.rollback()
            logger.debug(f"Transaction on '{self.name}' rolled back")
            raise
        else:
            self._transaction_depth = 0
            self.driver.commit()

    # ── Introspection ────────────────────────────────────────────────

    def list_tables(self, like: Optional[str] = None) -> List[str]:
        self.connect()
        return self.driver.list_tables(like)

    def list_columns(self, table: str, like: Optional[str] = None) -> List[ColumnInfo]:
        self.connect()
        return self.driver.list_columns(table, like)

    def set_charset(self, charset: str) -> None:
        self.connect()
        self.driver.set_charset(charset)

    # ── Query log ────────────────────────────────────────────────────

    def _record(self, sql: str, params: List[Any], elapsed: float, cached: bool = False) -> None:
        logger.debug(
            f"{'[cached] ' if cached else ''}{sql!r} {params!r} ({elapsed * 1000:.2f} ms)"
        )
        if self.config.log_queries:
            self.queries.append(QueryRecord(sql=sql, params=list(params), elapsed=elapsed, cached=cached))

    def format_queries(self) -> str:
        """Render the query log as text, one block per statement."""
        lines = []
        for index, record in enumerate(self.queries, 1):
            origin = "cache" if record.cached else f"{record.elapsed * 1000:.2f} ms"
            lines.append(f"#{index} [{origin}]")
            lines.append(record.sql)
            if record.params:
                lines.append(f"params: {record.params!r}")
            lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<Database {self.name!r} {self.driver.name}>"


# ── Module-level instance registry ──────────────────────────────────────────

_database_registry: Dict[str, Database] = {}


def get_database(name: str = "default") -> Database:
    """
    Get a configured database instance.

    Raises:
        DatabaseNotConfiguredFault: no instance was configured under ``name``
    """
    db = _database_registry.get(name or "default")
    if db is None:
        raise DatabaseNotConfiguredFault(name)
    return db


def configure_database(
    name: str = "default",
    config: Union[DatabaseConfig, Mapping[str, Any], str, None] = None,
    **options: Any,
) -> Database:
    """
    Create a database instance and register it under ``name``.

    Args:
        name: instance name
        config: DatabaseConfig, mapping, or URL
        **options: DatabaseConfig fields overriding ``config``
    """
    resolved = _coerce_config(config, name)
    if options:
        merged = {**resolved.__dict__, **options}
        resolved = DatabaseConfig.from_dict(merged, name=name)

    previous = _database_registry.get(name)
    if previous is not None:
        previous.disconnect()

    db = Database(name, resolved)
    _database_registry[name] = db
    return db


def configure_from(loader: ConfigLoader) -> Dict[str, Database]:
    """Configure every instance listed under ``databases`` in a loaded config."""
    return {
        name: configure_database(name, loader.database_config(name))
        for name in loader.database_names()
    }


def set_database(db: Database, name: Optional[str] = None) -> None:
    """Register an externally-created database."""
    _database_registry[name or db.name] = db


def get_all_databases() -> Dict[str, Database]:
    """Return all configured database instances."""
    return dict(_database_registry)


def reset_databases() -> None:
    """Disconnect and forget every instance."""
    for db in _database_registry.values():
        db.disconnect()
    _database_registry.clear()
