"""
Quarry Statement — one prepared SQL statement with logging and result caching.

A Statement is created by ``Database.prepare`` and may be executed any
number of times. SELECT results can be served from the database's result
cache, keyed by the SQL text plus the bound values.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import logging
import time
import uuid
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Union

from ..cache.key_builder import result_key
from ..faults import DriverExecutionFault, QueryFault
from .drivers.base import DriverResult, PreparedSQL

if TYPE_CHECKING:
    from .engine import Database

logger = logging.getLogger("quarry.db.statement")

__all__ = ["Statement", "SCALAR_TYPES"]

SCALAR_TYPES = (
    str, int, float, bool, bytes, bytearray, memoryview,
    decimal.Decimal, datetime.date, datetime.time, datetime.datetime,
    uuid.UUID, enum.Enum,
)


def _check_param(sql: str, value: Any) -> Any:
    if value is None or isinstance(value, SCALAR_TYPES):
        return value.value if isinstance(value, enum.Enum) else value
    raise QueryFault(
        sql[:60],
        "bind",
        f"cannot bind value of type {type(value).__name__}; only scalars and None are allowed",
    )


class Statement:
    """
    Prepared statement wrapper.

    Attributes:
        sql: final SQL text (after the dialect filter)
        params: values bound for the last execution
        hash: result cache key of the last cached execution
        from_cache: whether the last execution was served from the cache
    """

    def __init__(self, db: "Database", sql: str, prepared: PreparedSQL):
        self.db = db
        self.sql = sql
        self.prepared = prepared
        self.params: List[Any] = []
        self.hash: Optional[str] = None
        self.from_cache = False
        self.result: Optional[DriverResult] = None
        self._rows: Optional[List[Dict[str, Any]]] = None
        self._max_age: Optional[int] = None

    @property
    def is_select(self) -> bool:
        head = self.sql.lstrip().split(None, 1)
        return bool(head) and head[0].upper() in ("SELECT", "WITH")

    # ── Binding ──────────────────────────────────────────────────────

    def param(self, position: Union[int, Mapping[int, Any]], value: Any = None) -> "Statement":
        """
        Bind one value by zero-based position, or several from a mapping.
        """
        if isinstance(position, Mapping):
            for index, item in position.items():
                self.param(index, item)
            return self

        if position < 0:
            raise QueryFault(self.sql[:60], "bind", f"invalid parameter position {position}")
        while len(self.params) <= position:
            self.params.append(None)
        self.params[position] = _check_param(self.sql, value)
        return self

    # ── Execution ────────────────────────────────────────────────────

    def execute(self, params: Optional[Sequence[Any]] = None, cache: Optional[int] = None) -> bool:
        """
        Run the statement.

        Args:
            params: values for the ``?`` placeholders; when omitted the
                values set with ``param()`` are used
            cache: max age in seconds for a cached SELECT result; None uses
                the database default and 0 bypasses the cache

        Raises:
            DriverExecutionFault: the driver rejected the statement
        """
        if params is not None:
            self.params = [_check_param(self.sql, v) for v in params]

        self.from_cache = False
        self.result = None
        self._rows = None
        self._max_age = self.db.config.cache_results if cache is None else cache

        cache_backend = self.db.cache if self._max_age and self.is_select else None
        if cache_backend is not None:
            self.hash = result_key(self.sql, self.params)
            cached = cache_backend.get(self.hash, self._max_age)
            if cached is not None:
                self._rows = [dict(row) for row in cached]
                self.from_cache = True
                logger.debug(f"Result cache hit {self.hash[:12]} for {self.sql!r}")
                self.db._record(self.sql, self.params, 0.0, cached=True)
                return True

        start = time.perf_counter()
        try:
            self.result = self.db.driver.execute(self.prepared, self.params)
        except Exception as exc:
            logger.debug(f"Statement failed: {self.sql!r} {self.params!r}: {exc}")
            raise DriverExecutionFault("execute", str(exc), sql=self.sql) from exc
        elapsed = time.perf_counter() - start

        self._rows = self.result.rows
        self.db._record(self.sql, self.params, elapsed)

        if cache_backend is not None:
            cache_backend.set(self.hash, [dict(row) for row in self._rows], ttl=self._max_age)

        return True

    def refresh(self, params: Optional[Sequence[Any]] = None) -> bool:
        """Drop the cached result for these params and execute again."""
        if params is not None:
            self.params = [_check_param(self.sql, v) for v in params]
        if self.db.cache is not None:
            self.db.cache.delete(result_key(self.sql, self.params))
        return self.execute(cache=self._max_age)

    # ── Results ──────────────────────────────────────────────────────

    def results(self, as_object: Any = False, key: Optional[str] = None) -> Union[List[Any], Dict[Any, Any]]:
        """
        Rows of the last execution.

        Args:
            as_object: False for dicts, True for ``SimpleNamespace`` rows,
                or a class to hydrate (models are built with ``from_row``)
            key: index the result by this column instead of returning a list
        """
        rows = [self._convert(row, as_object) for row in self._rows or []]
        if key is None:
            return rows
        return {raw[key]: row for raw, row in zip(self._rows or [], rows)}

    def _convert(self, row: Dict[str, Any], as_object: Any) -> Any:
        if as_object is False or as_object is None:
            return dict(row)
        if as_object is True:
            return SimpleNamespace(**row)
        from_row = getattr(as_object, "from_row", None)
        if from_row is not None:
            return from_row(row, db=self.db)
        return as_object(**row)

    def fetch_column(self, index: int = 0) -> Any:
        """Value of one column from the first row, or None."""
        if not self._rows:
            return None
        return list(self._rows[0].values())[index]

    @property
    def row_count(self) -> int:
        """Rows returned by a SELECT, or rows affected by a write."""
        if self.is_select and self._rows is not None:
            return len(self._rows)
        return self.result.rowcount if self.result is not None else 0

    @property
    def last_insert_id(self) -> Any:
        if self.result is not None and self.result.lastrowid:
            return self.result.lastrowid
        return self.db.driver.last_insert_id()

    def __repr__(self) -> str:
        return f"<Statement {self.sql!r}>"
