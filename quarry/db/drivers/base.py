"""
Quarry DB Driver — Base Driver Interface.

All drivers must implement this interface. ``Database`` delegates to the
driver picked from the connection URL and never talks to a DB-API module
directly.

Drivers receive SQL written with ``?`` placeholders and ANSI-quoted
identifiers (already passed through the dialect filter) and are
responsible for:
- Placeholder translation (``?`` to ``%s`` and so on)
- Transaction statements
- Introspection queries
- Literal escaping with the server's own rules
"""

from __future__ import annotations

import fnmatch
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ...config import DatabaseConfig
from ...query.dialects import Dialect, get_dialect

logger = logging.getLogger("quarry.db.drivers")

__all__ = [
    "DatabaseDriver",
    "DriverResult",
    "PreparedSQL",
    "ColumnInfo",
    "qmark_to_format",
]

# String literal, placeholder, or percent sign
_FORMAT_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\?|%")


def qmark_to_format(sql: str) -> str:
    """
    Convert ``?`` placeholders to ``%s`` for format-style drivers.

    Literal percent signs are doubled everywhere, since those drivers
    always interpolate; question marks inside string literals are kept.
    """
    def repl(match: re.Match) -> str:
        token = match.group(0)
        if token == "?":
            return "%s"
        if token == "%":
            return "%%"
        return token.replace("%", "%%")

    return _FORMAT_RE.sub(repl, sql)


@dataclass
class ColumnInfo:
    """Introspection result for a single column."""

    name: str
    data_type: str
    nullable: bool = True
    default: Optional[str] = None
    primary_key: bool = False
    max_length: Optional[int] = None


@dataclass
class PreparedSQL:
    """Driver-ready form of one statement."""

    sql: str
    native_sql: str
    handle: Any = None


@dataclass
class DriverResult:
    """Outcome of one execution: fetched rows plus write metadata."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: Any = None
    columns: List[str] = field(default_factory=list)


class DatabaseDriver(ABC):
    """
    Abstract driver interface.

    One driver instance owns one logical connection. Nothing here is
    thread-safe; share a driver across threads only with external locking.
    """

    name: str = "base"
    dialect_name: str = "ansi"

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._last_insert_id: Any = None

    @property
    def dialect(self) -> Dialect:
        return get_dialect(self.dialect_name)

    # ── Connection ───────────────────────────────────────────────────

    @abstractmethod
    def connect(self) -> None:
        """Open the connection. Calling it twice is a no-op."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    # ── Execution ────────────────────────────────────────────────────

    def translate(self, sql: str) -> str:
        """Rewrite ``?`` placeholders into the driver's param style."""
        return sql

    def prepare(self, sql: str) -> PreparedSQL:
        return PreparedSQL(sql=sql, native_sql=self.translate(sql))

    @abstractmethod
    def execute(self, prepared: PreparedSQL, params: Optional[Sequence[Any]] = None) -> DriverResult:
        """Execute a prepared statement. Native driver errors propagate."""

    def last_insert_id(self) -> Any:
        return self._last_insert_id

    def quote_literal(self, value: Any) -> str:
        return self.dialect.quote_literal(value)

    # ── Transactions ─────────────────────────────────────────────────

    @abstractmethod
    def begin(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    # ── Introspection ────────────────────────────────────────────────

    @abstractmethod
    def list_tables(self, like: Optional[str] = None) -> List[str]:
        ...

    @abstractmethod
    def list_columns(self, table: str, like: Optional[str] = None) -> List[ColumnInfo]:
        ...

    @abstractmethod
    def set_charset(self, charset: str) -> None:
        ...

    @staticmethod
    def _like(name: str, pattern: Optional[str]) -> bool:
        """Match ``name`` against a SQL LIKE pattern, case-insensitively."""
        if pattern is None:
            return True
        glob = pattern.replace("%", "*").replace("_", "?")
        return fnmatch.fnmatchcase(name.lower(), glob.lower())

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "disconnected"
        return f"<{self.__class__.__name__} {state}>"
