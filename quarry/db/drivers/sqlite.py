"""
Quarry DB Driver — SQLite via the standard library ``sqlite3`` module.

This is the default driver. The connection runs in autocommit mode and
``begin``/``commit``/``rollback`` issue explicit statements.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, List, Optional, Sequence

from .base import ColumnInfo, DatabaseDriver, DriverResult, PreparedSQL

logger = logging.getLogger("quarry.db.drivers.sqlite")

__all__ = ["SQLiteDriver"]


class SQLiteDriver(DatabaseDriver):
    """
    SQLite driver.

    Features:
    - Foreign key enforcement
    - Rows returned as plain dicts
    - PRAGMA-based introspection
    """

    name = "sqlite"
    dialect_name = "sqlite"

    def __init__(self, config):
        super().__init__(config)
        self._connection: Optional[sqlite3.Connection] = None
        self.path = self._parse_url(config.url)

    def connect(self) -> None:
        if self._connection is not None:
            return
        options = {"check_same_thread": False, **self.config.options}
        self._connection = sqlite3.connect(self.path, isolation_level=None, **options)
        self._connection.row_factory = sqlite3.Row
        self._connection.execute("PRAGMA foreign_keys=ON")
        logger.info(f"SQLite connected: {self.path}")

    def disconnect(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.info("SQLite disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise sqlite3.ProgrammingError("Not connected")
        return self._connection

    def execute(self, prepared: PreparedSQL, params: Optional[Sequence[Any]] = None) -> DriverResult:
        cursor = self.connection.execute(prepared.native_sql, list(params or []))
        try:
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = [dict(row) for row in cursor.fetchall()] if columns else []
            if cursor.lastrowid:
                self._last_insert_id = cursor.lastrowid
            return DriverResult(rows=rows, rowcount=cursor.rowcount, lastrowid=cursor.lastrowid, columns=columns)
        finally:
            cursor.close()

    def quote_literal(self, value: Any) -> str:
        # Let SQLite escape the types it stores natively
        if value is None or (isinstance(value, (str, int, float, bytes)) and not isinstance(value, bool)):
            return self.connection.execute("SELECT quote(?)", (value,)).fetchone()[0]
        return super().quote_literal(value)

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        self.connection.execute("COMMIT")

    def rollback(self) -> None:
        self.connection.execute("ROLLBACK")

    # ── Introspection ────────────────────────────────────────────────

    def list_tables(self, like: Optional[str] = None) -> List[str]:
        sql = "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        params: List[Any] = []
        if like is not None:
            sql += " AND name LIKE ?"
            params.append(like)
        rows = self.connection.execute(sql + " ORDER BY name", params).fetchall()
        return [row["name"] for row in rows]

    def list_columns(self, table: str, like: Optional[str] = None) -> List[ColumnInfo]:
        rows = self.connection.execute(f'PRAGMA table_info("{table}")').fetchall()
        return [
            ColumnInfo(
                name=row["name"],
                data_type=row["type"],
                nullable=not row["notnull"],
                default=row["dflt_value"],
                primary_key=bool(row["pk"]),
            )
            for row in rows
            if self._like(row["name"], like)
        ]

    def set_charset(self, charset: str) -> None:
        # Only honoured before the database file has content
        encoding = {"utf8": "UTF-8", "utf-8": "UTF-8"}.get(charset.lower(), charset)
        self.connection.execute(f"PRAGMA encoding = '{encoding}'")

    @staticmethod
    def _parse_url(url: str) -> str:
        """Extract file path from sqlite URL."""
        for prefix in ("sqlite:///", "sqlite://"):
            if url.startswith(prefix):
                path = url[len(prefix):]
                return path or ":memory:"
        return url.replace("sqlite:", "").lstrip("/") or ":memory:"
