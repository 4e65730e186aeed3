"""
Quarry DB Driver — PostgreSQL via psycopg (version 3).

Install with:
    pip install quarry[postgresql]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import ColumnInfo, DatabaseDriver, DriverResult, PreparedSQL, qmark_to_format

try:
    import psycopg
    from psycopg import sql as pg_sql
    from psycopg.rows import dict_row
except ImportError:
    psycopg = None  # type: ignore

logger = logging.getLogger("quarry.db.drivers.postgres")

__all__ = ["PostgreSQLDriver"]


class PostgreSQLDriver(DatabaseDriver):
    """
    PostgreSQL driver.

    The connection runs in autocommit mode; ``begin`` opens an explicit
    transaction block. Generated ids come from ``lastval()``.
    """

    name = "postgresql"
    dialect_name = "postgresql"

    def __init__(self, config):
        super().__init__(config)
        self._connection: Any = None

    def connect(self) -> None:
        if self._connection is not None:
            return
        if psycopg is None:
            raise ImportError(
                "psycopg is required for the PostgreSQL driver. "
                "Install: pip install quarry[postgresql]"
            )
        kwargs: Dict[str, Any] = dict(self.config.options)
        if self.config.username:
            kwargs["user"] = self.config.username
        if self.config.password:
            kwargs["password"] = self.config.password
        if self.config.charset:
            kwargs["client_encoding"] = self.config.charset

        self._connection = psycopg.connect(
            _conninfo(self.config.url),
            autocommit=True,
            row_factory=dict_row,
            **kwargs,
        )
        logger.info("PostgreSQL connected")

    def disconnect(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.info("PostgreSQL disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def connection(self) -> Any:
        if self._connection is None:
            raise RuntimeError("Not connected to PostgreSQL")
        return self._connection

    def translate(self, sql: str) -> str:
        return qmark_to_format(sql)

    def execute(self, prepared: PreparedSQL, params: Optional[Sequence[Any]] = None) -> DriverResult:
        with self.connection.cursor() as cursor:
            cursor.execute(prepared.native_sql, tuple(params or ()))
            columns = [d.name for d in cursor.description] if cursor.description else []
            rows = list(cursor.fetchall()) if columns else []
            return DriverResult(rows=rows, rowcount=cursor.rowcount, columns=columns)

    def last_insert_id(self) -> Any:
        try:
            # Savepoint inside an open transaction, so a failure doesn't abort it
            with self.connection.transaction():
                row = self.connection.execute("SELECT lastval() AS id").fetchone()
        except psycopg.errors.ObjectNotInPrerequisiteState:
            # No sequence has been used in this session
            return None
        return row["id"] if row else None

    def quote_literal(self, value: Any) -> str:
        return pg_sql.Literal(value).as_string(self.connection)

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        self.connection.execute("COMMIT")

    def rollback(self) -> None:
        self.connection.execute("ROLLBACK")

    # ── Introspection ────────────────────────────────────────────────

    def list_tables(self, like: Optional[str] = None) -> List[str]:
        sql = (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema()"
        )
        params: List[Any] = []
        if like is not None:
            sql += " AND table_name LIKE %s"
            params.append(like)
        rows = self.connection.execute(sql + " ORDER BY table_name", params).fetchall()
        return [row["table_name"] for row in rows]

    def list_columns(self, table: str, like: Optional[str] = None) -> List[ColumnInfo]:
        sql = (
            "SELECT column_name, data_type, is_nullable, column_default, "
            "character_maximum_length "
            "FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = %s"
        )
        params: List[Any] = [table]
        if like is not None:
            sql += " AND column_name LIKE %s"
            params.append(like)
        rows = self.connection.execute(sql + " ORDER BY ordinal_position", params).fetchall()
        return [
            ColumnInfo(
                name=row["column_name"],
                data_type=row["data_type"],
                nullable=row["is_nullable"] == "YES",
                default=row["column_default"],
                max_length=row["character_maximum_length"],
            )
            for row in rows
        ]

    def set_charset(self, charset: str) -> None:
        self.connection.execute("SELECT set_config('client_encoding', %s, false)", [charset])


def _conninfo(url: str) -> str:
    # psycopg understands postgresql:// and postgres:// but not driver suffixes
    scheme, sep, rest = url.partition("://")
    if "+" in scheme:
        scheme = scheme.split("+", 1)[0]
    return f"{scheme}{sep}{rest}"
