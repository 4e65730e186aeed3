"""
Quarry SQL dialects — identifier quoting, literal escaping and LIMIT rendering.

Every builder writes ANSI double-quoted identifiers. A dialect decides how
those are finally sent to the server (``filter``), how literal values are
inlined where binding is impossible (IN lists), and how LIMIT/OFFSET look.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from ..faults import ConfigInvalidFault


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "PostgreSQLDialect",
    "get_dialect",
    "register_dialect",
]

# Single-quoted literal (with '' or backslash escapes) or a lone double quote
_QUOTE_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\"")

# "<column> AS <alias>" in a select list
_ALIAS_RE = re.compile(r"\s+AS\s+", re.IGNORECASE)


class Dialect:
    """
    ANSI SQL dialect.

    Subclasses override the handful of hooks that differ per server.
    """

    name = "ansi"
    identifier_quote = '"'

    def quote_identifier(self, name: str) -> str:
        if name == "*":
            return name
        return f'"{name}"'

    def quote_columns(self, columns: Union[str, Iterable[str]]) -> str:
        """
        Quote a column list.

        ``"t.col"`` becomes ``"t"."col"``, ``"a, b"`` becomes ``"a","b"``,
        ``"t.col AS c"`` becomes ``"t"."col" AS "c"``,
        ``*`` stays bare and anything containing ``(`` or an existing quote
        is passed through untouched.
        """
        if isinstance(columns, str):
            # Complex SELECT clause
            if "(" in columns:
                return columns
            columns = columns.split(",")

        fields = []
        for column in columns:
            column = column.strip()

            # Already quoted, or a function call like MAX()
            if '"' in column or "(" in column:
                fields.append(column)
                continue

            column, *alias = _ALIAS_RE.split(column, maxsplit=1)
            quoted = ".".join(self.quote_identifier(part) for part in column.split("."))
            if alias:
                quoted = f"{quoted} AS {self.quote_identifier(alias[0].strip())}"
            fields.append(quoted)

        return ",".join(fields)

    def quote_table(self, table: Union[str, Mapping[str, str]]) -> str:
        """Quote ``"name"`` or ``{"real": "alias"}`` for FROM / JOIN use."""
        alias = None
        if isinstance(table, Mapping):
            table, alias = next(iter(table.items()))

        quoted = self.quote_columns(table)
        return f"{quoted} AS {self.quote_identifier(alias)}" if alias else quoted

    def quote_literal(self, value: Any) -> str:
        """Render a value as an inline SQL literal."""
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, enum.Enum):
            return self.quote_literal(value.value)
        if isinstance(value, (int, float, decimal.Decimal)):
            return str(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return f"X'{bytes(value).hex()}'"
        if isinstance(value, datetime.datetime):
            return self._quote_string(value.isoformat(sep=" "))
        if isinstance(value, (datetime.date, datetime.time)):
            return self._quote_string(value.isoformat())
        # str, UUID and anything else with a sensible text form
        return self._quote_string(str(value))

    def _quote_string(self, text: str) -> str:
        return "'" + text.replace("'", "''") + "'"

    def filter(self, sql: str) -> str:
        """Final rewrite before the SQL reaches the driver."""
        return sql

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        parts = []
        if limit is not None:
            parts.append(f"LIMIT {int(limit)}")
        if offset:
            parts.append(f"OFFSET {int(offset)}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


class SQLiteDialect(Dialect):
    name = "sqlite"

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        # SQLite only accepts OFFSET after a LIMIT
        if limit is None and offset:
            return f"LIMIT -1 OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)


class MySQLDialect(Dialect):
    """MySQL quotes identifiers with backticks and escapes backslashes."""

    name = "mysql"
    identifier_quote = "`"
    _MAX_ROWS = 18446744073709551615

    def filter(self, sql: str) -> str:
        # Swap identifier quotes, leaving string literals alone
        return _QUOTE_RE.sub(lambda m: "`" if m.group(0) == '"' else m.group(0), sql)

    def _quote_string(self, text: str) -> str:
        return "'" + text.replace("\\", "\\\\").replace("'", "''") + "'"

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        if limit is None and offset:
            return f"LIMIT {self._MAX_ROWS} OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)


class PostgreSQLDialect(Dialect):
    name = "postgresql"

    def quote_literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, (bytes, bytearray, memoryview)):
            return f"'\\x{bytes(value).hex()}'::bytea"
        return super().quote_literal(value)


_DIALECTS: Dict[str, Dialect] = {
    "ansi": Dialect(),
    "sqlite": SQLiteDialect(),
    "mysql": MySQLDialect(),
    "postgresql": PostgreSQLDialect(),
}


def register_dialect(dialect: Dialect) -> None:
    _DIALECTS[dialect.name] = dialect


def get_dialect(name: Optional[str] = None) -> Dialect:
    """Look up a dialect by name (``postgres`` is accepted for ``postgresql``)."""
    if name is None:
        return _DIALECTS["ansi"]
    key = name.lower()
    if key == "postgres":
        key = "postgresql"
    try:
        return _DIALECTS[key]
    except KeyError:
        raise ConfigInvalidFault("dialect", f"unknown SQL dialect '{name}'") from None
