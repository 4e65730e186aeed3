"""
Quarry SQL Builder — active-record style clause accumulator.

Clauses are collected by chained calls and compiled once into
parameterized SQL. Compiling resets the builder so the same object can be
reused for the next statement.

Usage:
    from quarry.query.builder import QueryBuilder

    sql, params = (
        QueryBuilder()
        .select("s.id, s.name")
        .from_table({"student": "s"})
        .join({"dorm": "d"}, {"d.id": "s.dorm_id"}, "LEFT")
        .where("s.age", ">", 18)
        .or_where("s.id", [1, 2, 3])
        .order_by("s.name", "DESC")
        .limit(10)
        .compile()
    )
    # SELECT "s"."id","s"."name"
    # FROM "student" AS "s"
    # LEFT JOIN "dorm" AS "d" ON "d"."id" = "s"."dorm_id"
    # WHERE ( "s"."age" > ? ) OR ( "s"."id" IN (1,2,3) )
    # ORDER BY "s"."name" DESC
    # LIMIT 10
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, NamedTuple, Optional, Tuple, Union

from ..faults import IllegalDeleteFault
from .conditions import NOT_GIVEN, Condition, Column, bind_params, condition
from .dialects import Dialect, get_dialect


__all__ = ["Clause", "QueryBuilder"]

logger = logging.getLogger("quarry.query")

TableRef = Union[str, Mapping[str, str]]


class Clause(NamedTuple):
    """One WHERE/HAVING term with the conjunction joining it to the previous one."""

    conjunction: str
    sql: str
    params: List[Any]


class QueryBuilder:
    """
    SELECT/UPDATE/DELETE clause accumulator.

    Args:
        dialect: quoting strategy (ANSI double quotes by default)
        escape: literal escaping used for inlined IN lists; defaults to the
            dialect's own ``quote_literal``
        table: FROM table used when none was given explicitly
    """

    def __init__(
        self,
        dialect: Optional[Dialect] = None,
        escape: Optional[Callable[[Any], str]] = None,
        table: Optional[TableRef] = None,
    ):
        self.dialect = dialect or get_dialect()
        self._escape = escape or self.dialect.quote_literal
        self.table = table
        self.clear()

    # ── State ────────────────────────────────────────────────────────

    def clear(self) -> QueryBuilder:
        """Reset all clause state."""
        self._select = "*"
        self._from: List[str] = []
        self._join: List[str] = []
        self._where: List[Clause] = []
        self._having: List[Clause] = []
        self._group_by: List[str] = []
        self._order_by: List[str] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        return self

    @property
    def has_where(self) -> bool:
        return bool(self._where)

    # ── Clause mutators ──────────────────────────────────────────────

    def select(self, columns: Union[str, List[str]] = "*") -> QueryBuilder:
        if isinstance(columns, str):
            columns = columns.strip(",")
        self._select = self.dialect.quote_columns(columns)
        return self

    def from_table(self, table: TableRef) -> QueryBuilder:
        self._from.append(self.dialect.quote_table(table))
        return self

    def join(
        self,
        table: TableRef,
        on: Optional[Union[Mapping[str, str], str]] = None,
        type: Optional[str] = None,
    ) -> QueryBuilder:
        """
        Add a JOIN.

        ``on`` maps left columns to right columns (``ON a = b AND c = d``);
        a string is used as the ON expression verbatim. Without ``on`` the
        table argument is taken as a complete JOIN clause.
        """
        if on is None:
            self._join.append(table)
            return self

        if isinstance(on, str):
            condition_sql = on
        else:
            q = self.dialect.quote_columns
            condition_sql = " AND ".join(f"{q(left)} = {q(right)}" for left, right in on.items())

        prefix = f"{type.upper()} " if type else ""
        self._join.append(f"{prefix}JOIN {self.dialect.quote_table(table)} ON {condition_sql}")
        return self

    def condition(self, expr: Any, values: Any = NOT_GIVEN, *params: Any) -> str:
        """Render a single condition as SQL, e.g. ``( "status" IN (1,2,3) )``."""
        sql, _ = condition(expr, values, *params).compile(self.dialect, self._escape)
        return sql

    def _add(self, target: List[Clause], conjunction: str, expr: Any, values: Any, params: tuple):
        if isinstance(expr, Mapping):
            for column, value in expr.items():
                self._add(target, conjunction, Column(column, "=", value), None, ())
                conjunction = "AND"
            return
        sql, bound = condition(expr, values, *params).compile(self.dialect, self._escape)
        target.append(Clause(conjunction, sql, bound))

    def where(self, expr: Any, values: Any = NOT_GIVEN, *params: Any) -> QueryBuilder:
        self._add(self._where, "AND", expr, values, params)
        return self

    def or_where(self, expr: Any, values: Any = NOT_GIVEN, *params: Any) -> QueryBuilder:
        self._add(self._where, "OR", expr, values, params)
        return self

    def having(self, expr: Any, values: Any = NOT_GIVEN, *params: Any) -> QueryBuilder:
        self._add(self._having, "AND", expr, values, params)
        return self

    def or_having(self, expr: Any, values: Any = NOT_GIVEN, *params: Any) -> QueryBuilder:
        self._add(self._having, "OR", expr, values, params)
        return self

    def group_by(self, column: str) -> QueryBuilder:
        self._group_by.append(self.dialect.quote_columns(column))
        return self

    def order_by(self, column: str, direction: Optional[str] = None) -> QueryBuilder:
        if direction and direction.upper() not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction!r}")
        quoted = self.dialect.quote_columns(column)
        self._order_by.append(f"{quoted} {direction.upper()}" if direction else quoted)
        return self

    def limit(self, limit: Optional[int], offset: Optional[int] = None) -> QueryBuilder:
        self._limit = limit
        if offset:
            self._offset = offset
        return self

    def offset(self, offset: Optional[int]) -> QueryBuilder:
        self._offset = offset
        return self

    # ── Compilation ──────────────────────────────────────────────────

    @staticmethod
    def _chain(keyword: str, clauses: List[Clause]) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        params: List[Any] = []
        for index, clause in enumerate(clauses):
            parts.append(f"\n{keyword} {clause.sql}" if index == 0 else f" {clause.conjunction} {clause.sql}")
            params.extend(clause.params)
        return "".join(parts), params

    def _from_sql(self) -> str:
        froms = self._from
        if not froms and self.table is not None:
            froms = [self.dialect.quote_table(self.table)]
        return ",".join(froms)

    def _render(self, for_count: bool = False) -> Tuple[str, List[Any]]:
        sql = f"SELECT {self._select}\nFROM {self._from_sql()}"

        if self._join:
            sql += "\n" + "\n".join(self._join)

        where_sql, params = self._chain("WHERE", self._where)
        sql += where_sql

        if self._group_by:
            sql += "\nGROUP BY " + ",".join(self._group_by)

        having_sql, having_params = self._chain("HAVING", self._having)
        sql += having_sql
        params.extend(having_params)

        if not for_count:
            if self._order_by:
                sql += "\nORDER BY " + ", ".join(self._order_by)
            limit = self.dialect.limit_clause(self._limit, self._offset)
            if limit:
                sql += "\n" + limit

        return sql, params

    def compile(
        self,
        params: Optional[List[Any]] = None,
        for_count: bool = False,
        retain: bool = False,
    ) -> Tuple[str, List[Any]]:
        """
        Compile the accumulated SELECT.

        Args:
            params: values for unbound placeholders, in clause order; any
                extra values are appended
            for_count: leave out ORDER BY, LIMIT and OFFSET
            retain: keep the clause state instead of resetting it

        Returns:
            Tuple of (sql_string, params_list)
        """
        sql, bound = self._render(for_count)
        if not retain:
            self.clear()
        return sql, bind_params(bound, params)

    def compile_insert(self, table: TableRef, data: Mapping[str, Any]) -> Tuple[str, List[Any]]:
        """INSERT for one row. Does not touch the clause state."""
        columns = self.dialect.quote_columns(list(data))
        placeholders = ",".join("?" for _ in data)
        sql = f"INSERT INTO {self.dialect.quote_table(table)} ({columns}) VALUES ({placeholders})"
        return sql, list(data.values())

    def compile_update(
        self,
        data: Mapping[str, Any],
        table: Optional[TableRef] = None,
        params: Optional[List[Any]] = None,
    ) -> Optional[Tuple[str, List[Any]]]:
        """
        UPDATE using the accumulated WHERE chain.

        Returns None, and resets the state, when there is no WHERE clause.
        """
        target = self._target(table)
        if not self._where:
            logger.warning("Refusing UPDATE of %s without a WHERE clause", target)
            self.clear()
            return None

        sets = ", ".join(f"{self.dialect.quote_columns(column)} = ?" for column in data)
        where_sql, where_params = self._chain("WHERE", self._where)
        self.clear()
        sql = f"UPDATE {target} SET {sets}{where_sql}"
        return sql, list(data.values()) + bind_params(where_params, params)

    def compile_delete(
        self,
        table: Optional[TableRef] = None,
        params: Optional[List[Any]] = None,
    ) -> Tuple[str, List[Any]]:
        """
        DELETE using the accumulated WHERE chain.

        Raises:
            IllegalDeleteFault: there is no WHERE clause
        """
        target = self._target(table)
        if not self._where:
            logger.warning("Refusing DELETE from %s without a WHERE clause", target)
            self.clear()
            raise IllegalDeleteFault(target, "no WHERE clause given")

        where_sql, where_params = self._chain("WHERE", self._where)
        self.clear()
        return f"DELETE FROM {target}{where_sql}", bind_params(where_params, params)

    def _target(self, table: Optional[TableRef]) -> str:
        if table is not None:
            return self.dialect.quote_table(table)
        return self._from_sql()

    def __str__(self) -> str:
        return self._render()[0]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._render()[0]!r}>"
