"""
Query — a QueryBuilder bound to a Database, with terminal operations.

    db.table("student").where("age", ">", 18).order_by("name").fetch()
    db.table("student").where("dorm_id").count([3])
    db.table("student").where("id", 9).update({"name": "Ann"})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Type, Union

from .builder import QueryBuilder, TableRef

if TYPE_CHECKING:
    from ..db.engine import Database
    from ..models.base import Model


__all__ = ["Query"]


class Query(QueryBuilder):
    """
    Builder whose terminal calls execute against ``db``.

    When bound to a model class, rows come back as model instances and the
    model's table is the default FROM/UPDATE/DELETE target. Every terminal
    call resets the clause state.
    """

    def __init__(
        self,
        db: "Database",
        model: Optional[Type["Model"]] = None,
        table: Optional[TableRef] = None,
    ):
        if table is None and model is not None:
            table = model.table
        super().__init__(dialect=db.dialect, escape=db.escape, table=table)
        self.db = db
        self.model = model

    def fetch(
        self,
        params: Optional[List[Any]] = None,
        cache: Optional[int] = None,
    ) -> List[Union["Model", Dict[str, Any]]]:
        """Run the SELECT and return model instances (bound) or row dicts."""
        sql, bound = self.compile(params)
        return self.db.fetch(sql, bound, as_object=self.model or False, cache=cache)

    def find(self, params: Optional[List[Any]] = None) -> Optional[Union["Model", Dict[str, Any]]]:
        """First matching row, or None."""
        self.limit(1)
        rows = self.fetch(params)
        return rows[0] if rows else None

    def count(self, params: Optional[List[Any]] = None) -> int:
        self.select("COUNT(*)")
        sql, bound = self.compile(params, for_count=True)
        return self.db.count(sql, bound)

    def insert(self, data: Mapping[str, Any], table: Optional[TableRef] = None) -> Any:
        """Insert one row and return its generated id."""
        return self.db.insert(table if table is not None else self.table, data)

    def update(
        self,
        data: Mapping[str, Any],
        table: Optional[TableRef] = None,
        params: Optional[List[Any]] = None,
    ) -> Union[int, bool]:
        """
        Update rows matched by the WHERE chain.

        Returns the affected row count, or False without touching the
        database when no WHERE clause was given.
        """
        if not data:
            self.clear()
            return 0
        compiled = self.compile_update(data, table, params)
        if compiled is None:
            return False
        sql, bound = compiled
        return self.db.query(sql, bound).row_count

    def delete(self, table: Optional[TableRef] = None, params: Optional[List[Any]] = None) -> int:
        """
        Delete rows matched by the WHERE chain.

        Raises:
            IllegalDeleteFault: no WHERE clause was given
        """
        sql, bound = self.compile_delete(table, params)
        return self.db.delete(sql, bound)
