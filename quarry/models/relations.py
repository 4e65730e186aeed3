"""
Quarry related queries — the pending query behind a has_many alias.

    student.many("clubs").where("active", 1).order_by("name").fetch()
    student.clubs.count()

Without a through table:

    SELECT * FROM "club" WHERE ( "student_id" = ? )

With ``through = "memberships"``:

    SELECT "T1".* FROM "club" AS "T1"
    INNER JOIN "memberships" AS "T2" ON "T2"."club_id" = "T1"."id"
    WHERE ( "T2"."student_id" = ? )

The relationship scope survives every terminal call, so one RelatedQuery
can be chained and executed again. An owner without a primary key matches
no rows.
"""

from __future__ import annotations

from typing import Any, Type, TYPE_CHECKING

from ..query.conditions import Column, Raw
from ..query.query import Query
from .registry import Relation

if TYPE_CHECKING:
    from ..db.engine import Database
    from .base import Model


__all__ = ["RelatedQuery"]


class RelatedQuery(Query):
    """Query over the rows a has_many relation points at."""

    def __init__(self, db: "Database", model: Type["Model"], relation: Relation, owner_pk: Any):
        # the scope is applied by clear(), which the builder calls on init
        self.relation = relation
        self.owner_pk = owner_pk
        self.model = model
        super().__init__(db, model=model)

    def clear(self) -> "RelatedQuery":
        super().clear()
        return self._scope()

    def _scope(self) -> "RelatedQuery":
        relation = self.relation
        if self.owner_pk is None:
            owner = Raw("1 = 0")
        elif relation.through:
            owner = Column(f"T2.{relation.foreign_key}", "=", self.owner_pk)
        else:
            owner = Column(relation.foreign_key, "=", self.owner_pk)

        if relation.through:
            target_pk = self.model.primary_key
            self.select("T1.*")
            self.from_table({self.model.table: "T1"})
            self.join(
                {relation.through: "T2"},
                {f"T2.{relation.far_key}": f"T1.{target_pk}"},
                "INNER",
            )
        self.where(owner)
        return self

    def __repr__(self) -> str:
        return f"<RelatedQuery {self.relation.alias!r} of {self.owner_pk!r}>"
