"""
Quarry Model Deletion — emulated cascading delete for has_one / has_many.

The database is not expected to enforce ON DELETE CASCADE. Instead a model
opts in with ``cascade_delete`` and the dependents are removed by explicit
DELETE statements run in the same transaction as the parent delete:

    class Student(Model):
        has_one = {"car": {}}
        has_many = {"clubs": {"through": "memberships"}}
        cascade_delete = True            # every has_one / has_many alias
        # cascade_delete = ["clubs"]     # or only the listed aliases

Rules:
    has_one  alias  ->  DELETE FROM <target table> WHERE <fk> = ?
    has_many alias  ->  DELETE FROM <through or target table> WHERE <fk> = ?
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Type, TYPE_CHECKING

from ..faults import RelationNotFoundFault
from ..query.builder import QueryBuilder
from ..query.conditions import Column
from .registry import HAS_MANY, ModelRelations, RelationshipRegistry

if TYPE_CHECKING:
    from ..db.engine import Database
    from .base import Model

logger = logging.getLogger("quarry.models.deletion")

__all__ = ["CascadeRule", "cascade_rules", "run_cascade"]


@dataclass(frozen=True)
class CascadeRule:
    """One dependent table to clear before the parent row goes."""

    alias: str
    table: str
    foreign_key: str

    def compile(self, db: "Database", pk: Any):
        return (
            QueryBuilder(db.dialect, db.escape)
            .where(Column(self.foreign_key, "=", pk))
            .compile_delete(self.table)
        )


def cascade_rules(
    model_cls: Type["Model"],
    relations: ModelRelations,
    registry: RelationshipRegistry,
    aliases: Optional[List[str]] = None,
) -> List[CascadeRule]:
    """
    Dependent tables of ``model_cls``.

    Args:
        aliases: restrict to these has_one / has_many aliases; None means
            the model's ``cascade_delete`` setting decides

    Raises:
        RelationNotFoundFault: an alias is not a has_one or has_many relation
    """
    cascading = relations.cascading()

    if aliases is None:
        setting = model_cls.cascade_delete
        if not setting:
            return []
        aliases = list(cascading) if setting is True else list(setting)

    rules = []
    for alias in aliases:
        relation = cascading.get(alias)
        if relation is None:
            raise RelationNotFoundFault(
                model_cls.model_name(), alias, "not a has_one or has_many relation"
            )
        if relation.kind == HAS_MANY and relation.through:
            table = relation.through
        else:
            table = registry.model(relation.model).table
        rules.append(CascadeRule(alias=alias, table=table, foreign_key=relation.foreign_key))
    return rules


def run_cascade(db: "Database", rules: List[CascadeRule], pk: Any) -> int:
    """Execute ``rules`` for the parent ``pk``; returns the rows removed."""
    total = 0
    for rule in rules:
        sql, params = rule.compile(db, pk)
        removed = db.delete(sql, params)
        logger.debug(f"Cascade {rule.alias}: {removed} row(s) from {rule.table!r}")
        total += removed
    return total
