"""
Quarry Model — lazy-loading active-record entities.

Define models by subclassing and declaring relationships:

    class Student(Model):
        table = "student"                  # default: lower-cased class name
        belongs_to = {"dorm": {}}
        has_one = {"car": {}}
        has_many = {"clubs": {"through": "memberships"}}
        cascade_delete = True

API:
    student = Student(5)                   # stub, loaded on first read
    student.name                           # SELECT ... WHERE "id" = ?
    student.name = "Ann"
    student.save()                         # UPDATE only the changed column

    student.dorm                           # belongs_to, resolved and cached
    student.clubs.order_by("name").fetch() # has_many, a pending query
    student.add("clubs", chess)            # link row in "memberships"
    student.delete()                       # cascades inside a transaction

    Student().where("age", ">", 18).order_by("name").fetch(limit=10)
    Student().find({"name": "Ann"})
"""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from ..db.engine import Database, get_database
from ..faults import IllegalDeleteFault, MissingPropertyFault, QueryFault, RelationNotFoundFault
from ..query.conditions import Column
from ..query.query import Query
from .deletion import cascade_rules, run_cascade
from .registry import BELONGS_TO, ModelRelations, Relation, RelationshipRegistry, default_registry
from .relations import RelatedQuery

logger = logging.getLogger("quarry.models")

__all__ = ["Model", "ModelMeta"]

# Attributes that live on the instance rather than in the row
_INSTANCE_ATTRS = frozenset({"loaded", "saved", "registry"})


class ModelMeta(type):
    """
    Metaclass for Quarry models.

    Handles:
    - model name and default table name
    - registration with the model's RelationshipRegistry
    """

    def __new__(mcs, name: str, bases: Tuple[type, ...], namespace: Dict[str, Any], **kwargs) -> ModelMeta:
        # Don't process the base Model class itself
        parents = [b for b in bases if isinstance(b, ModelMeta)]
        if not parents:
            return super().__new__(mcs, name, bases, namespace)

        namespace.setdefault("_model_name", name.lower())
        namespace.setdefault("table", namespace["_model_name"])

        new_class = super().__new__(mcs, name, bases, namespace, **kwargs)
        new_class.registry.register(new_class)
        return new_class


def _forward(name: str):
    def method(self, *args: Any, **kwargs: Any):
        getattr(self.query(), name)(*args, **kwargs)
        return self

    method.__name__ = name
    method.__doc__ = f"Add to the pending query (``QueryBuilder.{name}``); returns the entity."
    return method


class Model(metaclass=ModelMeta):
    """
    Active-record entity.

    An instance is in one of these states:

    - new: ``Model()``, no primary key; ``save()`` inserts
    - stub: ``Model(5)``, saved but not loaded; the first read loads it
    - loaded: ``Model({"id": 5, ...})`` or a fetched row
    - dirty: something was set since the last save
    - not found: a load found no row; no further queries until ``reload()``

    Columns are also readable as attributes. A column that shares its name
    with a Model member (``table``, ``count``, ``values``, ``delete``, ...)
    resolves to the member instead, so read it with ``get()``. Assigning
    such an attribute still sets the column.

    Args:
        id: primary key, or a row mapping
        db: Database to use instead of the one named by ``database``
        registry: RelationshipRegistry to use instead of the class default
    """

    table: ClassVar[str] = ""
    primary_key: ClassVar[str] = "id"
    database: ClassVar[str] = "default"
    foreign_key_suffix: ClassVar[str] = "_id"
    belongs_to: ClassVar[Dict[str, Dict[str, Any]]] = {}
    has_one: ClassVar[Dict[str, Dict[str, Any]]] = {}
    has_many: ClassVar[Dict[str, Dict[str, Any]]] = {}
    cascade_delete: ClassVar[Union[bool, List[str]]] = False
    registry: RelationshipRegistry = default_registry
    _model_name: ClassVar[str] = ""

    def __init__(
        self,
        id: Any = None,
        db: Optional[Database] = None,
        registry: Optional[RelationshipRegistry] = None,
    ):
        object.__setattr__(self, "_object", {})
        object.__setattr__(self, "_changed", {})
        object.__setattr__(self, "_related", {})
        object.__setattr__(self, "_db", db)
        object.__setattr__(self, "_query", None)
        object.__setattr__(self, "_missing", False)
        object.__setattr__(self, "loaded", False)
        object.__setattr__(self, "saved", False)
        if registry is not None:
            object.__setattr__(self, "registry", registry)

        if id is None:
            return

        if isinstance(id, Mapping):
            if id.get(self.primary_key) is not None:
                self._object.update(id)
                # Considered saved until something is set
                self.saved = self.loaded = True
            else:
                self.values(id)
        else:
            # Primary key only; loaded when first needed
            self._object[self.primary_key] = id
            self.saved = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any], db: Optional[Database] = None) -> Model:
        """Build a loaded instance from a fetched row."""
        instance = cls(db=db)
        instance._object.update(row)
        instance.saved = instance.loaded = True
        return instance

    @classmethod
    def model_name(cls) -> str:
        return cls._model_name

    @property
    def db(self) -> Database:
        if self._db is None:
            object.__setattr__(self, "_db", get_database(self.database))
        return self._db

    def _relations(self) -> ModelRelations:
        return self.registry.relations_for(type(self))

    # ── Row state ────────────────────────────────────────────────────

    def pk(self) -> Any:
        return self._object.get(self.primary_key)

    def empty_pk(self) -> bool:
        """True when the primary key is missing, None, 0 or "0"."""
        value = self._object.get(self.primary_key)
        return not value or value == "0"

    def load(self) -> bool:
        """
        Load the row for the current primary key.

        Returns True when the row is (now) loaded. A missing row leaves the
        entity not found; later calls return False without querying again.
        """
        if self.loaded:
            return True
        if self._missing or self.empty_pk():
            return False

        row = (
            self.db.table(self.table)
            .where(Column(self.primary_key, "=", self.pk()))
            .find()
        )
        if row is None:
            logger.debug(f"{self.model_name()} {self.pk()!r} not found")
            self._missing = True
            return False

        # Values set before the load win over the stored row
        row.update({column: self._object[column] for column in self._changed})
        object.__setattr__(self, "_object", row)
        self.saved = not self._changed
        self.loaded = True
        return True

    def reload(self) -> Model:
        """Drop all local state and load the row again."""
        pk = self.pk()
        object.__setattr__(self, "_object", {self.primary_key: pk})
        self._changed.clear()
        self._related.clear()
        self._missing = False
        self.loaded = False
        self.load()
        return self

    # ── Property access ──────────────────────────────────────────────

    def get(self, column: str) -> Any:
        """
        Value of a column or relationship alias.

        Lookup order: row column, resolved one-to-one relation, belongs_to
        or has_one alias, has_many alias (a pending RelatedQuery).

        Raises:
            MissingPropertyFault: ``column`` is neither a column nor an alias
        """
        self.load()

        if column in self._object:
            return self._object[column]
        if column in self._related:
            return self._related[column]

        relations = self._relations()
        if relations.one(column) is not None:
            return self.related(column)
        if column in relations.has_many:
            return self.many(column)

        raise MissingPropertyFault(self.model_name(), column)

    def set(self, column: str, value: Any) -> Model:
        """
        Set a column and mark it changed when the value differs.

        Assigning a model to a belongs_to alias stores its primary key in
        the foreign key column.
        """
        if isinstance(value, Model):
            relation = self._relations().belongs_to.get(column)
            if relation is not None:
                self._related[column] = value
                return self.set(relation.foreign_key, value.pk())

        if column not in self._object or self._object[column] != value:
            self._object[column] = value
            self._changed[column] = None
            self.saved = False
        return self

    def isset(self, column: str) -> bool:
        self.load()
        return column in self._object or column in self._related

    def unset(self, column: str) -> None:
        self.load()
        self._object.pop(column, None)
        self._changed.pop(column, None)
        self._related.pop(column, None)

    def values(self, values: Mapping[str, Any]) -> Model:
        """Set several columns at once."""
        for column, value in values.items():
            self.set(column, value)
        return self

    @property
    def changed(self) -> List[str]:
        """Columns set since the last save, in order."""
        return list(self._changed)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or name in _INSTANCE_ATTRS or isinstance(getattr(type(self), name, None), property):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def __delattr__(self, name: str) -> None:
        if name.startswith("_") or name in _INSTANCE_ATTRS:
            object.__delattr__(self, name)
        else:
            self.unset(name)

    def __contains__(self, column: str) -> bool:
        return self.isset(column)

    # ── Relationships ────────────────────────────────────────────────

    def related(self, alias: str) -> Optional[Model]:
        """
        Entity behind a belongs_to or has_one alias, or None.

        A found entity is cached until ``reload()``.

        Raises:
            RelationNotFoundFault: ``alias`` is not a one-to-one relation
        """
        if alias in self._related:
            return self._related[alias]

        relation = self._relations().one(alias)
        if relation is None:
            raise RelationNotFoundFault(self.model_name(), alias, "not a belongs_to or has_one relation")

        target = self.registry.model(relation.model)
        query = Query(self.db, model=target)

        if relation.kind == BELONGS_TO:
            self.load()
            key = self._object.get(relation.foreign_key)
            if key is None:
                return None
            query.where(Column(target.primary_key, "=", key))
        else:
            if self.empty_pk():
                return None
            query.where(Column(relation.foreign_key, "=", self.pk()))

        found = query.find()
        if found is not None:
            self._related[alias] = found
        return found

    def many(self, alias: str) -> RelatedQuery:
        """
        Pending query for a has_many alias.

        Raises:
            RelationNotFoundFault: ``alias`` is not a has_many relation
        """
        relation = self._relations().has_many.get(alias)
        if relation is None:
            raise RelationNotFoundFault(self.model_name(), alias, "not a has_many relation")
        owner_pk = None if self.empty_pk() else self.pk()
        return RelatedQuery(self.db, self.registry.model(relation.model), relation, owner_pk)

    def _through(self, alias: str) -> Relation:
        relation = self._relations().has_many.get(alias)
        if relation is None:
            raise RelationNotFoundFault(self.model_name(), alias)
        if not relation.through:
            raise RelationNotFoundFault(self.model_name(), alias, "has no through table")
        return relation

    def _link(self, relation: Relation, other: Model) -> Dict[str, Any]:
        if self.empty_pk() or other.empty_pk():
            raise QueryFault(relation.through, "link", "both entities need a primary key")
        return {relation.foreign_key: self.pk(), relation.far_key: other.pk()}

    def add(self, alias: str, other: Model) -> Model:
        """
        Link ``other`` through the has_many ``alias``.

        When a model is registered for the through table, the link is saved
        through it so its hooks run.
        """
        relation = self._through(alias)
        link = self._link(relation, other)

        through = self.registry.get(relation.through)
        if through is not None:
            through(db=self.db, registry=self.registry).values(link).save()
        else:
            self.db.insert(relation.through, link)
        return self

    def remove(self, alias: str, other: Model) -> int:
        """Unlink ``other``; returns the number of link rows removed."""
        relation = self._through(alias)
        return self.db.table(relation.through).where(self._link(relation, other)).delete()

    def has(self, alias: str, other: Model) -> bool:
        relation = self._through(alias)
        return self.db.table(relation.through).where(self._link(relation, other)).count() > 0

    # ── Persistence ──────────────────────────────────────────────────

    def save(self) -> Model:
        """
        Write changed columns.

        Inserts when the primary key is empty or was itself changed,
        otherwise updates only the changed columns. Does nothing when
        nothing changed.
        """
        if not self._changed:
            return self

        data = {column: self._object[column] for column in self._changed}

        if not self.empty_pk() and self.primary_key not in self._changed:
            self.update(data)
        else:
            self.insert(data)

        self._changed.clear()
        return self

    def insert(self, data: Dict[str, Any]) -> None:
        """Insert hook; override to adjust ``data`` before the row is written."""
        new_id = self.db.insert(self.table, data)

        if not data.get(self.primary_key):
            self._object[self.primary_key] = new_id

        self._missing = False
        self.loaded = self.saved = True

    def update(self, data: Dict[str, Any]) -> None:
        """Update hook; override to adjust ``data`` before the row is written."""
        self.db.update(self.table, data, {self.primary_key: self.pk()})
        self.saved = True

    def _delete_id(self, id: Any) -> Any:
        if id is None:
            id = self.pk()
        if not id or id == "0":
            raise IllegalDeleteFault(self.model_name(), "no primary key given")
        return id

    def delete(self, id: Any = None) -> int:
        """
        Delete row ``id`` (default: this entity) and, when
        ``cascade_delete`` is set, its dependents.

        Returns the total number of rows removed.

        Raises:
            IllegalDeleteFault: the id is empty or zero
        """
        id = self._delete_id(id)
        rules = cascade_rules(type(self), self._relations(), self.registry)

        with self.db.transaction():
            removed = run_cascade(self.db, rules, id)
            removed += (
                self.db.table(self.table)
                .where(Column(self.primary_key, "=", id))
                .delete()
            )

        logger.debug(f"Deleted {self.model_name()} {id!r} ({removed} row(s))")
        return removed

    def delete_all_relations(self, id: Any = None) -> int:
        """Delete every has_one / has_many dependent of row ``id`` but keep the row."""
        id = self._delete_id(id)
        relations = self._relations()
        rules = cascade_rules(type(self), relations, self.registry, aliases=list(relations.cascading()))

        with self.db.transaction():
            return run_cascade(self.db, rules, id)

    # ── Builder forwarding ───────────────────────────────────────────

    def query(self) -> Query:
        """The entity's pending query over its table."""
        if self._query is None:
            self._query = Query(self.db, model=type(self))
        return self._query

    select = _forward("select")
    from_table = _forward("from_table")
    join = _forward("join")
    where = _forward("where")
    or_where = _forward("or_where")
    having = _forward("having")
    or_having = _forward("or_having")
    group_by = _forward("group_by")
    order_by = _forward("order_by")
    limit = _forward("limit")
    offset = _forward("offset")
    clear = _forward("clear")

    def fetch(
        self,
        where: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Model]:
        """Run the pending query; ``where`` adds ``column = value`` terms."""
        query = self.query()
        if where:
            query.where(where)
        if limit is not None:
            query.limit(limit, offset)
        elif offset:
            query.offset(offset)
        return query.fetch()

    def count(self, where: Optional[Mapping[str, Any]] = None) -> int:
        query = self.query()
        if where:
            query.where(where)
        return query.count()

    def find(self, pk_or_where: Any = None) -> Optional[Model]:
        """First entity matching a primary key or a ``column = value`` mapping."""
        query = self.query()
        if isinstance(pk_or_where, Mapping):
            query.where(pk_or_where)
        elif pk_or_where is not None:
            query.where(Column(self.primary_key, "=", pk_or_where))
        return query.find()

    # ── Export ───────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Row values as a dict."""
        self.load()
        return dict(self._object)

    to_array = to_dict

    def to_object(self) -> SimpleNamespace:
        self.load()
        return SimpleNamespace(**self._object)

    def __repr__(self) -> str:
        state = "loaded" if self.loaded else ("saved" if self.saved else "new")
        return f"<{self.__class__.__name__} pk={self.pk()!r} {state}>"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, self.__class__):
            return False
        if self.empty_pk() or other.empty_pk():
            return self is other
        return self.pk() == other.pk()

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.pk()))
