"""
Quarry Relationship Registry — model classes and their resolved relationships.

Each model declares its relationships as plain dicts:

    class Student(Model):
        belongs_to = {"dorm": {}}
        has_many = {"clubs": {"through": "memberships"}}

The registry fills in the defaults (target model, foreign key, far key)
the first time a model's relationships are needed and hands out the same
frozen ModelRelations to every instance afterwards.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Type, TYPE_CHECKING

from ..faults import ConfigInvalidFault

if TYPE_CHECKING:
    from .base import Model

logger = logging.getLogger("quarry.models.registry")

__all__ = [
    "Relation",
    "ModelRelations",
    "RelationshipRegistry",
    "default_registry",
    "singular",
]

BELONGS_TO = "belongs_to"
HAS_ONE = "has_one"
HAS_MANY = "has_many"

RELATION_KINDS = (BELONGS_TO, HAS_ONE, HAS_MANY)

_DETAIL_KEYS = {
    BELONGS_TO: frozenset({"model", "foreign_key"}),
    HAS_ONE: frozenset({"model", "foreign_key"}),
    HAS_MANY: frozenset({"model", "foreign_key", "through", "far_key"}),
}

_ES_RE = re.compile(r"(s|x|z|ch|sh)es$")


def singular(word: str) -> str:
    """
    Naive English singular used for has_many target names.

        singular("clubs")     -> "club"
        singular("companies") -> "company"
        singular("boxes")     -> "box"
        singular("class")     -> "class"
    """
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if _ES_RE.search(word):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


@dataclass(frozen=True)
class Relation:
    """Resolved relationship descriptor."""

    kind: str
    alias: str
    model: str
    foreign_key: str
    through: Optional[str] = None
    far_key: Optional[str] = None


@dataclass(frozen=True)
class ModelRelations:
    """All relationships of one model, keyed by alias per kind."""

    model: str
    belongs_to: Mapping[str, Relation] = field(default_factory=dict)
    has_one: Mapping[str, Relation] = field(default_factory=dict)
    has_many: Mapping[str, Relation] = field(default_factory=dict)

    def one(self, alias: str) -> Optional[Relation]:
        """belongs_to or has_one relation named ``alias``."""
        return self.belongs_to.get(alias) or self.has_one.get(alias)

    def cascading(self) -> Dict[str, Relation]:
        """Every has_one and has_many relation, in declaration order."""
        return {**self.has_one, **self.has_many}


class RelationshipRegistry:
    """
    Registry of model classes and their relationships.

    Model classes register themselves when they are defined (see
    ``ModelMeta``). Relationship descriptors are built lazily, at most once
    per model name, and shared by every instance.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._models: Dict[str, Type[Model]] = {}
        self._relations: Dict[str, ModelRelations] = {}
        self._lock = threading.Lock()

    # ── Models ───────────────────────────────────────────────────────

    def register(self, model_cls: Type[Model]) -> None:
        """Register a model class under its model name."""
        name = model_cls.model_name()
        previous = self._models.get(name)
        if previous is not None and previous is not model_cls:
            logger.debug(f"Model '{name}' re-registered ({previous.__qualname__} -> {model_cls.__qualname__})")
            self._relations.pop(name, None)
        self._models[name] = model_cls

    def get(self, name: str) -> Optional[Type[Model]]:
        return self._models.get(name)

    def model(self, name: str) -> Type[Model]:
        """
        Model class for ``name``.

        When no class was declared, a bare Model subclass bound to the
        table ``name`` is created and registered.
        """
        model_cls = self._models.get(name)
        if model_cls is not None:
            return model_cls

        from .base import Model

        class_name = "".join(part.capitalize() for part in name.split("_")) or "Model"
        model_cls = type(Model)(class_name, (Model,), {
            "table": name,
            "_model_name": name,
            "registry": self,
            "__module__": __name__,
        })
        logger.debug(f"Created implicit model '{name}'")
        return model_cls

    def all_models(self) -> Dict[str, Type[Model]]:
        return dict(self._models)

    # ── Relationships ────────────────────────────────────────────────

    def relations_for(self, model_cls: Type[Model]) -> ModelRelations:
        """Resolved relationships of ``model_cls``, built on first use."""
        name = model_cls.model_name()
        relations = self._relations.get(name)
        if relations is None:
            with self._lock:
                relations = self._relations.get(name)
                if relations is None:
                    relations = self._build(model_cls)
                    self._relations[name] = relations
        return relations

    def _build(self, model_cls: Type[Model]) -> ModelRelations:
        this = model_cls.model_name()
        suffix = model_cls.foreign_key_suffix
        resolved: Dict[str, Dict[str, Relation]] = {kind: {} for kind in RELATION_KINDS}

        for kind in RELATION_KINDS:
            declared = getattr(model_cls, kind, None) or {}
            for alias, details in declared.items():
                details = dict(details or {})
                unknown = set(details) - _DETAIL_KEYS[kind]
                if unknown:
                    raise ConfigInvalidFault(
                        f"{this}.{kind}.{alias}",
                        f"unknown relationship option(s): {', '.join(sorted(unknown))}",
                    )
                resolved[kind][alias] = self._relation(kind, alias, this, suffix, details)

        logger.debug(
            f"Built relationships for '{this}': "
            + ", ".join(f"{kind}={list(resolved[kind])}" for kind in RELATION_KINDS)
        )
        return ModelRelations(
            model=this,
            belongs_to=MappingProxyType(resolved[BELONGS_TO]),
            has_one=MappingProxyType(resolved[HAS_ONE]),
            has_many=MappingProxyType(resolved[HAS_MANY]),
        )

    @staticmethod
    def _relation(kind: str, alias: str, this: str, suffix: str, details: Dict[str, Any]) -> Relation:
        if kind == BELONGS_TO:
            defaults = {"model": alias, "foreign_key": alias + suffix}
        elif kind == HAS_ONE:
            defaults = {"model": alias, "foreign_key": this + suffix}
        else:
            target = details.get("model") or singular(alias)
            defaults = {
                "model": target,
                "foreign_key": this + suffix,
                "through": None,
                "far_key": target + suffix,
            }
        defaults.update(details)
        return Relation(kind=kind, alias=alias, **defaults)

    def reset(self) -> None:
        """Forget every model and cached relationship set."""
        with self._lock:
            self._models.clear()
            self._relations.clear()

    def __repr__(self) -> str:
        return f"<RelationshipRegistry {self.name!r} models={len(self._models)}>"


default_registry = RelationshipRegistry()
