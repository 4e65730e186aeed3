"""
Quarry models — active-record entities with declared relationships.
"""

from .base import Model, ModelMeta
from .registry import ModelRelations, Relation, RelationshipRegistry, default_registry, singular
from .relations import RelatedQuery
from .deletion import CascadeRule, cascade_rules, run_cascade

__all__ = [
    "Model",
    "ModelMeta",
    "Relation",
    "ModelRelations",
    "RelationshipRegistry",
    "default_registry",
    "singular",
    "RelatedQuery",
    "CascadeRule",
    "cascade_rules",
    "run_cascade",
]
