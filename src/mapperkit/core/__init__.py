"""
Core building blocks for MapperKit entities and metadata handling.
"""

from .fields import (
    AutoField,
    BooleanField,
    DateTimeField,
    Field,
    FloatField,
    IntegerField,
    StringField,
)
from .entity import Entity, EntityConfigurationError, EntityMeta, EntityOptions
from .lazy import LazyReference
from .relations import ReferenceField, RelationshipError, entity_registry

__all__ = [
    "AutoField",
    "BooleanField",
    "DateTimeField",
    "Entity",
    "EntityConfigurationError",
    "EntityMeta",
    "EntityOptions",
    "Field",
    "FloatField",
    "IntegerField",
    "LazyReference",
    "ReferenceField",
    "RelationshipError",
    "StringField",
    "entity_registry",
]
