"""
MapperKit public package initialization.

Entities are plain classes declared with field descriptors; a
:class:`Persister` synchronises them with their tables through per-type
:class:`TableGateway` objects and an identity map.
"""

from .adapters import ConnectionConfig, SQLiteAdapter  # noqa: F401
from .core import (  # noqa: F401
    AutoField,
    BooleanField,
    DateTimeField,
    Entity,
    EntityConfigurationError,
    FloatField,
    IntegerField,
    LazyReference,
    ReferenceField,
    StringField,
)
from .hooks import HookDispatcher, LifecycleEvent  # noqa: F401
from .persistence import (  # noqa: F401
    EntityStateError,
    IdentityMap,
    InvalidArgumentError,
    NonUniqueResultError,
    NoResultError,
    Paginator,
    Persister,
    PersisterConfiguration,
    TableGateway,
)
from .query import (  # noqa: F401
    MalformedQueryError,
    QueryTranslator,
    UnsupportedOperatorError,
    UnsupportedSyntaxError,
)
from .service import CrudService, Result, ServiceError  # noqa: F401
from .validation import ValidationError  # noqa: F401

__all__ = [
    "AutoField",
    "BooleanField",
    "ConnectionConfig",
    "CrudService",
    "DateTimeField",
    "Entity",
    "EntityConfigurationError",
    "EntityStateError",
    "FloatField",
    "HookDispatcher",
    "IdentityMap",
    "IntegerField",
    "InvalidArgumentError",
    "LazyReference",
    "LifecycleEvent",
    "MalformedQueryError",
    "NoResultError",
    "NonUniqueResultError",
    "Paginator",
    "Persister",
    "PersisterConfiguration",
    "QueryTranslator",
    "ReferenceField",
    "Result",
    "SQLiteAdapter",
    "ServiceError",
    "StringField",
    "TableGateway",
    "UnsupportedOperatorError",
    "UnsupportedSyntaxError",
    "ValidationError",
]
