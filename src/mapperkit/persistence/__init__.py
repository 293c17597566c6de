"""
Persistence layer: identity map, table gateways and the persister façade.
"""

from .errors import (
    EntityStateError,
    InvalidArgumentError,
    NonUniqueResultError,
    NoResultError,
    PersistenceError,
)
from .gateway import TableGateway
from .identity_map import IdentityMap
from .paginator import Paginator
from .persister import Persister, PersisterConfiguration

__all__ = [
    "EntityStateError",
    "IdentityMap",
    "InvalidArgumentError",
    "NoResultError",
    "NonUniqueResultError",
    "Paginator",
    "PersistenceError",
    "Persister",
    "PersisterConfiguration",
    "TableGateway",
]
