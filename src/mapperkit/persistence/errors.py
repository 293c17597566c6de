"""
Errors raised by the persistence layer.
"""

from __future__ import annotations


class PersistenceError(Exception):
    """Base error for persister, gateway and identity map failures."""


class InvalidArgumentError(PersistenceError, ValueError):
    """Raised for unusable arguments: bad identities, unknown entities, missing ids."""


class NoResultError(PersistenceError, LookupError):
    """Raised when exactly one row was expected but none matched."""


class NonUniqueResultError(PersistenceError, LookupError):
    """Raised when exactly one row was expected but several matched."""


class EntityStateError(PersistenceError, RuntimeError):
    """Raised when an operation does not fit the entity's managed state."""
