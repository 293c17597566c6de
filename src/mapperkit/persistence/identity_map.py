"""
Identity map ensuring a single in-memory instance per stored row.
"""

from __future__ import annotations

import copy
import weakref
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from ..core.entity import Entity, EntityMeta
from .errors import EntityStateError, InvalidArgumentError

IdentityKey = Tuple[Type[Entity], Tuple[Any, ...]]


@dataclass
class _Registration:
    reference: "weakref.ReferenceType[Entity]"
    identity: Tuple[Any, ...]
    snapshot: Dict[str, Any]


def as_identity(values: Any) -> Tuple[Any, ...]:
    if isinstance(values, (tuple, list)):
        return tuple(values)
    return (values,)


class IdentityMap:
    """
    Stores managed entities keyed by (root type, identity tuple).

    Entities are referenced weakly: once the application drops its last
    reference, the registration and its snapshot go away. Snapshots are
    private deep copies of the field values taken at registration or at the
    last :meth:`commit`.
    """

    def __init__(self) -> None:
        self._registrations: Dict[IdentityKey, _Registration] = {}
        self._keys_by_instance: Dict[int, IdentityKey] = {}

    @staticmethod
    def root_type(entity_or_type: Entity | Type[Entity]) -> Type[Entity]:
        """
        Return the top-most persistable ancestor sharing the entity's identity space.
        """
        cls = entity_or_type if isinstance(entity_or_type, type) else type(entity_or_type)
        root = cls
        for base in cls.__mro__[1:]:
            if not isinstance(base, EntityMeta):
                # Plain mixins do not end the hierarchy.
                continue
            options = base.__dict__.get("_meta")
            if options is None or not options.persistable:
                break
            root = base
        return root

    def _make_key(self, entity_or_type: Entity | Type[Entity], identity: Any) -> IdentityKey:
        values = as_identity(identity)
        if not values:
            raise InvalidArgumentError("Cannot register an entity without an identity.")
        if any(value is None for value in values):
            raise InvalidArgumentError(f"Identity {values!r} contains an empty member.")
        return (self.root_type(entity_or_type), values)

    def _registration_for(self, entity: Entity) -> _Registration:
        key = self._keys_by_instance.get(id(entity))
        registration = self._registrations.get(key) if key is not None else None
        if registration is None or registration.reference() is not entity:
            raise EntityStateError(f"{entity!r} is not managed by this identity map.")
        return registration

    def _discard(self, key: IdentityKey, instance_id: int, reference: "weakref.ReferenceType[Entity]") -> None:
        registration = self._registrations.get(key)
        if registration is None or registration.reference is not reference:
            return
        del self._registrations[key]
        if self._keys_by_instance.get(instance_id) == key:
            del self._keys_by_instance[instance_id]

    # Registration ------------------------------------------------------
    def put(self, entity: Entity, identity: Any) -> bool:
        """
        Register ``entity`` under ``identity``; the existing instance wins on collision.
        """
        key = self._make_key(entity, identity)
        existing = self._registrations.get(key)
        if existing is not None and existing.reference() is not None:
            return False

        previous_key = self._keys_by_instance.get(id(entity))
        if previous_key is not None and previous_key != key and self.has(entity):
            raise EntityStateError(
                f"{entity!r} is already managed under identity {previous_key[1]!r}."
            )

        instance_id = id(entity)
        reference = weakref.ref(
            entity, lambda ref, key=key, instance_id=instance_id: self._discard(key, instance_id, ref)
        )
        self._registrations[key] = _Registration(reference, key[1], entity.snapshot())
        self._keys_by_instance[instance_id] = key
        return True

    def get(self, entity_type: Type[Entity], identity: Any) -> Optional[Entity]:
        try:
            key = self._make_key(entity_type, identity)
        except InvalidArgumentError:
            return None
        registration = self._registrations.get(key)
        if registration is None:
            return None
        return registration.reference()

    def has(self, entity: Entity) -> bool:
        key = self._keys_by_instance.get(id(entity))
        if key is None:
            return False
        registration = self._registrations.get(key)
        return registration is not None and registration.reference() is entity

    def get_id(self, entity: Entity) -> Tuple[Any, ...]:
        return self._registration_for(entity).identity

    def get_original(self, entity: Entity) -> Dict[str, Any]:
        """
        Return a copy of the stored snapshot; the snapshot itself stays private.
        """
        registration = self._registration_for(entity)
        return copy.deepcopy(registration.snapshot)

    def commit(self, entity: Entity) -> None:
        self._registration_for(entity).snapshot = entity.snapshot()

    def remove(self, entity: Entity) -> bool:
        if not self.has(entity):
            return False
        key = self._keys_by_instance.pop(id(entity))
        del self._registrations[key]
        return True

    def clear(self) -> None:
        self._registrations.clear()
        self._keys_by_instance.clear()

    # Introspection -----------------------------------------------------
    def values(self) -> List[Entity]:
        live = (registration.reference() for registration in list(self._registrations.values()))
        return [entity for entity in live if entity is not None]

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.values())

    def __len__(self) -> int:
        return len(self.values())

    def __contains__(self, entity: object) -> bool:
        return isinstance(entity, Entity) and self.has(entity)
