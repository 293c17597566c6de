"""
Reference fields and the entity type registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type

from .fields import Field
from .lazy import LazyReference

if TYPE_CHECKING:
    from ..persistence.persister import Persister
    from .entity import Entity


class RelationshipError(RuntimeError):
    pass


class ReferenceField(Field):
    """
    Owning side of a many-to-one association.

    The entity stores the referenced identity in a single column; the
    associated entity itself is reached through a :class:`LazyReference`
    kept next to the field values and resolved through the persister on
    first access. The referenced type never holds a pointer back; the
    optional ``related_name`` accessor on the target type finds the owners
    by querying.
    """

    def __init__(self, to: Type | str, *, related_name: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.to = to
        self.related_name = related_name
        self.remote_entity: Optional[Type["Entity"]] = None

    def resolve_entity(self, entity: Type["Entity"]) -> None:
        if len(entity._meta.identifier) != 1:
            raise RelationshipError(
                f"Reference '{self.name}' targets '{entity.__name__}', which has a composite identifier."
            )
        self.remote_entity = entity

    def require_remote(self) -> Type["Entity"]:
        if self.remote_entity is None:
            target = entity_registry.resolve(self.to)
            if target is None:
                raise RelationshipError(f"Reference target '{self.to}' is not resolved.")
            self.resolve_entity(target)
        assert self.remote_entity is not None
        return self.remote_entity

    def __set__(self, instance: object, value: Any) -> None:
        from .entity import Entity

        name = self.require_name()
        cache = instance._related_cache  # type: ignore[attr-defined]
        if isinstance(value, (Entity, LazyReference)):
            reference = LazyReference.loaded(value) if isinstance(value, Entity) else value
            # The column stays empty until an unsaved target receives its identity.
            key = reference.key[0] if reference.key else None
            instance._field_values[name] = self.to_python(key)  # type: ignore[attr-defined]
            cache[name] = reference
            return
        previous = instance._field_values.get(name)  # type: ignore[attr-defined]
        super().__set__(instance, value)
        if instance._field_values.get(name) != previous:  # type: ignore[attr-defined]
            cache.pop(name, None)

    def convert(self, value: Any) -> Any:
        remote = self.remote_entity or entity_registry.resolve(self.to)
        if remote is None or not remote._meta.identifier:
            return value
        return remote._meta.identifier[0].to_python(value)


class RelatedAccessor:
    def __init__(self, source_entity: Type["Entity"], field: ReferenceField) -> None:
        self.source_entity = source_entity
        self.field = field

    def __get__(self, instance, owner):
        return RelatedManager(self.source_entity, self.field, instance)


class RelatedManager:
    """
    Finds the entities whose reference field points at ``instance``.
    """

    def __init__(self, source_entity: Type["Entity"], field: ReferenceField, instance) -> None:
        self.entity = source_entity
        self.field = field
        self.instance = instance

    def expressions(self) -> List[Tuple[str, Any]]:
        if self.instance is None:
            return []
        return [(self.field.require_name(), self.instance.pk[0])]

    def fetch_all(self, persister: "Persister", *expressions: Any) -> list:
        return persister.fetch_all(self.entity, [*self.expressions(), *expressions])


class EntityRegistry:
    """
    Maps entity class names to classes so references can name their target.
    """

    def __init__(self) -> None:
        self.entities: Dict[str, Type["Entity"]] = {}
        self.pending_fields: List[Tuple[Type["Entity"], ReferenceField]] = []

    def register_entity(self, entity: Type["Entity"]) -> None:
        self.entities[entity.__name__] = entity
        self._resolve_pending()

    def register_reference(self, entity: Type["Entity"], field: ReferenceField) -> None:
        self.pending_fields.append((entity, field))

    def resolve(self, target: Type | str) -> Optional[Type["Entity"]]:
        if isinstance(target, type):
            return target
        label = target.split(".")[-1]
        return self.entities.get(label)

    def _resolve_pending(self) -> None:
        pending, self.pending_fields = self.pending_fields, []
        failures: List[RelationshipError] = []
        for entity, field in pending:
            target = self.resolve(field.to)
            if target is None or "_meta" not in target.__dict__:
                self.pending_fields.append((entity, field))
                continue
            try:
                field.resolve_entity(target)
            except RelationshipError as exc:
                failures.append(exc)
                continue
            self._attach_reverse_accessor(entity, field)
        if failures:
            raise failures[0]

    def _attach_reverse_accessor(self, entity: Type["Entity"], field: ReferenceField) -> None:
        remote = field.remote_entity
        if remote is None or not field.related_name:
            return
        if hasattr(remote, field.related_name):
            return
        setattr(remote, field.related_name, RelatedAccessor(entity, field))


entity_registry = EntityRegistry()
