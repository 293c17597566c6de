"""
Persister façade orchestrating gateways and the identity map.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from ..adapters.base import DatabaseAdapter
from ..core.entity import Entity
from ..core.relations import entity_registry
from ..hooks import HookDispatcher, LifecycleEvent
from ..utils import get_logger
from .errors import EntityStateError, InvalidArgumentError, NonUniqueResultError, NoResultError
from .gateway import TableGateway
from .identity_map import IdentityMap
from .paginator import Paginator

EntityRef = Any
GatewayOrClass = Any


@dataclass
class PersisterConfiguration:
    """
    Gateway wiring and lifecycle hooks for a :class:`Persister`.

    ``gateway_map`` maps entity class names to gateway instances or gateway
    classes. ``default_gateway`` is used for entities that neither appear in
    the map nor declare ``Meta.gateway``.
    """

    gateway_map: Dict[str, GatewayOrClass] = field(default_factory=dict)
    default_gateway: Optional[Type[TableGateway]] = None
    hooks: HookDispatcher = field(default_factory=HookDispatcher)


class Persister:
    """
    Unit of work synchronising entities with their tables.

    A persister owns one identity map and one gateway per entity type.
    Within its lifetime every stored row is represented by at most one
    entity instance; reads consult the identity map before materialising
    rows, and writes keep the map's snapshots in step with the store.
    """

    def __init__(self, adapter: DatabaseAdapter, configuration: Optional[PersisterConfiguration] = None) -> None:
        self.adapter = adapter
        self.configuration = configuration or PersisterConfiguration()
        self.hooks = self.configuration.hooks
        self.identity_map = IdentityMap()
        self._gateway_map: Dict[str, GatewayOrClass] = dict(self.configuration.gateway_map)
        self._gateways: Dict[str, TableGateway] = {}
        self.logger = get_logger("persistence.persister")

    # ------------------------------------------------------------------ #
    # Gateway registry
    # ------------------------------------------------------------------ #
    def resolve_entity_type(self, entity: EntityRef) -> Type[Entity]:
        """
        Accept an entity class, an entity instance or a registered class name.
        """
        if isinstance(entity, str):
            entity_type = entity_registry.resolve(entity)
            if entity_type is None:
                raise InvalidArgumentError(f"Unknown entity '{entity}'.")
            return entity_type
        if isinstance(entity, Entity):
            return type(entity)
        if isinstance(entity, type) and issubclass(entity, Entity):
            return entity
        raise InvalidArgumentError(
            f"Expected an entity, an entity class or an entity name, got {type(entity).__name__}."
        )

    def set_table_gateway(self, entity: EntityRef, gateway: GatewayOrClass) -> None:
        if not self._is_gateway(gateway):
            raise InvalidArgumentError(f"{gateway!r} is not a TableGateway instance or subclass.")
        name = self.resolve_entity_type(entity).__name__
        self._gateway_map[name] = gateway
        self._gateways.pop(name, None)

    def get_table_gateway(self, entity: EntityRef) -> TableGateway:
        entity_type = self.resolve_entity_type(entity)
        name = entity_type.__name__
        gateway = self._gateways.get(name)
        if gateway is not None:
            return gateway

        candidate = self._gateway_map.get(name)
        if candidate is None:
            candidate = entity_type._meta.gateway
        if candidate is None:
            candidate = self.configuration.default_gateway
        if candidate is None:
            raise InvalidArgumentError(f"No table gateway configured for entity '{name}'.")
        if not self._is_gateway(candidate):
            raise InvalidArgumentError(f"Gateway for '{name}' is not a TableGateway: {candidate!r}.")

        gateway = candidate if isinstance(candidate, TableGateway) else candidate(entity_type)
        gateway.bind(self)
        self._gateways[name] = gateway
        self.logger.debug("Gateway %r bound for %s", gateway, name)
        return gateway

    @staticmethod
    def _is_gateway(candidate: Any) -> bool:
        if isinstance(candidate, TableGateway):
            return True
        return isinstance(candidate, type) and issubclass(candidate, TableGateway)

    # ------------------------------------------------------------------ #
    # Identity map access
    # ------------------------------------------------------------------ #
    def is_managed(self, entity: Entity) -> bool:
        return self.identity_map.has(entity)

    def loaded(self, entity: EntityRef, identity: Any) -> Optional[Entity]:
        """
        Return the managed instance for ``identity`` without touching the store.
        """
        gateway = self.get_table_gateway(entity)
        return self.identity_map.get(gateway.entity_type, gateway.normalize_identity(identity))

    def load_entity(self, entity: EntityRef, row: Any) -> Entity:
        gateway = self.get_table_gateway(entity)
        identity = gateway.get_primary_key(row)
        managed = self.identity_map.get(gateway.entity_type, identity)
        if managed is not None:
            return managed

        instance = gateway.new_instance()
        # Registered before population so reference cycles resolve to this instance.
        self.identity_map.put(instance, identity)
        gateway.load_entity(row, instance)
        self.identity_map.commit(instance)
        return instance

    def load_entities(self, entity: EntityRef, rows: Iterable[Any]) -> List[Entity]:
        return [self.load_entity(entity, row) for row in rows]

    def _require_managed(self, entity: Entity, operation: str) -> None:
        if not isinstance(entity, Entity):
            raise InvalidArgumentError(f"Cannot {operation} {entity!r}: not an entity.")
        if not self.identity_map.has(entity):
            raise EntityStateError(f"Cannot {operation} {entity!r}: entity is not managed.")

    def _check_new_identity(self, gateway: TableGateway, entity: Entity, identity: Tuple[Any, ...]) -> None:
        if any(value is None for value in identity):
            raise InvalidArgumentError(f"Cannot update {entity!r}: identity {identity!r} has an empty member.")
        holder = self.identity_map.get(gateway.entity_type, identity)
        if holder is not None and holder is not entity:
            raise EntityStateError(
                f"Cannot update {entity!r}: another instance with identity {identity!r} is managed."
            )

    @staticmethod
    def _check_affected(count: int, operation: str, entity: Entity) -> None:
        if count == 0:
            raise NoResultError(f"{operation.capitalize()} of {entity!r} affected no rows.")
        if count > 1:
            raise NonUniqueResultError(f"{operation.capitalize()} of {entity!r} affected {count} rows.")

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def fetch_all(self, entity: EntityRef, expressions: Any = ()) -> List[Entity]:
        gateway = self.get_table_gateway(entity)
        translation = gateway.translate(expressions)
        rows = gateway.fetch_rows(gateway.entity_query(translation.query))
        self.logger.debug("fetch_all %s returned %d rows", gateway.entity_type.__name__, len(rows))
        return self.load_entities(gateway.entity_type, rows)

    def fetch_one(self, entity: EntityRef, expressions: Any = ()) -> Entity:
        gateway = self.get_table_gateway(entity)
        query = gateway.entity_query(gateway.translate(expressions).query)
        if query.limit is None:
            query = query.with_limit(2, query.offset)
        rows = gateway.fetch_rows(query)
        name = gateway.entity_type.__name__
        if not rows:
            raise NoResultError(f"No {name} matches {expressions!r}.")
        if len(rows) > 1:
            raise NonUniqueResultError(f"More than one {name} matches {expressions!r}.")
        return self.load_entity(gateway.entity_type, rows[0])

    def fetch_page(self, entity: EntityRef, expressions: Any = ()) -> Paginator:
        gateway = self.get_table_gateway(entity)
        translation = gateway.translate(expressions)
        return Paginator(
            self,
            gateway.entity_type,
            translation.query,
            page_number=translation.page_number,
            page_size=translation.page_size,
            item_offset=translation.query.offset,
        )

    def fetch_pairs(
        self, entity: EntityRef, id_field: str, label_field: str, expressions: Any = ()
    ) -> Dict[Any, Any]:
        """
        Return an ordered ``{id: label}`` mapping without materialising entities.
        """
        gateway = self.get_table_gateway(entity)
        projection = gateway.select_pairs(id_field, label_field)
        translation = gateway.translate(expressions, projection)
        return gateway.fetch_pairs(translation.query, id_field, label_field)

    def retrieve(self, entity: EntityRef, identity: Any) -> Entity:
        gateway = self.get_table_gateway(entity)
        identity = gateway.normalize_identity(identity)
        managed = self.identity_map.get(gateway.entity_type, identity)
        if managed is not None:
            return managed
        row = gateway.retrieve(identity)
        return self.load_entity(gateway.entity_type, row)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def create(self, entity: Entity) -> Entity:
        if not isinstance(entity, Entity):
            raise InvalidArgumentError(f"Cannot create {entity!r}: not an entity.")
        if self.identity_map.has(entity):
            raise EntityStateError(f"Cannot create {entity!r}: entity is already managed.")
        gateway = self.get_table_gateway(entity)
        self.hooks.fire(LifecycleEvent.PRE_PERSIST, entity, persister=self)

        identity = gateway.identity_of(entity)
        if all(value is not None for value in identity) and (
            self.identity_map.get(gateway.entity_type, identity) is not None
        ):
            raise EntityStateError(
                f"Cannot create {entity!r}: another instance with identity {identity!r} is managed."
            )

        gateway.bind_references(entity)
        identity = gateway.insert(gateway.load_row(entity))
        gateway.update_entity_identifier(entity, identity)
        gateway.bind_references(entity)
        self.identity_map.put(entity, identity)

        self.hooks.fire(LifecycleEvent.POST_PERSIST, entity, persister=self)
        self.logger.debug("Created %s%r", type(entity).__name__, identity)
        return entity

    def update(self, entity: Entity) -> Entity:
        """
        Write the fields changed since the last synchronisation.

        An unchanged entity is left alone: no statement, no lifecycle events.
        """
        self._require_managed(entity, "update")
        gateway = self.get_table_gateway(entity)
        gateway.bind_references(entity)
        original = self.identity_map.get_original(entity)
        change_set = gateway.compute_change_set(original, entity)
        if not change_set:
            self.logger.debug("Update of %r skipped, nothing changed", entity)
            return entity

        identity = self.identity_map.get_id(entity)
        self.hooks.fire(
            LifecycleEvent.PRE_UPDATE, entity, persister=self, original=original, change_set=change_set
        )
        change_set = gateway.compute_change_set(original, entity)
        if not change_set:
            self.logger.debug("Update of %r skipped, handlers reverted every change", entity)
            return entity

        new_identity = gateway.identity_of(entity)
        rekeyed = new_identity != identity
        if rekeyed:
            self._check_new_identity(gateway, entity, new_identity)
        count = gateway.update(change_set, identity)
        self._check_affected(count, "update", entity)

        if rekeyed:
            self.identity_map.remove(entity)
            if not self.identity_map.put(entity, new_identity):
                raise EntityStateError(f"Cannot manage {entity!r} under identity {new_identity!r}.")
        else:
            self.identity_map.commit(entity)

        self.hooks.fire(LifecycleEvent.POST_UPDATE, entity, persister=self, change_set=change_set)
        self.logger.debug("Updated %s%r fields=%s", type(entity).__name__, identity, sorted(change_set))
        return entity

    def delete(self, entity: Entity) -> None:
        self._require_managed(entity, "delete")
        gateway = self.get_table_gateway(entity)
        identity = self.identity_map.get_id(entity)
        self.hooks.fire(LifecycleEvent.PRE_REMOVE, entity, persister=self)
        count = gateway.delete(identity)
        self._check_affected(count, "delete", entity)
        self.identity_map.remove(entity)
        self.hooks.fire(LifecycleEvent.POST_REMOVE, entity, persister=self)
        self.logger.debug("Deleted %s%r", type(entity).__name__, identity)

    # ------------------------------------------------------------------ #
    # Snapshot helpers
    # ------------------------------------------------------------------ #
    def compute_change_set(self, entity: Entity) -> Dict[str, Any]:
        self._require_managed(entity, "inspect")
        gateway = self.get_table_gateway(entity)
        return gateway.compute_change_set(self.identity_map.get_original(entity), entity)

    def revert(self, entity: Entity) -> None:
        """
        Restore the field values of the last synchronisation into ``entity``.
        """
        self._require_managed(entity, "revert")
        gateway = self.get_table_gateway(entity)
        gateway.restore(entity, self.identity_map.get_original(entity))

    def detach(self, entity: Entity) -> bool:
        return self.identity_map.remove(entity)

    def clear(self) -> None:
        self.identity_map.clear()
