"""
Table gateways mapping rows of one table to entities of one type.
"""

from __future__ import annotations

import copy
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from ..core.entity import Entity
from ..core.fields import Field
from ..core.lazy import LazyReference
from ..core.relations import ReferenceField
from ..query import SQLCompiler, SelectQuery, QueryTranslator, Translation
from ..utils import get_logger
from .errors import EntityStateError, InvalidArgumentError, NonUniqueResultError, NoResultError
from .identity_map import as_identity

if TYPE_CHECKING:
    from ..adapters.base import DatabaseAdapter
    from ..dialects.base import Dialect
    from .persister import Persister


Row = Dict[str, Any]


def row_to_dict(row: Any) -> Row:
    if isinstance(row, Mapping):
        return dict(row)
    return {key: row[key] for key in row.keys()}


class TableGateway:
    """
    Per-entity-type gateway between rows and entity instances.

    A gateway converts rows to entities and back, knows the identifier
    columns of its table and runs native statements through the adapter of
    the persister it is bound to. Subclasses may pin ``entity_type`` and
    ``table_name`` as class attributes.
    """

    entity_type: ClassVar[Optional[Type[Entity]]] = None
    table_name: ClassVar[Optional[str]] = None

    def __init__(self, entity_type: Optional[Type[Entity]] = None, *, table_name: Optional[str] = None) -> None:
        entity_type = entity_type or type(self).entity_type
        if entity_type is None or not (isinstance(entity_type, type) and issubclass(entity_type, Entity)):
            raise InvalidArgumentError(f"{type(self).__name__} needs an entity type, got {entity_type!r}.")
        if not entity_type._meta.identifier:
            raise InvalidArgumentError(f"Entity '{entity_type.__name__}' has no identifier and cannot be mapped.")
        self.entity_type = entity_type
        self.meta = entity_type._meta
        self.table_name = table_name or type(self).table_name or self.meta.table_name
        self.translator = QueryTranslator(entity_type, table_name=self.table_name)
        self.persister: Optional["Persister"] = None
        self.logger = get_logger("persistence.gateway")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.entity_type.__name__} -> {self.table_name}>"

    # Binding -----------------------------------------------------------
    def bind(self, persister: "Persister") -> "TableGateway":
        self.persister = persister
        return self

    def _require_persister(self) -> "Persister":
        if self.persister is None:
            raise EntityStateError(f"{self!r} is not bound to a persister.")
        return self.persister

    @property
    def adapter(self) -> "DatabaseAdapter":
        return self._require_persister().adapter

    @property
    def dialect(self) -> "Dialect":
        return self.adapter.dialect

    # Row <-> entity mapping -------------------------------------------
    def new_instance(self) -> Entity:
        return self.entity_type.blank()

    def load_entity(self, row: Any, entity: Optional[Entity] = None) -> Entity:
        """
        Build an entity from ``row``, or refresh ``entity`` with its values.

        Row keys may be column names or field names. Fields missing from the
        row keep their current value.
        """
        values = row_to_dict(row)
        if entity is None:
            entity = self.new_instance()
        for field_obj in self.meta.get_fields():
            found, raw = self._lookup(values, field_obj)
            if found:
                self._assign(entity, field_obj, field_obj.to_python(raw))
        if self.persister is not None:
            self.bind_references(entity)
        return entity

    def load_row(self, entity: Entity) -> Row:
        return {
            field_obj.column_name(): field_obj.to_db(getattr(entity, field_obj.require_name()))
            for field_obj in self.meta.get_fields()
        }

    def get_primary_key(self, row: Any) -> Tuple[Any, ...]:
        values = row_to_dict(row)
        identity = []
        for field_obj in self.meta.identifier:
            found, raw = self._lookup(values, field_obj)
            if not found or raw is None:
                raise InvalidArgumentError(
                    f"Row for '{self.entity_type.__name__}' lacks identifier column '{field_obj.column_name()}'."
                )
            identity.append(field_obj.to_python(raw))
        return tuple(identity)

    def identity_of(self, entity: Entity) -> Tuple[Any, ...]:
        return tuple(getattr(entity, name) for name in self.meta.identifier_names)

    def normalize_identity(self, identity: Any) -> Tuple[Any, ...]:
        """
        Turn a scalar, sequence or mapping into a typed identity tuple.
        """
        identifier = self.meta.identifier
        if isinstance(identity, Mapping):
            values = []
            for field_obj in identifier:
                for key in (field_obj.require_name(), field_obj.column_name()):
                    if key in identity:
                        values.append(identity[key])
                        break
                else:
                    raise InvalidArgumentError(
                        f"Identity for '{self.entity_type.__name__}' lacks '{field_obj.require_name()}'."
                    )
        else:
            values = list(as_identity(identity))
        if len(values) != len(identifier):
            raise InvalidArgumentError(
                f"'{self.entity_type.__name__}' is identified by {len(identifier)} value(s), got {len(values)}."
            )
        typed = []
        for field_obj, value in zip(identifier, values):
            if value is None:
                raise InvalidArgumentError(f"Identity member '{field_obj.require_name()}' cannot be None.")
            try:
                typed.append(field_obj.to_python(value))
            except ValueError as exc:
                raise InvalidArgumentError(str(exc)) from exc
        return tuple(typed)

    def update_entity_identifier(self, entity: Entity, identity: Iterable[Any]) -> None:
        for field_obj, value in zip(self.meta.identifier, identity):
            self._assign(entity, field_obj, field_obj.to_python(value))

    def compute_change_set(self, original: Mapping[str, Any], entity: Entity) -> Dict[str, Any]:
        """
        Return ``{field name: current value}`` for every field differing from ``original``.
        """
        change_set: Dict[str, Any] = {}
        for name in self.meta.fields:
            current = entity._field_values.get(name)
            if name not in original or original[name] != current:
                change_set[name] = current
        return change_set

    def restore(self, entity: Entity, snapshot: Mapping[str, Any]) -> None:
        for name, value in snapshot.items():
            if self.meta.has_field(name):
                self._assign(entity, self.meta.get_field(name), copy.deepcopy(value))

    def bind_references(self, entity: Entity) -> None:
        """
        Keep reference columns and lazy references of ``entity`` in step.

        A reference assigned as an entity that has since received an identity
        writes that identity into its column; a column value with no matching
        reference gets a pending one resolved through the persister.
        """
        persister = self._require_persister()
        for field_obj in self.meta.get_fields():
            if not isinstance(field_obj, ReferenceField):
                continue
            name = field_obj.require_name()
            reference = entity._related_cache.get(name)
            value = entity._field_values.get(name)
            if reference is not None and reference.is_loaded:
                target = reference.get()
                key = target.pk[0]
                if key is not None and key != value:
                    entity._field_values[name] = field_obj.to_python(key)
                    entity._related_cache[name] = LazyReference.loaded(target)
                continue
            if value is None:
                entity._related_cache.pop(name, None)
                continue
            if reference is None or reference.key != (value,):
                remote = field_obj.require_remote()
                entity._related_cache[name] = LazyReference.pending(
                    remote, (value,), partial(persister.retrieve, remote, value)
                )

    # Query building ----------------------------------------------------
    def translate(self, expressions: Any = (), projection: Optional[Iterable[str]] = None) -> Translation:
        return self.translator.translate(expressions, projection)

    def select_pairs(self, id_field: str, label_field: str) -> Tuple[str, str]:
        for name in (id_field, label_field):
            if not self.meta.has_field(name):
                raise InvalidArgumentError(f"Unknown field '{name}' on entity '{self.entity_type.__name__}'.")
        return (id_field, label_field)

    def entity_query(self, query: SelectQuery) -> SelectQuery:
        """
        Make sure a projected query still reads the identifier columns.
        """
        if not query.columns:
            return query
        missing = [column for column in self.meta.identifier_columns if column not in query.columns]
        return query.with_columns(*missing, *query.columns) if missing else query

    def identity_query(self, identity: Iterable[Any]) -> SelectQuery:
        query = SelectQuery(table=self.table_name)
        for field_obj, value in zip(self.meta.identifier, identity):
            query = query.where(field_obj.column_name(), field_obj.to_db(value))
        return query

    # Reads -------------------------------------------------------------
    def fetch_rows(self, query: SelectQuery) -> List[Row]:
        sql, params = SQLCompiler(query, self.dialect).compile()
        cursor = self.adapter.execute(sql, params)
        return [row_to_dict(row) for row in cursor.fetchall()]

    def fetch_pairs(self, query: SelectQuery, id_field: str, label_field: str) -> Dict[Any, Any]:
        id_obj = self.meta.get_field(id_field)
        label_obj = self.meta.get_field(label_field)
        pairs: Dict[Any, Any] = {}
        for row in self.fetch_rows(query):
            key = id_obj.to_python(row[id_obj.column_name()])
            pairs[key] = label_obj.to_python(row[label_obj.column_name()])
        return pairs

    def count(self, query: SelectQuery) -> int:
        sql, params = SQLCompiler(query, self.dialect).compile_count()
        row = self.adapter.execute(sql, params).fetchone()
        return int(row[0])

    def retrieve(self, identity: Iterable[Any]) -> Row:
        identity = tuple(identity)
        rows = self.fetch_rows(self.identity_query(identity).with_limit(2))
        if not rows:
            raise NoResultError(f"No {self.entity_type.__name__} found for identity {identity!r}.")
        if len(rows) > 1:
            raise NonUniqueResultError(f"Several {self.entity_type.__name__} rows share identity {identity!r}.")
        return rows[0]

    # Writes ------------------------------------------------------------
    def insert(self, row: Mapping[str, Any]) -> Tuple[Any, ...]:
        """
        Insert ``row`` and return the identity of the new record.

        Identifier columns holding ``None`` are left to the store, which
        generates them.
        """
        identifier_columns = self.meta.identifier_columns
        values = {
            column: value
            for column, value in row.items()
            if not (column in identifier_columns and value is None)
        }
        generated = [column for column in identifier_columns if column not in values]

        table = self.dialect.format_table(self.table_name)
        if values:
            columns_sql = self.dialect.column_list(values)
            placeholders = ", ".join(self.dialect.parameter_placeholder() for _ in values)
            sql = f"INSERT INTO {table} ({columns_sql}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"

        returning = bool(generated) and self.dialect.capabilities.supports_returning
        if len(generated) > 1 and not returning:
            raise InvalidArgumentError(
                f"Composite identifier of '{self.entity_type.__name__}' must be assigned before insert."
            )
        if returning:
            sql += " " + self.dialect.returning_clause(generated)
        cursor = self.adapter.execute(sql, list(values.values()))

        generated_values: Dict[str, Any] = {}
        if returning:
            returned = cursor.fetchone()
            generated_values = dict(zip(generated, returned))
        elif generated:
            generated_values[generated[0]] = self.adapter.last_insert_id(cursor, self.table_name, generated[0])

        identity = tuple(
            field_obj.to_python(values.get(field_obj.column_name(), generated_values.get(field_obj.column_name())))
            for field_obj in self.meta.identifier
        )
        self.logger.debug("Inserted %s%r", self.entity_type.__name__, identity)
        return identity

    def update(self, change_set: Mapping[str, Any], identity: Iterable[Any]) -> int:
        if not change_set:
            return 0
        set_clauses = []
        params: List[Any] = []
        for name, value in change_set.items():
            field_obj = self.meta.get_field(name)
            set_clauses.append(self.dialect.comparison(field_obj.column_name()))
            params.append(field_obj.to_db(value))
        where_sql, where_params = self._identity_clause(identity)
        sql = f"UPDATE {self.dialect.format_table(self.table_name)} SET {', '.join(set_clauses)} WHERE {where_sql}"
        cursor = self.adapter.execute(sql, params + where_params)
        return cursor.rowcount

    def delete(self, identity: Iterable[Any]) -> int:
        where_sql, params = self._identity_clause(identity)
        sql = f"DELETE FROM {self.dialect.format_table(self.table_name)} WHERE {where_sql}"
        cursor = self.adapter.execute(sql, params)
        return cursor.rowcount

    # Helpers -----------------------------------------------------------
    def _identity_clause(self, identity: Iterable[Any]) -> Tuple[str, List[Any]]:
        clauses = []
        params = []
        for field_obj, value in zip(self.meta.identifier, identity):
            clauses.append(self.dialect.comparison(field_obj.column_name()))
            params.append(field_obj.to_db(value))
        return " AND ".join(clauses), params

    @staticmethod
    def _lookup(values: Row, field_obj: Field) -> Tuple[bool, Any]:
        column = field_obj.column_name()
        if column in values:
            return True, values[column]
        name = field_obj.require_name()
        if name in values:
            return True, values[name]
        return False, None

    @staticmethod
    def _assign(entity: Entity, field_obj: Field, value: Any) -> None:
        name = field_obj.require_name()
        if isinstance(field_obj, ReferenceField) and entity._field_values.get(name) != value:
            entity._related_cache.pop(name, None)
        entity._field_values[name] = value
