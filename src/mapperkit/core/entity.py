"""
Entity base classes and metadata orchestration for MapperKit.
"""

from __future__ import annotations

import copy
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Iterable, Optional, Tuple, Type

from ..utils import camel_to_snake
from .fields import AutoField, Field
from .relations import ReferenceField, entity_registry

if TYPE_CHECKING:
    from .lazy import LazyReference


class EntityConfigurationError(Exception):
    """Raised when an entity class is misconfigured."""


@dataclass
class EntityOptions:
    """
    Per-type field table calculated once by :class:`EntityMeta`.
    """

    entity: Type["Entity"]
    table_name: str = ""
    abstract: bool = False
    gateway: Any = None
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    identifier: list[Field] = field(default_factory=list)
    columns: Dict[str, Field] = field(default_factory=dict)

    def add_field(self, field_obj: Field, *, inherited: bool = False) -> None:
        name = field_obj.require_name()
        if name in self.fields and not inherited:
            raise EntityConfigurationError(
                f"Duplicate field name '{name}' on entity '{self.entity.__name__}'"
            )
        self.fields[name] = field_obj
        self.columns[field_obj.column_name()] = field_obj
        if field_obj.primary_key and field_obj not in self.identifier:
            self.identifier.append(field_obj)

    @property
    def persistable(self) -> bool:
        return not self.abstract

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError as exc:
            raise KeyError(f"Unknown field '{name}' on entity '{self.entity.__name__}'") from exc

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()

    def field_for_column(self, column: str) -> Optional[Field]:
        return self.columns.get(column)

    @property
    def identifier_names(self) -> Tuple[str, ...]:
        return tuple(f.require_name() for f in self.identifier)

    @property
    def identifier_columns(self) -> Tuple[str, ...]:
        return tuple(f.column_name() for f in self.identifier)


class EntityMeta(type):
    """
    Metaclass collecting field descriptors into :class:`EntityOptions`.

    Fields declared on entity bases are inherited, and a subtype of a
    persistable entity shares its parent's table unless ``Meta.table`` says
    otherwise.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "EntityMeta":
        # The Entity base itself carries no metadata.
        if not any(isinstance(base, EntityMeta) for base in bases):
            return super().__new__(mcls, name, bases, attrs)

        declared_fields: Dict[str, Field] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared_fields[attr_name] = attrs.pop(attr_name)

        cls = super().__new__(mcls, name, bases, attrs)

        persistable_parent = next(
            (
                base
                for base in cls.__mro__[1:]
                if "_meta" in base.__dict__ and base._meta.persistable
            ),
            None,
        )
        table_name = persistable_parent._meta.table_name if persistable_parent else camel_to_snake(name)
        gateway = persistable_parent._meta.gateway if persistable_parent else None
        abstract = False

        meta = cls.__dict__.get("Meta")
        if meta:
            table_name = getattr(meta, "table", table_name)
            abstract = getattr(meta, "abstract", False)
            gateway = getattr(meta, "gateway", gateway)

        options = EntityOptions(entity=cls, table_name=table_name, abstract=abstract, gateway=gateway)
        cls._meta = options

        for base in reversed(cls.__mro__[1:]):
            base_options = base.__dict__.get("_meta")
            if base_options is None:
                continue
            for inherited in base_options.get_fields():
                options.add_field(inherited, inherited=True)

        sorted_fields = sorted(declared_fields.items(), key=lambda item: item[1].creation_counter)
        for attr_name, field_obj in sorted_fields:
            field_obj.contribute_to_class(cls, attr_name)
            options.add_field(field_obj)
            if isinstance(field_obj, ReferenceField):
                entity_registry.register_reference(cls, field_obj)

        if not options.identifier and not options.abstract:
            if "id" in options.fields:
                raise EntityConfigurationError(
                    f"Entity '{cls.__name__}' defines a field named 'id' but no primary key. "
                    "Either set primary_key=True on that field or define a different name."
                )
            auto_field = AutoField()
            auto_field.contribute_to_class(cls, "id")
            options.add_field(auto_field)
            options.fields.move_to_end("id", last=False)

        entity_registry.register_entity(cls)
        return cls


class Entity(metaclass=EntityMeta):
    """
    Base entity providing field storage.

    Persistence is supplied by a :class:`~mapperkit.persistence.Persister`;
    an entity knows nothing about the store it is synchronised with.
    """

    _meta: ClassVar[EntityOptions]

    def __init__(self, **kwargs: Any) -> None:
        self._field_values: Dict[str, Any] = {}
        self._related_cache: Dict[str, "LazyReference"] = {}

        unknown = set(kwargs) - set(self._meta.fields)
        if unknown:
            raise TypeError(
                f"{self.__class__.__name__} got unexpected field(s): {', '.join(sorted(unknown))}"
            )

        for field_obj in self._meta.get_fields():
            name = field_obj.require_name()
            if name in kwargs:
                setattr(self, name, kwargs[name])
            elif field_obj.has_default:
                default_value = field_obj.get_default()
                if default_value is not None:
                    setattr(self, name, default_value)

    @classmethod
    def blank(cls) -> "Entity":
        """
        Return an instance with no field assigned, defaults included.

        Rows are loaded into blank instances so that columns left out of a
        projection are not filled with invented values.
        """
        entity = cls.__new__(cls)
        entity._field_values = {}
        entity._related_cache = {}
        return entity

    def __repr__(self) -> str:
        field_parts = ", ".join(
            f"{name}={self._field_values.get(name)!r}"
            for name in self._meta.fields
            if name in self._field_values
        )
        return f"<{self.__class__.__name__} {field_parts}>"

    @property
    def pk(self) -> Tuple[Any, ...]:
        if not self._meta.identifier:
            raise EntityConfigurationError(
                f"Entity '{self.__class__.__name__}' does not define a primary key."
            )
        return tuple(self._field_values.get(f.require_name()) for f in self._meta.identifier)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self._meta.fields}

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the assigned field values; unassigned fields map to ``None``."""
        return {name: copy.deepcopy(self._field_values.get(name)) for name in self._meta.fields}

    def related(self, name: str) -> "Entity | None":
        """
        Return the entity referenced by the reference field ``name``.
        """
        field_obj = self._meta.get_field(name)
        if not isinstance(field_obj, ReferenceField):
            raise EntityConfigurationError(f"Field '{name}' on '{self.__class__.__name__}' is not a reference.")
        reference = self._related_cache.get(name)
        if reference is None and self._field_values.get(name) is None:
            return None
        if reference is None:
            raise RuntimeError(
                f"Reference '{name}' of {self!r} is not bound to a persister; load or create the entity first."
            )
        return reference.get()

    # Validation --------------------------------------------------------
    def full_clean(self) -> None:
        from ..validation import validate_instance

        validate_instance(self)

    def clean(self) -> None:
        """
        Hook for subclasses to implement entity-level validation.
        """
        return None
