"""
Field definitions and descriptors for MapperKit entities.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable, Optional, Sequence, cast

if TYPE_CHECKING:
    from .entity import Entity


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for entity field descriptors.

    A field owns the storage slot of one attribute on every instance of its
    entity type, and converts values between their domain form
    (:meth:`to_python`) and the form written to the store (:meth:`to_db`).
    The descriptors collected on an entity class are the only way the
    persistence layer reads or writes entity state.

    Subclasses implement :meth:`convert` and, where the stored form differs,
    :meth:`prepare`; ``None`` never reaches either.
    """

    kind: ClassVar[str] = "value"
    _counter = itertools.count()

    def __init__(
        self,
        *,
        primary_key: bool = False,
        nullable: bool = True,
        default: Any = None,
        db_column: Optional[str] = None,
        choices: Optional[Sequence[Any]] = None,
        validators: Optional[Iterable[Callable[[Any], None]]] = None,
    ) -> None:
        self.primary_key = primary_key
        self.nullable = nullable
        self.default = default
        self.db_column = db_column
        self.choices = tuple(choices) if choices is not None else None
        self.validators = list(validators or [])

        self.entity: type["Entity"] | None = None
        self.name: str | None = None
        # Declaration order; the metaclass sorts fields by it.
        self.creation_counter = next(Field._counter)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        values = cast("Entity", instance)._field_values
        name = self.require_name()
        if name not in values:
            # Reads never assign; unloaded columns stay out of snapshots.
            return self.get_default()
        return values[name]

    def __set__(self, instance: object, value: Any) -> None:
        cast("Entity", instance)._field_values[self.require_name()] = self.clean(value)

    # Metadata ------------------------------------------------------------
    def contribute_to_class(self, entity: type["Entity"], name: str) -> None:
        """
        Attach the field to the entity class as a descriptor.
        """
        self.entity = entity
        self.name = name
        if self.db_column is None:
            self.db_column = name
        setattr(entity, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def column_name(self) -> str:
        return self.db_column or self.require_name()

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def get_default(self) -> Any:
        return self.default() if callable(self.default) else self.default

    # Conversion ----------------------------------------------------------
    def clean(self, value: Any) -> Any:
        """
        Check and convert a value assigned to the attribute.
        """
        if value is None:
            if not (self.nullable or self.primary_key):
                raise ValueError(f"Field '{self.name}' cannot be None")
            return None
        if self.choices is not None and value not in self.choices:
            raise ValueError(f"Value {value!r} for field '{self.name}' not in choices {self.choices}")
        return self.to_python(value)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return self.convert(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid {self.kind} {value!r} for field '{self.name}'") from exc

    def to_db(self, value: Any) -> Any:
        return None if value is None else self.prepare(value)

    def convert(self, value: Any) -> Any:
        return value

    def prepare(self, value: Any) -> Any:
        return value

    def run_validators(self, value: Any) -> None:
        for validator in self.validators:
            validator(value)


class IntegerField(Field):
    kind = "integer"

    def convert(self, value: Any) -> int:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError("fractional value")
        return int(value)


class AutoField(IntegerField):
    """
    Store-generated integer identifier, added to entities declaring none.
    """

    def __init__(self) -> None:
        super().__init__(primary_key=True, nullable=False)


class FloatField(Field):
    kind = "float"

    def convert(self, value: Any) -> float:
        return float(value)


class BooleanField(Field):
    kind = "boolean"

    _TRUE = frozenset({"true", "t", "1", "yes"})
    _FALSE = frozenset({"false", "f", "0", "no"})

    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    @property
    def has_default(self) -> bool:
        return True

    def convert(self, value: Any) -> bool:
        if isinstance(value, (bool, int, float)):
            return bool(value)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in self._TRUE:
                return True
            if lowered in self._FALSE:
                return False
        raise ValueError(value)

    def prepare(self, value: Any) -> int:
        return int(bool(value))


class StringField(Field):
    kind = "string"

    def __init__(self, *, max_length: int = 255, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        result = super().to_python(value)
        if result is not None and self.max_length and len(result) > self.max_length:
            raise ValueError(f"Value for field '{self.name}' exceeds max_length {self.max_length}")
        return result

    def convert(self, value: Any) -> str:
        return str(value)


class DateTimeField(Field):
    """
    Timestamp field stored as ISO-8601 text.
    """

    kind = "datetime"

    def __init__(self, *, auto_now_add: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.auto_now_add = auto_now_add

    @property
    def has_default(self) -> bool:
        return self.auto_now_add or super().has_default

    def get_default(self) -> Any:
        if self.auto_now_add:
            return datetime.now(timezone.utc)
        return super().get_default()

    def convert(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        raise TypeError(type(value).__name__)

    def prepare(self, value: datetime) -> str:
        return value.isoformat()
