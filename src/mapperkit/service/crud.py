"""
CRUD service shielding callers from persistence internals.
"""

from __future__ import annotations

import re
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Type

from ..core.entity import Entity
from ..persistence.errors import InvalidArgumentError
from ..persistence.persister import Persister
from ..query import iter_expressions
from ..utils import get_logger
from ..validation import ValidationError, validate_instance
from .errors import ServiceError
from .result import STATUS_SUCCESS, STATUS_VALIDATION_ERROR, Result

_SELECT_RE = re.compile(r"^select\((.*)\)$")

Errors = Dict[str, List[str]]


class CrudService:
    """
    Create/retrieve/update/delete/fetch operations for one entity type.

    Every operation returns a :class:`Result`. Invalid input is reported
    through ``STATUS_VALIDATION_ERROR``; any other failure is logged with an
    error id and re-raised as :class:`ServiceError`.
    """

    def __init__(
        self,
        entity_type: Type[Entity] | str,
        persister: Persister,
        *,
        validator: Callable[[Entity], None] = validate_instance,
    ) -> None:
        self.persister = persister
        self.entity_type = persister.resolve_entity_type(entity_type)
        self.validator = validator
        self.logger = get_logger("service.crud")

    @contextmanager
    def _shielded(self, message: str) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            error_id = f"shield-{uuid.uuid4().hex}"
            self.logger.error("[errorId:%s] %s: %s", error_id, message, exc, exc_info=True)
            raise ServiceError(
                f"An error has occurred while running service [errorId:{error_id}] "
                f"(details may be found in the application log): {message}",
                error_id=error_id,
            ) from exc

    # Reads -------------------------------------------------------------
    def fetch_all(self, expressions: Any = ()) -> Result:
        with self._shielded("Unable to fetch entities matching given criteria."):
            entities = self.persister.fetch_all(self.entity_type, expressions)
        return Result(STATUS_SUCCESS, entities)

    def fetch_one(self, expressions: Any = ()) -> Result:
        with self._shielded("Unable to fetch a single entity matching given criteria."):
            entity = self.persister.fetch_one(self.entity_type, expressions)
        return Result(STATUS_SUCCESS, entity)

    def fetch_page(self, expressions: Any = ()) -> Result:
        with self._shielded("Unable to fetch paginated entities matching criteria."):
            paginator = self.persister.fetch_page(self.entity_type, expressions)
        return Result(STATUS_SUCCESS, paginator)

    def fetch_pairs(self, id_field: str = "id", label_field: str = "name", expressions: Any = ()) -> Result:
        """
        Fetch ``{id: label}`` pairs; the projection is chosen here, so
        ``expressions`` may not carry its own ``select``.
        """
        items: List[Any] = []
        for key, value in iter_expressions(expressions):
            if key is None:
                if isinstance(value, str) and _SELECT_RE.match(value.strip()):
                    raise InvalidArgumentError(
                        f"The specified expressions already have a 'select' operator: {value!r}"
                    )
                items.append(value)
            else:
                items.append((key, value))
        items.append(f"select({id_field},{label_field})")

        with self._shielded("Unable to fetch key/value pairs matching given criteria."):
            pairs = self.persister.fetch_pairs(self.entity_type, id_field, label_field, items)
        return Result(STATUS_SUCCESS, pairs)

    def get_default(self) -> Result:
        with self._shielded("Unable to get default value of the entity."):
            entity = self.entity_type()
        return Result(STATUS_SUCCESS, entity)

    def retrieve(self, id: Any = None) -> Result:
        if id is None:
            raise InvalidArgumentError("Unable to retrieve entity: the identifier is missing.")
        with self._shielded(f"Unable to retrieve entity matching id {id!r}."):
            entity = self.persister.retrieve(self.entity_type, id)
        return Result(STATUS_SUCCESS, entity)

    # Writes ------------------------------------------------------------
    def create(self, data: Mapping[str, Any]) -> Result:
        with self._shielded("Unable to create entity."):
            entity = self.entity_type()
            errors = self.populate(entity, data)
            self._validate(entity, errors)
            if errors:
                return Result(STATUS_VALIDATION_ERROR, dict(data), errors)
            self.persister.create(entity)
        return Result(STATUS_SUCCESS, entity)

    def update(self, id: Any, data: Mapping[str, Any]) -> Result:
        if id is None:
            raise InvalidArgumentError("Unable to update entity: the identifier is missing.")
        with self._shielded(f"Unable to update entity matching id {id!r}."):
            entity = self.persister.retrieve(self.entity_type, id)
            errors = self.populate(entity, data, include_identifier=False)
            self._validate(entity, errors)
            if errors:
                self.persister.revert(entity)
                return Result(STATUS_VALIDATION_ERROR, dict(data), errors)
            try:
                self.persister.update(entity)
            except Exception:
                self.persister.revert(entity)
                raise
        return Result(STATUS_SUCCESS, entity)

    def delete(self, id: Any = None) -> Result:
        if id is None:
            raise InvalidArgumentError("Unable to delete entity: the identifier is missing.")
        with self._shielded(f"Unable to delete entity matching id {id!r}."):
            entity = self.persister.retrieve(self.entity_type, id)
            self.persister.delete(entity)
        return Result(STATUS_SUCCESS, entity)

    # Helpers -----------------------------------------------------------
    def populate(self, entity: Entity, data: Mapping[str, Any], *, include_identifier: bool = True) -> Errors:
        """
        Copy known fields from ``data`` into ``entity``, collecting conversion errors.
        """
        errors: Errors = {}
        meta = entity._meta
        for name, value in data.items():
            if not meta.has_field(name):
                continue
            if not include_identifier and meta.get_field(name).primary_key:
                continue
            try:
                setattr(entity, name, value)
            except (TypeError, ValueError) as exc:
                errors.setdefault(name, []).append(str(exc))
        return errors

    def _validate(self, entity: Entity, errors: Errors) -> None:
        try:
            self.validator(entity)
        except ValidationError as exc:
            for name, messages in exc.errors.items():
                known = errors.setdefault(name, [])
                known.extend(message for message in messages if message not in known)
