"""
Validation pipeline run by the CRUD service before writes.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..core.entity import Entity
from ..core.fields import Field
from .errors import NON_FIELD_ERRORS, ValidationError


def validate_instance(instance: Entity) -> None:
    """
    Run field validators and the entity's ``clean`` hook, collecting every failure.
    """
    errors: Dict[str, List[str]] = {}

    for field_obj in instance._meta.get_fields():
        name = field_obj.require_name()
        try:
            _validate_field(field_obj, getattr(instance, name))
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)
        except (TypeError, ValueError) as exc:
            errors.setdefault(name, []).append(str(exc))

    try:
        instance.clean()
    except ValidationError as exc:
        _merge_errors(errors, exc.errors)
    except (TypeError, ValueError) as exc:
        errors.setdefault(NON_FIELD_ERRORS, []).append(str(exc))

    if errors:
        raise ValidationError(errors)


def _validate_field(field_obj: Field, value: Any) -> None:
    if value is None:
        # Identifiers may be generated by the store.
        if field_obj.primary_key or field_obj.nullable:
            return
        raise ValidationError({field_obj.require_name(): ["This field cannot be null."]})
    field_obj.run_validators(value)


def _merge_errors(target: Dict[str, List[str]], source: Dict[str, List[str]]) -> None:
    for name, messages in source.items():
        target.setdefault(name, []).extend(messages)
