"""
Field validators run by :func:`~mapperkit.validation.validate_instance`.

A validator is any callable taking the field value and raising
``ValueError`` with a user-facing message when the value is unacceptable.
"""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, ClassVar, Protocol


class Validator(Protocol):
    def __call__(self, value: Any) -> None: ...


class _BoundValidator:
    template: ClassVar[str]
    violates: ClassVar[Callable[[Any, Any], bool]]

    def __init__(self, limit: float, message: str | None = None) -> None:
        self.limit = limit
        self.message = message or self.template.format(limit=limit)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.limit!r})"

    def __call__(self, value: Any) -> None:
        if value is not None and type(self).violates(value, self.limit):
            raise ValueError(self.message)


class MinValueValidator(_BoundValidator):
    template = "Ensure value is greater than or equal to {limit}."
    violates = operator.lt


class MaxValueValidator(_BoundValidator):
    template = "Ensure value is less than or equal to {limit}."
    violates = operator.gt


class RegexValidator:
    """
    Require string values to match ``pattern`` from their first character.
    """

    def __init__(self, pattern: str, message: str | None = None, *, flags: int = 0) -> None:
        self.pattern = re.compile(pattern, flags)
        self.message = message or f"Value does not match {pattern!r}."

    def __call__(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, str):
            raise ValueError("Value must be a string.")
        if self.pattern.match(value) is None:
            raise ValueError(self.message)
