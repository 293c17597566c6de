"""
Native query objects produced by the translator and consumed by the compiler.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

EQUALS = "="
LIKE = "LIKE"
IS_NULL = "IS NULL"

ASC = "ASC"
DESC = "DESC"


@dataclass(frozen=True)
class Condition:
    column: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class OrderTerm:
    column: str
    direction: str = ASC


@dataclass(frozen=True)
class SelectQuery:
    """
    Flat conjunction of conditions over one table.

    An empty ``columns`` tuple selects every mapped column.
    """

    table: str
    columns: Tuple[str, ...] = ()
    conditions: Tuple[Condition, ...] = field(default_factory=tuple)
    order_by: Tuple[OrderTerm, ...] = field(default_factory=tuple)
    limit: Optional[int] = None
    offset: Optional[int] = None

    def with_columns(self, *columns: str) -> "SelectQuery":
        return replace(self, columns=tuple(columns))

    def with_limit(self, limit: Optional[int], offset: Optional[int] = None) -> "SelectQuery":
        return replace(self, limit=limit, offset=offset)

    def without_limit(self) -> "SelectQuery":
        return replace(self, limit=None, offset=None)

    def where(self, column: str, value: Any) -> "SelectQuery":
        condition = Condition(column, IS_NULL) if value is None else Condition(column, EQUALS, value)
        return replace(self, conditions=self.conditions + (condition,))
