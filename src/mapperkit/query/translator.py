"""
Translation of query expression lists into native select queries.

An expression list is an ordered collection of positional operators::

    select(id,name)   sort(+name,-age)   limit(30,10)

and ``field=value`` filters given as ``(key, value)`` pairs or mappings.
Filters form a flat conjunction of equality tests; a ``*`` in a string value
turns the test into a ``LIKE`` pattern.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from .errors import MalformedQueryError, UnsupportedOperatorError, UnsupportedSyntaxError
from .native import ASC, DESC, EQUALS, IS_NULL, LIKE, Condition, OrderTerm, SelectQuery

if TYPE_CHECKING:
    from ..core.entity import Entity


WILDCARD = "*"
GROUP_MARKER = "("

_SELECT_RE = re.compile(r"^select\((.*)\)$")
_SORT_RE = re.compile(r"^sort\((.*)\)$")
_LIMIT_RE = re.compile(r"^limit\(\s*([0-9]+)\s*,\s*([0-9]+)\s*\)$")


class Translation(NamedTuple):
    query: SelectQuery
    page_number: Optional[int] = None
    page_size: Optional[int] = None


def iter_expressions(expressions: Any) -> Iterator[Tuple[Optional[str], Any]]:
    """
    Yield ``(None, operator)`` for positional entries and ``(key, value)`` for filters.
    """
    if expressions is None:
        return
    if isinstance(expressions, str):
        yield None, expressions
        return
    if isinstance(expressions, Mapping):
        for key, value in expressions.items():
            if isinstance(key, int):
                yield None, value
            elif isinstance(key, str):
                yield key, value
            else:
                raise UnsupportedOperatorError(key)
        return
    for item in expressions:
        if isinstance(item, str):
            yield None, item
        elif isinstance(item, Mapping):
            yield from iter_expressions(item)
        elif isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], str):
            yield item[0], item[1]
        else:
            raise UnsupportedOperatorError(item)


class QueryTranslator:
    """
    Translate expression lists for one entity type.

    Operators of the same kind are last-wins. Unknown field names in
    ``select``, ``sort`` and filters are dropped without error, while an
    unknown operator or a grouping key is always an error.
    """

    def __init__(self, entity_type: type["Entity"], *, table_name: Optional[str] = None) -> None:
        self.entity_type = entity_type
        self.meta = entity_type._meta
        self.table_name = table_name or self.meta.table_name

    def translate(
        self, expressions: Iterable[Any] | Mapping[Any, Any] | None = (), projection: Optional[Iterable[str]] = None
    ) -> Translation:
        columns: Tuple[str, ...] = ()
        order_by: Tuple[OrderTerm, ...] = ()
        conditions: List[Condition] = []
        limit_start: Optional[int] = None
        limit_count: Optional[int] = None

        for key, value in iter_expressions(expressions):
            if key is None:
                if not isinstance(value, str):
                    raise UnsupportedOperatorError(value)
                token = value.strip()
                if match := _SELECT_RE.match(token):
                    columns = self._columns_for(_split_arguments(match.group(1)))
                elif match := _SORT_RE.match(token):
                    order_by = self._order_terms(_split_arguments(match.group(1)))
                elif match := _LIMIT_RE.match(token):
                    limit_start, limit_count = int(match.group(1)), int(match.group(2))
                else:
                    raise UnsupportedOperatorError(value)
            else:
                condition = self._condition(key, value)
                if condition is not None:
                    conditions.append(condition)

        if projection is not None:
            columns = self._columns_for(projection)

        query = SelectQuery(
            table=self.table_name,
            columns=columns,
            conditions=tuple(conditions),
            order_by=order_by,
        )

        page_number = page_size = None
        if limit_start is not None and limit_count is not None:
            if limit_count == 0:
                raise MalformedQueryError("The item count of limit(start,count) must be positive.")
            query = query.with_limit(limit_count, limit_start)
            page_number = limit_start // limit_count + 1
            page_size = limit_count
        return Translation(query, page_number, page_size)

    # Helpers -----------------------------------------------------------
    def _column(self, field_name: str) -> Optional[str]:
        if not self.meta.has_field(field_name):
            return None
        return self.meta.get_field(field_name).column_name()

    def _columns_for(self, field_names: Iterable[str]) -> Tuple[str, ...]:
        columns = []
        for name in field_names:
            column = self._column(name)
            if column is not None and column not in columns:
                columns.append(column)
        return tuple(columns)

    def _order_terms(self, fields: Iterable[str]) -> Tuple[OrderTerm, ...]:
        terms = []
        for term in fields:
            if term[:1] == "+":
                direction = ASC
            elif term[:1] == "-":
                direction = DESC
            else:
                raise MalformedQueryError(
                    f"Sort order not specified for property '{term}'. "
                    "It must be preceded by either + or - sign."
                )
            name = term[1:].strip()
            if not name:
                raise MalformedQueryError(f"Sort term '{term}' does not name a property.")
            column = self._column(name)
            if column is not None:
                terms.append(OrderTerm(column, direction))
        return tuple(terms)

    def _condition(self, key: str, value: Any) -> Optional[Condition]:
        if key.startswith(GROUP_MARKER):
            raise UnsupportedSyntaxError(
                "Parenthesis-enclosed group syntax not supported; "
                "only a flat list of field=value filters is accepted."
            )
        column = self._column(key)
        if column is None:
            return None
        if value is None:
            return Condition(column, IS_NULL)
        if isinstance(value, str) and WILDCARD in value:
            return Condition(column, LIKE, value.replace(WILDCARD, "%"))
        field_obj = self.meta.get_field(key)
        try:
            value = field_obj.to_db(field_obj.to_python(value))
        except ValueError as exc:
            raise MalformedQueryError(f"Invalid value {value!r} for filter on '{key}'.") from exc
        return Condition(column, EQUALS, value)


def _split_arguments(arguments: str) -> List[str]:
    return [part.strip() for part in arguments.split(",") if part.strip()]
