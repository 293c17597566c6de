"""
SQL compilation of native select queries.
"""

from __future__ import annotations

from typing import Any, List, Tuple

from ..dialects.base import Dialect
from .native import EQUALS, IS_NULL, LIKE, Condition, SelectQuery


class SQLCompiler:
    """
    Compile a :class:`SelectQuery` into SQL statements and parameters.
    """

    def __init__(self, query: SelectQuery, dialect: Dialect) -> None:
        self.query = query
        self.dialect = dialect

    def compile(self) -> Tuple[str, List[Any]]:
        sql_parts: List[str] = [f"SELECT {self._build_select_list()}", "FROM", self._table()]
        where_sql, params = self._compile_where()
        if where_sql:
            sql_parts.append("WHERE")
            sql_parts.append(where_sql)

        if self.query.order_by:
            order_sql = ", ".join(
                f"{self.dialect.quote_identifier(term.column)} {term.direction}"
                for term in self.query.order_by
            )
            sql_parts.append("ORDER BY")
            sql_parts.append(order_sql)

        limit_clause = self.dialect.limit_clause(self.query.limit, self.query.offset)
        if limit_clause:
            sql_parts.append(limit_clause)

        return " ".join(sql_parts), params

    def compile_count(self) -> Tuple[str, List[Any]]:
        """
        Count the rows matched by the query, ignoring projection, order and limit.
        """
        sql_parts: List[str] = ["SELECT COUNT(*) FROM", self._table()]
        where_sql, params = self._compile_where()
        if where_sql:
            sql_parts.append("WHERE")
            sql_parts.append(where_sql)
        return " ".join(sql_parts), params

    # Helpers -----------------------------------------------------------
    def _table(self) -> str:
        return self.dialect.format_table(self.query.table)

    def _build_select_list(self) -> str:
        if not self.query.columns:
            return "*"
        return self.dialect.column_list(self.query.columns)

    def _compile_where(self) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        params: List[Any] = []
        for condition in self.query.conditions:
            sql, condition_params = self._compile_condition(condition)
            parts.append(sql)
            params.extend(condition_params)
        return " AND ".join(parts), params

    def _compile_condition(self, condition: Condition) -> Tuple[str, List[Any]]:
        if condition.operator == IS_NULL:
            return f"{self.dialect.quote_identifier(condition.column)} IS NULL", []
        if condition.operator not in (EQUALS, LIKE):
            raise ValueError(f"Unsupported operator '{condition.operator}'")
        return self.dialect.comparison(condition.column, condition.operator), [condition.value]
