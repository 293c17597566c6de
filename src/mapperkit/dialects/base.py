"""
SQL rendering strategies shared by the compiler and the table gateways.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterable, Protocol


@dataclass(frozen=True)
class DialectCapabilities:
    supports_returning: bool = False
    supports_schema_namespaces: bool = False


class Dialect(Protocol):
    name: str
    capabilities: DialectCapabilities

    def quote_identifier(self, identifier: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def column_list(self, columns: Iterable[str]) -> str: ...

    def comparison(self, column: str, operator: str = "=") -> str: ...

    def returning_clause(self, columns: Iterable[str]) -> str: ...

    def limit_clause(self, limit: int | None, offset: int | None) -> str: ...

    def parameter_placeholder(self, position: int | None = None) -> str: ...


class QuotedDialect:
    """
    Base dialect for stores quoting identifiers with double quotes.

    Subclasses pick the placeholder token and their capabilities; anything
    else they render differently is an override.
    """

    name: ClassVar[str] = "ansi"
    placeholder: ClassVar[str] = "?"
    capabilities: ClassVar[DialectCapabilities] = DialectCapabilities()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def quote_identifier(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def format_table(self, table_name: str) -> str:
        if self.capabilities.supports_schema_namespaces and "." in table_name:
            return ".".join(self.quote_identifier(part) for part in table_name.split(".", 1))
        return self.quote_identifier(table_name)

    def column_list(self, columns: Iterable[str]) -> str:
        return ", ".join(self.quote_identifier(column) for column in columns)

    def comparison(self, column: str, operator: str = "=") -> str:
        """
        Render ``"column" <operator> <placeholder>`` for one bound parameter.
        """
        return f"{self.quote_identifier(column)} {operator} {self.parameter_placeholder()}"

    def returning_clause(self, columns: Iterable[str]) -> str:
        if not self.capabilities.supports_returning:
            raise NotImplementedError(f"{self.name} cannot return generated values from INSERT.")
        return f"RETURNING {self.column_list(columns)}"

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        clauses = []
        if limit is not None:
            clauses.append(f"LIMIT {limit}")
        if offset is not None:
            clauses.append(f"OFFSET {offset}")
        return " ".join(clauses)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return self.placeholder
