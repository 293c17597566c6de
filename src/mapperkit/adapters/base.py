"""
The adapter interface table gateways talk to.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol, Sequence

from ..dialects.base import Dialect
from .config import ConnectionConfig


class DatabaseAdapter(Protocol):
    """
    One connection to a relational store.

    ``execute`` returns a DB-API style cursor: gateways read ``rowcount``,
    ``fetchone`` and ``fetchall`` from it, with rows addressable by column
    name.
    """

    dialect: Dialect
    slow_query_ms: int

    def connect(self, config: ConnectionConfig) -> Any: ...

    def close(self) -> None: ...

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any: ...

    def executemany(self, sql: str, seq_of_params: Iterable[Sequence[Any]]) -> Any: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def last_insert_id(self, cursor: Any, table: str, pk_column: str) -> Any:
        """Key generated by the insert that produced ``cursor``."""
