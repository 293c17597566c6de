"""
SQLite adapter built on the standard library ``sqlite3`` module.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Callable, Iterable, Optional, Sequence

from ..dialects.sqlite import SQLiteDialect
from ..utils import get_logger, redact_params, resolve_slow_query_ms, time_call
from .base import DatabaseAdapter
from .config import ConnectionConfig
from .errors import AdapterConnectionError, AdapterExecutionError

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")
FILE_PREFIX = "sqlite:///"
DEFAULT_TIMEOUT = 5.0


class SQLiteAdapter(DatabaseAdapter):
    """
    Runs statements for the table gateways against one SQLite connection.

    Rows come back as :class:`sqlite3.Row`, so gateways can read them by
    column name. Driver errors are re-raised as adapter errors and every
    statement is timed against the slow-query threshold.
    """

    def __init__(self, *, slow_query_ms: int | None = None) -> None:
        self.dialect = SQLiteDialect()
        self.slow_query_ms = resolve_slow_query_ms(override=slow_query_ms)
        self.config: Optional[ConnectionConfig] = None
        self._connection: Optional[sqlite3.Connection] = None
        self.logger = get_logger("adapters.sqlite")

    def __repr__(self) -> str:
        target = self.config.descriptive_label() if self.config else "disconnected"
        return f"<SQLiteAdapter {target}>"

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise AdapterConnectionError("SQLiteAdapter is not connected.")
        return self._connection

    # Connection lifecycle ----------------------------------------------
    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        try:
            connection = sqlite3.connect(
                self.database_path(config.url),
                isolation_level=None if config.autocommit else "",
                timeout=DEFAULT_TIMEOUT if config.timeout is None else config.timeout,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise AdapterConnectionError(f"Cannot open {config.descriptive_label()}: {exc}") from exc

        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        if config.isolation_level:
            connection.isolation_level = config.isolation_level

        self._connection, self.config = connection, config
        self.logger.debug("Connected to %s", config.descriptive_label())
        return connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    # Statements --------------------------------------------------------
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        params = tuple(params or ())
        redacted = redact_params(params)
        cursor = self._run("sqlite.execute", sql, lambda cur: cur.execute(sql, params), params=redacted)
        self.logger.debug("SQL executed", extra={"sql": sql, "params": redacted})
        return cursor

    def executemany(
        self, sql: str, seq_of_params: Sequence[Sequence[Any]] | Iterable[Sequence[Any]]
    ) -> sqlite3.Cursor:
        return self._run("sqlite.executemany", sql, lambda cur: cur.executemany(sql, seq_of_params))

    def _run(
        self, label: str, sql: str, action: Callable[[sqlite3.Cursor], Any], *, params: Any = None
    ) -> sqlite3.Cursor:
        cursor = self.connection.cursor()
        try:
            with time_call(label, self.logger, sql=sql, params=params, threshold_ms=self.slow_query_ms):
                action(cursor)
        except sqlite3.Error as exc:
            raise AdapterExecutionError(f"{exc} while executing: {sql}") from exc
        return cursor

    def last_insert_id(self, cursor: sqlite3.Cursor, table: str, pk_column: str) -> Any:
        return cursor.lastrowid

    # Transactions ------------------------------------------------------
    def begin(self) -> None:
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    @staticmethod
    def database_path(url: str) -> str:
        """
        Map a ``sqlite:///path`` URL to the path ``sqlite3.connect`` expects.
        """
        if url in MEMORY_URLS:
            return ":memory:"
        if url.startswith(FILE_PREFIX):
            return url[len(FILE_PREFIX):]
        return url
