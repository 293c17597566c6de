"""
SQLite dialect.
"""

from __future__ import annotations

from .base import QuotedDialect


class SQLiteDialect(QuotedDialect):
    """
    qmark parameters; generated keys come from ``cursor.lastrowid``.
    """

    name = "sqlite"
    placeholder = "?"

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        # SQLite only accepts OFFSET after a LIMIT; -1 means unbounded.
        if offset is not None and limit is None:
            limit = -1
        return super().limit_clause(limit, offset)
