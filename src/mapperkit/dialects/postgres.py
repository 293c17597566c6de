"""
PostgreSQL dialect.
"""

from __future__ import annotations

from .base import DialectCapabilities, QuotedDialect


class PostgresDialect(QuotedDialect):
    """
    pyformat parameters, schema-qualified tables and ``INSERT ... RETURNING``.
    """

    name = "postgresql"
    placeholder = "%s"
    capabilities = DialectCapabilities(supports_returning=True, supports_schema_namespaces=True)
