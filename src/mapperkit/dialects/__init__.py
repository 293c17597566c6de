"""
SQL dialects understood by the compiler and the table gateways.
"""

from .base import Dialect, DialectCapabilities, QuotedDialect
from .postgres import PostgresDialect
from .sqlite import SQLiteDialect

__all__ = ["Dialect", "DialectCapabilities", "PostgresDialect", "QuotedDialect", "SQLiteDialect"]
