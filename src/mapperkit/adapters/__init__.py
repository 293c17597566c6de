"""
Store connectivity: the adapter interface, its SQLite implementation and
connection settings.
"""

from .base import DatabaseAdapter
from .config import ConnectionConfig
from .errors import AdapterConfigurationError, AdapterConnectionError, AdapterError, AdapterExecutionError
from .sqlite import SQLiteAdapter

__all__ = [
    "AdapterConfigurationError",
    "AdapterConnectionError",
    "AdapterError",
    "AdapterExecutionError",
    "ConnectionConfig",
    "DatabaseAdapter",
    "SQLiteAdapter",
]
