"""
Errors raised at the store boundary.
"""

from __future__ import annotations


class AdapterError(RuntimeError):
    pass


class AdapterConfigurationError(AdapterError):
    """The connection settings cannot be used."""


class AdapterConnectionError(AdapterError):
    """No usable connection: opening failed, or the adapter was never connected."""


class AdapterExecutionError(AdapterError):
    """The driver rejected a statement; the driver error is chained."""
