"""
Utility helpers shared across MapperKit packages.
"""

from .logging import (
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_params,
    resolve_slow_query_ms,
    set_correlation_id,
    time_call,
)
from .naming import camel_to_snake

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "redact_params",
    "resolve_slow_query_ms",
    "set_correlation_id",
    "time_call",
]
