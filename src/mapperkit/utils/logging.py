"""Structured logging helpers for MapperKit."""

from __future__ import annotations

import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Any, Iterable, Optional

ROOT_LOGGER = "mapperkit"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(correlation_id)s | %(name)s | %(message)s"
SLOW_QUERY_ENV_VAR = "MAPPERKIT_SLOW_QUERY_MS"
DEFAULT_SLOW_QUERY_MS = 100
REDACTED_VALUE = "***"

_SENSITIVE_TOKENS = ("password", "secret", "token")

_correlation_id: ContextVar[str | None] = ContextVar("mapperkit_correlation_id", default=None)


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the correlation id of the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def configure_logging(level: int = logging.INFO, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Install one handler on the ``mapperkit`` logger; later calls are no-ops.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        return logger
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def set_correlation_id(value: Optional[str] = None) -> str:
    token = value or uuid.uuid4().hex
    _correlation_id.set(token)
    return token


def get_correlation_id() -> str:
    return _correlation_id.get() or set_correlation_id()


def redact_params(params: Iterable[Any] | None) -> list[Any]:
    """Mask string parameters that look like credentials."""
    return [
        REDACTED_VALUE
        if isinstance(value, str) and any(token in value.lower() for token in _SENSITIVE_TOKENS)
        else value
        for value in params or ()
    ]


def resolve_slow_query_ms(*, default: int = DEFAULT_SLOW_QUERY_MS, override: int | None = None) -> int:
    """
    Pick the slow-query threshold: explicit override, then environment, then default.
    """
    if override is not None:
        return override
    raw = os.getenv(SLOW_QUERY_ENV_VAR)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(f"{ROOT_LOGGER}.utils.logging").warning(
            "Ignoring invalid %s value %r", SLOW_QUERY_ENV_VAR, raw
        )
        return default


class time_call:
    """
    Context manager logging how long a block took.

    Durations at or above ``threshold_ms`` are logged as warnings, the rest
    at DEBUG. The statement and its (already redacted) parameters travel
    as record attributes.
    """

    def __init__(
        self,
        name: str,
        logger: logging.Logger,
        *,
        sql: str | None = None,
        params: Iterable[Any] | None = None,
        threshold_ms: int = DEFAULT_SLOW_QUERY_MS,
    ) -> None:
        self.name = name
        self.logger = logger
        self.sql = sql
        self.params = params
        self.threshold_ms = threshold_ms
        self.elapsed_ms: float | None = None
        self._start = 0.0

    def __enter__(self) -> "time_call":
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed_ms = (time.monotonic() - self._start) * 1000
        level = logging.WARNING if self.elapsed_ms >= self.threshold_ms else logging.DEBUG
        self.logger.log(
            level,
            "%s took %.2fms",
            self.name,
            self.elapsed_ms,
            extra={"sql": self.sql, "params": self.params, "elapsed_ms": self.elapsed_ms},
        )
