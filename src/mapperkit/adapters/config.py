"""
Connection settings for adapters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict
from urllib.parse import parse_qsl

from .errors import AdapterConfigurationError


def parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(raw)


# Query-string keys lifted onto ConnectionConfig attributes.
URL_SETTINGS: Dict[str, Callable[[str], Any]] = {
    "autocommit": parse_bool,
    "timeout": float,
    "isolation_level": str,
}


@dataclass
class ConnectionConfig:
    """
    Where and how an adapter connects.

    Statements run in autocommit mode unless told otherwise: the persister
    issues one statement per operation and leaves transaction demarcation
    to the caller. ``source`` names the environment variable a config was
    read from, for error messages.
    """

    url: str
    autocommit: bool = True
    isolation_level: str | None = None
    timeout: float | None = None
    options: dict[str, Any] | None = None
    source: str | None = None

    @classmethod
    def from_url(cls, url: str, **overrides: Any) -> "ConnectionConfig":
        """
        Read ``autocommit``, ``timeout`` and ``isolation_level`` from the query
        string; other query keys become ``options``. ``overrides`` win.
        """
        base_url, _, query_string = url.partition("?")
        settings: Dict[str, Any] = {}
        options: Dict[str, Any] = {}
        for key, raw in parse_qsl(query_string):
            parser = URL_SETTINGS.get(key)
            if parser is None:
                options[key] = raw
                continue
            try:
                settings[key] = parser(raw)
            except ValueError as exc:
                raise AdapterConfigurationError(f"Invalid value for '{key}' in connection URL: {raw!r}") from exc

        options.update(overrides.pop("options", None) or {})
        settings.update(overrides)
        return cls(url=base_url, options=options or None, **settings)

    @classmethod
    def from_env(cls, env_var: str, **overrides: Any) -> "ConnectionConfig":
        url = os.getenv(env_var)
        if not url:
            raise AdapterConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_url(url, source=env_var, **overrides)

    def descriptive_label(self) -> str:
        return f"{self.source} ({self.url})" if self.source else self.url
