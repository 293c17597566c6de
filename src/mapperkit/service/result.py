"""
Service call results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..persistence.errors import InvalidArgumentError

STATUS_SUCCESS = 0
STATUS_VALIDATION_ERROR = 1


@dataclass
class Result:
    """
    Status code, payload and optional field errors of a service call.

    On a validation failure ``data`` holds the submitted input rather than
    an entity, so callers can redisplay it next to ``errors``.
    """

    status: int
    data: Any
    errors: Optional[Dict[str, List[str]]] = None

    def __post_init__(self) -> None:
        if isinstance(self.status, bool) or not isinstance(self.status, int) or not 0 <= self.status <= 255:
            raise InvalidArgumentError(f"Status ({self.status!r}) out of range (0-255).")

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS
