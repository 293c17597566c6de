"""
Errors raised by the service layer.
"""

from __future__ import annotations


class ServiceError(RuntimeError):
    """
    Shielded failure of a service call.

    The message names the failed operation and an error id; the underlying
    exception is logged under that id and chained as ``__cause__``.
    """

    def __init__(self, message: str, *, error_id: str) -> None:
        super().__init__(message)
        self.error_id = error_id
