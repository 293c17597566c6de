"""
Errors raised while translating query expression lists.
"""

from __future__ import annotations


class QueryError(ValueError):
    """Base class for query expression translation failures."""


class MalformedQueryError(QueryError):
    """A recognised operator was used with invalid arguments."""


class UnsupportedOperatorError(QueryError):
    """A positional expression does not name a supported operator."""

    def __init__(self, token: object) -> None:
        self.token = token
        super().__init__(f"Operator {token!r} not implemented.")


class UnsupportedSyntaxError(QueryError):
    """The expression uses syntax the translator deliberately rejects."""
