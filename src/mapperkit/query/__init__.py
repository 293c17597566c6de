"""
Query translation and SQL compilation.
"""

from .compiler import SQLCompiler
from .errors import MalformedQueryError, QueryError, UnsupportedOperatorError, UnsupportedSyntaxError
from .native import ASC, DESC, Condition, OrderTerm, SelectQuery
from .translator import QueryTranslator, Translation, iter_expressions

__all__ = [
    "ASC",
    "DESC",
    "Condition",
    "MalformedQueryError",
    "OrderTerm",
    "QueryError",
    "QueryTranslator",
    "SQLCompiler",
    "SelectQuery",
    "Translation",
    "UnsupportedOperatorError",
    "UnsupportedSyntaxError",
    "iter_expressions",
]
