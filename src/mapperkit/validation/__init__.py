"""
Entity validation used by the CRUD service.
"""

from .errors import NON_FIELD_ERRORS, ValidationError
from .pipeline import validate_instance
from .validators import MaxValueValidator, MinValueValidator, RegexValidator, Validator

__all__ = [
    "NON_FIELD_ERRORS",
    "MaxValueValidator",
    "MinValueValidator",
    "RegexValidator",
    "ValidationError",
    "Validator",
    "validate_instance",
]
