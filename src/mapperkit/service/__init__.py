"""
CRUD service layer on top of the persister.
"""

from .crud import CrudService
from .errors import ServiceError
from .result import STATUS_SUCCESS, STATUS_VALIDATION_ERROR, Result

__all__ = ["CrudService", "Result", "STATUS_SUCCESS", "STATUS_VALIDATION_ERROR", "ServiceError"]
