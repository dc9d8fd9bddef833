"""
Utilities module: exceptions and schemas.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ForbiddenError,
    InvalidInputError,
    ConflictError,
    InsufficientStockError,
    TransactionConflictError,
    DependencyFailureError,
)
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "ForbiddenError",
    "InvalidInputError",
    "ConflictError",
    "InsufficientStockError",
    "TransactionConflictError",
    "DependencyFailureError",
    # schemas
    "ErrorResponse",
]
