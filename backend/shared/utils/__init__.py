"""
Utilities module: exceptions and shared schemas.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    InvalidStateError,
    ConflictError,
    DatabaseError,
)
from shared.utils.schemas import ApiResponse

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "InvalidStateError",
    "ConflictError",
    "DatabaseError",
    # schemas
    "ApiResponse",
]
