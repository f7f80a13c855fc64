"""Error handling framework for OrderDesk.

This package provides:
- Error code registry with E-XXXX format codes
- Remote platform failure translation to friendly messages
- Error formatting for operator-facing output
- Typed domain exceptions for API seams

Error categories:
- E-1xxx: Order data errors
- E-3xxx: Remote platform errors
- E-4xxx: System/internal errors
"""

from src.errors.domain import DomainError, NotFoundError, ValidationError
from src.errors.formatter import (
    OrderDeskError,
    format_error,
)
from src.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
)
from src.errors.remote_translation import (
    HTTP_STATUS_MAP,
    translate_remote_error,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    # Remote translation
    "translate_remote_error",
    "HTTP_STATUS_MAP",
    # Formatter
    "OrderDeskError",
    "format_error",
    # Domain
    "DomainError",
    "NotFoundError",
    "ValidationError",
]
