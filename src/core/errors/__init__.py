"""
Error classification and the domain error taxonomy.

Provides:
- ErrorKind enum (re-exported from core.types)
- DomainError tagged union with per-kind constructors
- HTTP status and Retry-After classification utilities
"""

from core.errors.exceptions import (
    RETRYABLE_KINDS,
    DomainError,
    classify_http_status,
    parse_retry_after,
)
from core.types import ErrorKind

__all__ = [
    # Enums
    "ErrorKind",
    # Errors
    "DomainError",
    "RETRYABLE_KINDS",
    # Classification utilities
    "classify_http_status",
    "parse_retry_after",
]
