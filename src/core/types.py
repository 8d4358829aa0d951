"""
Core types shared across modules.

This module provides the enums that classify failures so the delivery
client, the governance layer and the exception store agree on one
vocabulary.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """
    Discriminant of the DomainError tagged union.

    Kinds:
        RATE_LIMITED: Upstream answered 429; retried with server hint or backoff
        VALIDATION: Upstream rejected the payload (400/422)
        AUTH: Credential rejected or lacks scope (401/403)
        CONFLICT: Upstream reported a write conflict (409)
        NOT_FOUND: Base, table or record does not exist (404)
        INTERNAL: 5xx, network failure, timeout or unparseable response
        GOVERNANCE: Blocked client-side by the allow-list, never sent upstream
    """

    RATE_LIMITED = "RateLimited"
    VALIDATION = "ValidationError"
    AUTH = "AuthError"
    CONFLICT = "ConflictError"
    NOT_FOUND = "NotFound"
    INTERNAL = "InternalError"
    GOVERNANCE = "GovernanceError"


class Severity(str, Enum):
    """Severity of an exception-log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ExceptionCategory(str, Enum):
    """Category of an exception-log entry, derived from ErrorKind."""

    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    AUTH = "auth"
    CONFLICT = "conflict"
    SCHEMA_DRIFT = "schema_drift"
    OTHER = "other"


__all__ = [
    "ErrorKind",
    "Severity",
    "ExceptionCategory",
]
