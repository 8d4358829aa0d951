"""
Domain error taxonomy for the gateway.

A single exception class carries every failure the gateway can produce.
Callers branch on ``error.kind`` (an ErrorKind) rather than on subclasses,
so the set of outcomes stays closed and easy to pattern-match.
"""

import math
import time
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any

from core.types import ErrorKind

RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.INTERNAL})


class DomainError(Exception):
    """
    Classified gateway failure.

    Attributes:
        kind: Discriminant used for retry and messaging decisions
        message: Human-readable error description
        status: HTTP status that produced the error, if any
        retry_after_ms: Server-provided retry hint in milliseconds
        context: Debugging context (endpoint, base_id, upstream ids, attempts)
        cause: Original exception if wrapping
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: int | None = None,
        retry_after_ms: float | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        self.kind = kind
        self.message = message
        self.status = status
        self.retry_after_ms = retry_after_ms
        self.context = dict(context or {})
        self.cause = cause
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def with_context(self, **context: Any) -> "DomainError":
        """Merge extra context into this error and return it for re-raising."""
        self.context.update(context)
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status is not None:
            data["status"] = self.status
        if self.retry_after_ms is not None:
            data["retry_after_ms"] = self.retry_after_ms
        if self.context:
            data["context"] = dict(self.context)
        return data

    def __str__(self) -> str:
        parts = [f"{self.kind.value}: {self.message}"]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        return f"DomainError(kind={self.kind.value!r}, message={self.message!r}, status={self.status!r})"

    # -------------------------------------------------------------------------
    # Constructors per kind
    # -------------------------------------------------------------------------

    @classmethod
    def rate_limited(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.RATE_LIMITED, message, **kwargs)

    @classmethod
    def validation(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.VALIDATION, message, **kwargs)

    @classmethod
    def auth(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.AUTH, message, **kwargs)

    @classmethod
    def conflict(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.CONFLICT, message, **kwargs)

    @classmethod
    def not_found(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.NOT_FOUND, message, **kwargs)

    @classmethod
    def internal(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.INTERNAL, message, **kwargs)

    @classmethod
    def governance(cls, message: str, **kwargs: Any) -> "DomainError":
        return cls(ErrorKind.GOVERNANCE, message, **kwargs)


# =============================================================================
# HTTP Classification
# =============================================================================

# (kind, message) per explicitly mapped status code
_STATUS_MAP: dict[int, tuple[ErrorKind, str]] = {
    400: (ErrorKind.VALIDATION, "Airtable validation error"),
    401: (ErrorKind.AUTH, "Authentication failed with Airtable"),
    403: (ErrorKind.AUTH, "Authentication failed with Airtable"),
    404: (ErrorKind.NOT_FOUND, "Requested resource was not found in Airtable"),
    409: (ErrorKind.CONFLICT, "Airtable reported a conflict"),
    422: (ErrorKind.VALIDATION, "Airtable validation error"),
    429: (ErrorKind.RATE_LIMITED, "Airtable rate limit exceeded"),
}


def parse_retry_after(value: str | None, now: float | None = None) -> float | None:
    """
    Convert a Retry-After header value into milliseconds.

    Numeric values are seconds. HTTP-dates yield the remaining time,
    floored at zero. Anything else yields None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return seconds * 1000 if math.isfinite(seconds) else None

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)

    now = time.time() if now is None else now
    return max((retry_at.timestamp() - now) * 1000, 0.0)


def classify_http_status(
    status: int,
    *,
    endpoint: str,
    base_id: str | None = None,
    retry_after_ms: float | None = None,
    upstream_type: str | None = None,
    upstream_message: str | None = None,
    request_id: str | None = None,
) -> DomainError:
    """Classify a non-2xx HTTP status into a DomainError with populated context."""
    context: dict[str, Any] = {"endpoint": endpoint}
    if base_id:
        context["base_id"] = base_id
    if upstream_type:
        context["upstream_error_type"] = upstream_type
    if upstream_message:
        context["upstream_error_message"] = upstream_message
    if request_id:
        context["upstream_request_id"] = request_id

    entry = _STATUS_MAP.get(status)
    if entry:
        kind, message = entry
        return DomainError(
            kind,
            message,
            status=status,
            retry_after_ms=retry_after_ms if kind == ErrorKind.RATE_LIMITED else None,
            context=context,
        )

    if status >= 500:
        return DomainError.internal(
            "Airtable returned an internal error", status=status, context=context
        )

    return DomainError.internal(
        "Unexpected Airtable response", status=status, context=context
    )
