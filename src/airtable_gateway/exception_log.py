"""
Bounded in-memory exception log.

Keeps the most recent failures, newest first, for operator and agent
introspection. Memory only: the log starts empty on every process start.

Pagination is offset based over the live list. Records inserted between two
list() calls shift the offsets, so a paging caller can see an item twice or
skip one. Callers that need a stable view should page without concurrent
writes.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from core.errors.exceptions import DomainError
from core.logging.utilities import StructuredLogger
from core.types import ErrorKind, ExceptionCategory, Severity

DEFAULT_CAPACITY = 500
DEFAULT_PAGE_SIZE = 100

_CATEGORY_BY_KIND: dict[ErrorKind, ExceptionCategory] = {
    ErrorKind.RATE_LIMITED: ExceptionCategory.RATE_LIMIT,
    ErrorKind.VALIDATION: ExceptionCategory.VALIDATION,
    ErrorKind.AUTH: ExceptionCategory.AUTH,
    ErrorKind.CONFLICT: ExceptionCategory.CONFLICT,
    ErrorKind.GOVERNANCE: ExceptionCategory.SCHEMA_DRIFT,
}

_SEVERITY_BY_KIND: dict[ErrorKind, Severity] = {
    ErrorKind.VALIDATION: Severity.WARNING,
}


def category_for(kind: ErrorKind) -> ExceptionCategory:
    return _CATEGORY_BY_KIND.get(kind, ExceptionCategory.OTHER)


def severity_for(kind: ErrorKind) -> Severity:
    return _SEVERITY_BY_KIND.get(kind, Severity.ERROR)


def _utc_timestamp() -> str:
    # Fixed-width ISO 8601 so lexical comparison matches chronological order
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


@dataclass(frozen=True)
class ExceptionItem:
    """One recorded failure."""

    id: str
    timestamp: str
    severity: Severity
    category: ExceptionCategory
    summary: str
    details: str | None = None
    proposed_fix: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["category"] = self.category.value
        proposed_fix = data.pop("proposed_fix")
        if data["details"] is None:
            del data["details"]
        if proposed_fix is not None:
            data["proposedFix"] = proposed_fix
        return data


@dataclass
class ExceptionPage:
    items: list[ExceptionItem] = field(default_factory=list)
    cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"items": [item.to_dict() for item in self.items]}
        if self.cursor is not None:
            data["cursor"] = self.cursor
        return data


class ExceptionStore:
    """
    Fixed-capacity, newest-first record of DomainErrors.

    record() never raises and never blocks. Once the store holds
    ``capacity`` items, each insert evicts the oldest one.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, logger: StructuredLogger | None = None):
        if capacity <= 0:
            raise ValueError("capacity must be greater than zero")
        self.capacity = capacity
        self._items: list[ExceptionItem] = []
        base = logger or StructuredLogger(logging.getLogger(__name__))
        self._log = base.child(component="exception_store")

    def __len__(self) -> int:
        return len(self._items)

    def record(
        self,
        error: DomainError,
        summary: str,
        details: str | None = None,
        proposed_fix: dict[str, Any] | None = None,
    ) -> ExceptionItem:
        item = ExceptionItem(
            id=str(uuid.uuid4()),
            timestamp=_utc_timestamp(),
            severity=severity_for(error.kind),
            category=category_for(error.kind),
            summary=summary,
            details=details,
            proposed_fix=proposed_fix,
        )
        self._items.insert(0, item)
        if len(self._items) > self.capacity:
            self._items.pop()

        self._log.debug(
            "Recorded exception",
            error_kind=error.kind.value,
            exception_id=item.id,
            severity=item.severity.value,
            category=item.category.value,
        )
        return item

    @staticmethod
    def _parse_cursor(cursor: str | None) -> int:
        if not cursor:
            return 0
        try:
            parsed = int(cursor)
        except (TypeError, ValueError):
            return 0
        return parsed if parsed >= 0 else 0

    def list(
        self,
        since: str | None = None,
        severity: Severity | str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> ExceptionPage:
        """
        Return one page of records, newest first.

        Args:
            since: Only records with timestamp strictly after this ISO string
            severity: Only records with exactly this severity
            limit: Maximum page size
            cursor: Offset returned by a previous call; invalid values mean 0

        Returns:
            ExceptionPage whose cursor is None once the results are exhausted
        """
        start = self._parse_cursor(cursor)
        severity_value = Severity(severity) if severity else None

        filtered = self._items
        if since:
            filtered = [item for item in filtered if item.timestamp > since]
        if severity_value is not None:
            filtered = [item for item in filtered if item.severity == severity_value]

        end = start + limit
        next_cursor = str(end) if end < len(filtered) else None
        return ExceptionPage(items=list(filtered[start:end]), cursor=next_cursor)


__all__ = [
    "ExceptionItem",
    "ExceptionPage",
    "ExceptionStore",
    "category_for",
    "severity_for",
]
