"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Redacts bearer tokens and personal access tokens before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Correlation and tracing
        "trace_id",
        "duration_ms",
        "duration_seconds",
        # HTTP
        "http_status",
        "api_endpoint",
        "api_method",
        "api_url",
        "timeout_seconds",
        "response_body",
        # Errors
        "error_kind",
        "error_category",
        "error_message",
        "error",
        "error_type",
        "is_retryable",
        "retry_after_ms",
        "upstream_error_type",
        "upstream_error_message",
        "upstream_request_id",
        # Resilience
        "rate_limiter",
        "wait_seconds",
        "attempt",
        "max_attempts",
        "total_attempts",
        "delay_seconds",
        "delay_source",
        "server_retry_after",
        # Operation tracking
        "component",
        "operation",
        "has_body",
        "base_id",
        "table",
        "pat_hash",
        "records_returned",
        "records_sent",
        "chunk_index",
        "chunk_count",
        "dry_run",
        "has_more",
        "is_error",
        # Governance
        "rule",
        "formula",
        "warnings",
        "exception_id",
        "severity",
        "category",
    ]

    # Type mapping for numeric fields so they are never serialized as strings
    NUMERIC_FIELDS = {
        # Timing fields
        "duration_ms": float,
        "duration_seconds": float,
        "timeout_seconds": float,
        "wait_seconds": float,
        "delay_seconds": float,
        "server_retry_after": float,
        "retry_after_ms": float,
        # Count fields
        "attempt": int,
        "max_attempts": int,
        "total_attempts": int,
        "http_status": int,
        "records_returned": int,
        "records_sent": int,
        "chunk_index": int,
        "chunk_count": int,
    }

    # Fields that may carry free text with secrets
    SANITIZED_FIELDS = ["error", "error_message", "response_body", "api_url", "upstream_error_message"]

    # Bearer headers and Airtable PAT-shaped strings
    SECRET_PATTERN = re.compile(
        r"(Bearer\s+)[A-Za-z0-9._\-]+|\bpat[A-Za-z0-9]{10,}\.[A-Za-z0-9]+",
        re.IGNORECASE,
    )

    def _sanitize_text(self, text: str) -> str:
        return self.SECRET_PATTERN.sub(
            lambda m: f"{m.group(1)}[REDACTED]" if m.group(1) else "[REDACTED]", text
        )

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.SANITIZED_FIELDS and isinstance(value, str):
            return self._sanitize_text(value)
        return value

    def _ensure_type(self, field: str, value: Any) -> Any:
        """
        Ensure field has correct numeric type.

        Args:
            field: Field name
            value: Value to type-check

        Returns:
            Value with correct type, or None if conversion fails
        """
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        expected_type = self.NUMERIC_FIELDS[field]
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any], log_context: dict[str, Any]) -> None:
        for field in ("operation", "base_id", "table", "trace_id"):
            if log_context.get(field):
                log_entry[field] = log_context[field]

    @staticmethod
    def _should_include_source_location(record: logging.LogRecord) -> bool:
        return record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL)

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                # First ensure correct type (prevents string coercion)
                typed_value = self._ensure_type(field, value)
                log_entry[field] = self._sanitize_value(field, typed_value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": self._sanitize_text(str(exc_value)) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry = self._base_log_entry(record)

        # Inject context variables
        self._inject_context(log_entry, get_log_context())

        # Add source location for DEBUG/ERROR
        if self._should_include_source_location(record):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        # Explicit extras override ambient context
        self._inject_extra_fields(log_entry, record)

        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when stderr is not a TTY (pipes, files).
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stderr.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_prefix(level_name: str, log_context: dict[str, Any]) -> str:
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level_name,
        ]

        if log_context["operation"]:
            parts.append(f"[{log_context['operation']}]")

        return " - ".join(parts)

    @staticmethod
    def _build_tags(record: logging.LogRecord, log_context: dict[str, Any]) -> list[str]:
        base_id = getattr(record, "base_id", None) or log_context.get("base_id")
        table = getattr(record, "table", None) or log_context.get("table")
        trace_id = getattr(record, "trace_id", None) or log_context.get("trace_id")

        tags = []
        if base_id and table:
            tags.append(f"[{base_id}/{table}]")
        elif base_id:
            tags.append(f"[{base_id}]")
        if trace_id:
            tags.append(f"[{trace_id[:8]}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output with optional color coding."""
        log_context = get_log_context()

        level_name = self._format_level_name(record)
        prefix = self._build_prefix(level_name, log_context)
        tags = self._build_tags(record, log_context)

        if tags:
            message = f"{prefix} - {' '.join(tags)} {record.getMessage()}"
        else:
            message = f"{prefix} - {record.getMessage()}"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message
