"""Logging utility functions."""

import logging
from collections.abc import Mapping
from typing import Any

# Reserved LogRecord attribute names that cannot be used in extra dict
_RESERVED_LOG_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "asctime",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


def _safe_extra(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in _RESERVED_LOG_KEYS}


def log_exception(
    logger: logging.Logger | logging.LoggerAdapter,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    DomainErrors contribute their kind, status, retry hint and upstream
    identifiers so the log line can be correlated with Airtable support.

    Args:
        logger: Logger instance, or an adapter whose bound context is
                merged underneath ``kwargs``
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields
    """
    if isinstance(logger, logging.LoggerAdapter):
        # LoggerAdapter.process would replace extra, so log on the inner logger
        kwargs = {**(logger.extra or {}), **kwargs}
        logger = logger.logger

    kind = getattr(exc, "kind", None)
    if kind is not None and "error_kind" not in kwargs:
        kwargs["error_kind"] = kind.value if hasattr(kind, "value") else str(kind)

    status = getattr(exc, "status", None)
    if status is not None:
        kwargs.setdefault("http_status", status)

    retry_after_ms = getattr(exc, "retry_after_ms", None)
    if retry_after_ms is not None:
        kwargs.setdefault("retry_after_ms", retry_after_ms)

    context = getattr(exc, "context", None)
    if isinstance(context, dict):
        for key in ("upstream_error_type", "upstream_error_message", "upstream_request_id"):
            if context.get(key):
                kwargs.setdefault(key, context[key])

    message = getattr(exc, "message", None) or str(exc)
    if len(message) > 500:
        message = message[:500] + "..."
    kwargs["error_message"] = message

    extra = _safe_extra(kwargs)
    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=extra, stacklevel=2)
    else:
        logger.log(level, msg, extra=extra, stacklevel=2)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter carrying bound context into every record.

    ``child(**context)`` returns a new adapter whose context is the merge of
    this one and ``context``; leveled calls accept metadata as keyword
    arguments that are attached as ``extra`` fields.

    Usage:
        log = StructuredLogger(logging.getLogger(__name__), {"pat_hash": pat_hash})
        request_log = log.child(api_method="GET", base_id=base_id)
        request_log.info("Request sent", http_status=200)
    """

    def __init__(self, logger: logging.Logger, context: Mapping[str, Any] | None = None):
        super().__init__(logger, dict(context or {}))

    @property
    def context(self) -> dict[str, Any]:
        return dict(self.extra)

    def child(self, **context: Any) -> "StructuredLogger":
        merged = {**self.extra, **{k: v for k, v in context.items() if v is not None}}
        return StructuredLogger(self.logger, merged)

    def _emit(self, level: int, msg: str, metadata: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        exc_info = metadata.pop("exc_info", None)
        extra = _safe_extra({**self.extra, **metadata})
        self.logger.log(level, msg, exc_info=exc_info, extra=extra, stacklevel=3)

    def debug(self, msg: str, **metadata: Any) -> None:
        self._emit(logging.DEBUG, msg, metadata)

    def info(self, msg: str, **metadata: Any) -> None:
        self._emit(logging.INFO, msg, metadata)

    def warning(self, msg: str, **metadata: Any) -> None:
        self._emit(logging.WARNING, msg, metadata)

    warn = warning

    def error(self, msg: str, **metadata: Any) -> None:
        self._emit(logging.ERROR, msg, metadata)
