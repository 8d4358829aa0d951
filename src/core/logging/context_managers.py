"""Context managers for structured logging."""

import logging
import secrets
import time
from typing import Any, Dict, Optional

from core.logging.context import get_log_context, set_log_context


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(operation="query", base_id=base_id):
            # All logs in this block will have operation and base_id
            await do_work()
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        base_id: Optional[str] = None,
        table: Optional[str] = None,
        trace_id: Optional[str] = None,
    ):
        self.new_context = {
            "operation": operation,
            "base_id": base_id,
            "table": table,
            "trace_id": trace_id,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        for key, value in self.new_context.items():
            if value is not None:
                set_log_context(**{key: value})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(
            operation=self.old_context.get("operation", ""),
            base_id=self.old_context.get("base_id", ""),
            table=self.old_context.get("table", ""),
            trace_id=self.old_context.get("trace_id", ""),
        )
        return False


class OperationLogContext(LogContext):
    """
    Context manager for one gateway operation with timing and a fresh trace id.

    Usage:
        with OperationLogContext(logger, "query", base_id=base_id) as ctx:
            result = await run_query()
            ctx.set_result(records_returned=len(result))
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        base_id: Optional[str] = None,
        table: Optional[str] = None,
    ):
        super().__init__(
            operation=operation,
            base_id=base_id,
            table=table,
            trace_id=secrets.token_hex(8),
        )
        self.logger = logger
        self.operation = operation
        self.start_time: Optional[float] = None
        self.result_context: Dict[str, Any] = {}

    def __enter__(self) -> "OperationLogContext":
        super().__enter__()
        self.start_time = time.perf_counter()
        return self

    def set_result(self, **kwargs: Any) -> None:
        """Set result context to be logged on exit."""
        self.result_context.update(kwargs)

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self.start_time) * 1000
        self.result_context["duration_ms"] = round(duration_ms, 2)
        self.logger.debug(
            "Operation finished: %s",
            self.operation,
            extra={**self.result_context, "operation": self.operation},
        )
        super().__exit__(exc_type, exc_val, exc_tb)
        return False
