"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_operation: ContextVar[str] = ContextVar("operation", default="")
_base_id: ContextVar[str] = ContextVar("base_id", default="")
_table: ContextVar[str] = ContextVar("table", default="")
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def set_log_context(
    operation: Optional[str] = None,
    base_id: Optional[str] = None,
    table: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> None:
    if operation is not None:
        _operation.set(operation)
    if base_id is not None:
        _base_id.set(base_id)
    if table is not None:
        _table.set(table)
    if trace_id is not None:
        _trace_id.set(trace_id)


def get_log_context() -> Dict[str, str]:
    return {
        "operation": _operation.get(),
        "base_id": _base_id.get(),
        "table": _table.get(),
        "trace_id": _trace_id.get(),
    }


def clear_log_context() -> None:
    _operation.set("")
    _base_id.set("")
    _table.set("")
    _trace_id.set("")
