"""
Structured logging module.

Provides JSON logging to stderr with request-scoped context propagation.
"""

from core.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from core.logging.context_managers import LogContext, OperationLogContext
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import get_logger, resolve_log_level, setup_logging
from core.logging.utilities import StructuredLogger, log_exception

__all__ = [
    # Setup
    "setup_logging",
    "resolve_log_level",
    "get_logger",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Context Managers
    "LogContext",
    "OperationLogContext",
    # Utilities
    "StructuredLogger",
    "log_exception",
]
