"""Logging setup and configuration."""

import logging
import sys
from typing import TextIO

from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LEVEL = logging.INFO

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "asyncio",
    "urllib3",
]

# Accepted LOG_LEVEL spellings
_LEVEL_NAMES = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def resolve_log_level(value: str | int | None) -> int:
    """
    Map a configured level name to a logging level.

    Unknown or empty values fall back to INFO.
    """
    if isinstance(value, int):
        return value
    if not value:
        return DEFAULT_LEVEL
    return _LEVEL_NAMES.get(str(value).strip().lower(), DEFAULT_LEVEL)


def setup_logging(
    name: str = "airtable_gateway",
    level: str | int | None = DEFAULT_LEVEL,
    json_format: bool = True,
    stream: TextIO | None = None,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Configure the root logger with a single stream handler.

    Logs always go to stderr by default: stdout is reserved for operation
    results consumed by the calling agent.

    Args:
        name: Logger name to return
        level: Level name (error/warn/warning/info/debug) or logging constant
        json_format: Use JSONFormatter (default) or ConsoleFormatter
        stream: Output stream (default: sys.stderr)
        suppress_noisy: Quiet down HTTP client and event loop loggers

    Returns:
        Configured logger instance
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    resolved = resolve_log_level(level)
    handler.setLevel(resolved)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(
        "Logging initialized: json=%s level=%s",
        json_format,
        logging.getLevelName(resolved),
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Use this instead of logging.getLogger() to ensure consistent naming.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
