"""
Retry utilities with kind-aware handling.

Uses the DomainError taxonomy to make retry decisions:
- RateLimited: retry after the server's Retry-After hint, else backoff
- InternalError (5xx/network/timeout/parse): retry with backoff
- Every other kind: fail immediately (no retry)

Backoff: delay = min(base * 2^(attempt-1), max_delay) + uniform(0, max_jitter)
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from core.errors.exceptions import DomainError
from core.types import ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_retry_failure(
    operation: str,
    error: DomainError,
    attempt: int,
    config: "RetryConfig",
) -> None:
    """Log permanent-error or max-retries-exhausted."""
    if not error.is_retryable:
        logger.debug(
            "Permanent error for %s, not retrying: %s",
            operation,
            error.message[:200],
            extra={
                "operation": operation,
                "error_kind": error.kind.value,
                "http_status": error.status,
                "attempt": attempt,
            },
        )
        return

    logger.error(
        "Max retries exhausted for %s: %s",
        operation,
        error.message[:200],
        extra={
            "operation": operation,
            "error_kind": error.kind.value,
            "http_status": error.status,
            "max_attempts": config.max_attempts,
            "error_message": error.message[:200],
        },
    )


def _log_retry_attempt(
    operation: str,
    attempt: int,
    config: "RetryConfig",
    delay: float,
    error: DomainError,
) -> None:
    """Build log extras and emit the retry-attempt warning."""
    log_extras: dict[str, object] = {
        "operation": operation,
        "attempt": attempt,
        "max_attempts": config.max_attempts,
        "error_kind": error.kind.value,
        "http_status": error.status,
        "delay_seconds": round(delay, 3),
    }

    if config.uses_server_delay(error):
        log_extras["server_retry_after"] = error.retry_after_ms / 1000
        log_extras["delay_source"] = "server"
    else:
        log_extras["delay_source"] = "exponential_backoff"

    if error.kind == ErrorKind.RATE_LIMITED:
        logger.warning("Rate limited, backing off (%s)", operation, extra=log_extras)
    else:
        logger.warning("Upstream error, retrying (%s)", operation, extra=log_extras)


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    ``max_attempts`` counts every attempt including the first, so the
    default of 1 means no retry at all.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 8.0
    exponential_base: float = 2.0
    max_jitter: float = 0.25

    # If True, use retry_after_ms from RateLimited errors when available
    respect_retry_after: bool = True

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = max(int(self.max_attempts), 1)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        self.max_jitter = float(self.max_jitter)
        # bool('false') would be True, so only coerce non-bools
        self.respect_retry_after = (
            self.respect_retry_after
            if isinstance(self.respect_retry_after, bool)
            else str(self.respect_retry_after).lower() == "true"
        )

    def uses_server_delay(self, error: Exception | None) -> bool:
        return (
            self.respect_retry_after
            and isinstance(error, DomainError)
            and error.kind == ErrorKind.RATE_LIMITED
            and error.retry_after_ms is not None
        )

    def get_delay(self, attempt: int, error: Exception | None = None) -> float:
        """
        Calculate delay in seconds before the next attempt.

        Args:
            attempt: 1-indexed number of the attempt that just failed
            error: Optional error to check for a server retry hint

        Returns:
            Delay in seconds
        """
        if self.uses_server_delay(error):
            return error.retry_after_ms / 1000

        base_delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay,
        )
        return base_delay + random.uniform(0, self.max_jitter)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Determine if error should be retried.

        Args:
            error: The exception that occurred
            attempt: 1-indexed number of the attempt that just failed

        Returns:
            True if should retry
        """
        if attempt >= self.max_attempts:
            return False
        return isinstance(error, DomainError) and error.is_retryable


# Default configurations
DEFAULT_RETRY = RetryConfig(max_attempts=1)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation: str = "request",
) -> T:
    """
    Run ``func`` until it succeeds, fails terminally, or attempts run out.

    Terminal kinds propagate on first occurrence. When retryable errors
    exhaust ``config.max_attempts``, the last error is annotated with
    ``attempt`` and ``total_attempts`` and re-raised. Exceptions that are not
    DomainErrors propagate untouched.
    """
    if config is None:
        config = DEFAULT_RETRY

    attempt = 0
    while True:
        attempt += 1
        try:
            result = await func()
        except DomainError as e:
            if not config.should_retry(e, attempt):
                _log_retry_failure(operation, e, attempt, config)
                if e.is_retryable:
                    raise e.with_context(
                        attempt=config.max_attempts,
                        total_attempts=config.max_attempts,
                    )
                raise

            delay = config.get_delay(attempt, e)
            _log_retry_attempt(operation, attempt, config, delay, e)
            await asyncio.sleep(delay)
            continue

        if attempt > 1:
            logger.info(
                "Retry succeeded for %s after %d attempts",
                operation,
                attempt,
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "total_attempts": config.max_attempts,
                },
            )
        return result


__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY",
    "retry_async",
]
