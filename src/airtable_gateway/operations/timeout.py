"""Deadline helper for operations."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from core.errors.exceptions import DomainError

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], timeout_ms: float, operation: str) -> T:
    """
    Await ``awaitable`` for at most ``timeout_ms`` milliseconds.

    On expiry the awaitable is cancelled and an InternalError with status 504
    is raised, so callers can treat it like an upstream timeout.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
    except TimeoutError as e:
        raise DomainError.internal(
            f"{operation} timed out after {round(timeout_ms)}ms",
            status=504,
            context={"operation": operation},
            cause=e,
        ) from e


__all__ = ["with_timeout"]
