"""
Per-key fair rate limiter for API throttling.

Prevents hitting upstream rate limits by spacing admissions for the same
key at least ``min_interval_ms`` apart, where
``min_interval_ms = ceil(1000 / max_per_second)``.

How it works:
- Each key owns an asyncio.Lock; callers queue on it in arrival order
- The lock holder computes wait = max(next_available - now, 0) and sleeps
- After waking, it sets next_available = now + min_interval and releases
- Different keys never wait on each other
- Key state is never evicted: memory grows with the number of distinct
  keys seen (one entry per base id, plus one per token hash)

The per-key lock is what makes this safe under concurrency: reading a bare
timestamp would let two concurrent callers both see an expired
next_available and be admitted together.

Usage:
    base_limiter = RateLimiter(max_per_second=5, name="base")

    await base_limiter.schedule("appXXXXXXXXXXXXXX")
    result = await make_request()
"""

import asyncio
import logging
import math
import time
from collections.abc import Hashable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter behavior."""

    # Maximum admissions per second for a single key
    max_per_second: float = 5.0

    # Name for logging
    name: str = "rate_limiter"

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_per_second = float(self.max_per_second)


@dataclass
class _KeyState:
    """Admission state for one key."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_available: float | None = None
    admissions: int = 0


class RateLimiter:
    """
    FIFO per-key rate limiter for async operations.

    Admissions for the same key are released in strict arrival order and
    never closer together than ``min_interval_ms``. Admissions across keys
    are independent.

    Attributes:
        config: Configuration for rate limiting behavior
        min_interval_ms: Minimum gap between admissions for one key
        _keys: Per-key lock and next-available timestamp
    """

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        max_per_second: float | None = None,
        name: str | None = None,
    ):
        """
        Initialize rate limiter.

        Args:
            config: Full configuration object (preferred)
            max_per_second: Shorthand for config.max_per_second
            name: Shorthand for config.name

        Raises:
            ValueError: If max_per_second is not greater than zero
        """
        if config is None:
            config = RateLimiterConfig(
                max_per_second=max_per_second if max_per_second is not None else 5.0,
                name=name or "rate_limiter",
            )
        elif max_per_second is not None or name is not None:
            config = RateLimiterConfig(
                max_per_second=(
                    max_per_second if max_per_second is not None else config.max_per_second
                ),
                name=name or config.name,
            )

        if config.max_per_second <= 0:
            raise ValueError("max_per_second must be greater than zero")

        self.config = config
        self.min_interval_ms = math.ceil(1000 / config.max_per_second)
        self._min_interval = self.min_interval_ms / 1000
        self._keys: dict[Hashable, _KeyState] = {}

        logger.debug(
            f"Rate limiter '{config.name}' initialized",
            extra={
                "rate_limiter": config.name,
                "max_per_second": config.max_per_second,
                "min_interval_ms": self.min_interval_ms,
            },
        )

    def _state_for(self, key: Hashable) -> _KeyState:
        state = self._keys.get(key)
        if state is None:
            state = _KeyState()
            self._keys[key] = state
        return state

    async def schedule(self, key: Hashable) -> None:
        """
        Wait until ``key`` may be admitted.

        Never fails, only delays. Callers for the same key are admitted in
        the order they called schedule().
        """
        state = self._state_for(key)

        async with state.lock:
            now = time.monotonic()
            available_at = state.next_available if state.next_available is not None else now
            wait_time = max(available_at - now, 0.0)

            if wait_time > 0:
                logger.debug(
                    f"Rate limit reached for '{self.config.name}', waiting {wait_time:.3f}s",
                    extra={
                        "rate_limiter": self.config.name,
                        "wait_seconds": round(wait_time, 3),
                    },
                )
                await asyncio.sleep(wait_time)

            state.next_available = time.monotonic() + self._min_interval
            state.admissions += 1

    def get_stats(self) -> dict:
        """
        Get current rate limiter statistics.

        Returns:
            Dict with configuration, tracked keys and admission counts
        """
        return {
            "name": self.config.name,
            "max_per_second": self.config.max_per_second,
            "min_interval_ms": self.min_interval_ms,
            "tracked_keys": len(self._keys),
            "admissions": sum(s.admissions for s in self._keys.values()),
            "busy_keys": sum(1 for s in self._keys.values() if s.lock.locked()),
        }


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
]
