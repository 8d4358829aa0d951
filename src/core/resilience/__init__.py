"""
Resilience patterns module.

Provides admission control and retry primitives for the delivery client.

Components:
    - RateLimiter: Per-key FIFO rate limiting (min interval between admissions)
    - RetryConfig: Exponential backoff with additive jitter
    - retry_async: Kind-aware retry loop for async callables
"""

from .rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
)
from .retry import (
    DEFAULT_RETRY,
    RetryConfig,
    retry_async,
)

__all__ = [
    # Rate Limiter
    "RateLimiter",
    "RateLimiterConfig",
    # Retry
    "RetryConfig",
    "retry_async",
    "DEFAULT_RETRY",
]
