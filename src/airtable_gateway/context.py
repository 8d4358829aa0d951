"""Explicit application context shared by every operation."""

import logging
from dataclasses import dataclass

from airtable_gateway import __version__
from airtable_gateway.api_client import AirtableApiClient
from airtable_gateway.exception_log import ExceptionStore
from airtable_gateway.governance import GovernanceService
from config.config import GatewayConfig
from core.logging.utilities import StructuredLogger
from core.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """
    Everything an operation needs, constructed once per process (or per test).

    Attributes:
        config: Resolved gateway configuration
        logger: Root structured logger for operations
        client: Delivery client owning both rate limiters
        governance: Policy engine over the startup snapshot
        exceptions: Bounded exception log
    """

    config: GatewayConfig
    logger: StructuredLogger
    client: AirtableApiClient
    governance: GovernanceService
    exceptions: ExceptionStore

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def build_context(config: GatewayConfig, root_logger: StructuredLogger | None = None) -> AppContext:
    """
    Construct a fresh context: limiters, client, governance and exception log.

    Nothing here is cached at module level, so two contexts never share
    rate-limit state.
    """
    root = root_logger or StructuredLogger(logging.getLogger("airtable_gateway"))

    base_limiter = RateLimiter(max_per_second=config.base_requests_per_second, name="base")
    pat_limiter = RateLimiter(max_per_second=config.pat_requests_per_second, name="pat")

    client = AirtableApiClient(
        config.personal_access_token,
        base_limiter=base_limiter,
        pat_limiter=pat_limiter,
        pat_hash=config.pat_hash,
        user_agent=f"airtable-gateway/{__version__}",
        api_base_url=config.api_base_url,
        max_retries=config.max_retries,
        http_timeout_ms=config.http_timeout_ms,
        structured_logger=root,
    )

    context = AppContext(
        config=config,
        logger=root.child(component="operations"),
        client=client,
        governance=GovernanceService(config.governance),
        exceptions=ExceptionStore(config.exception_queue_size, root),
    )

    logger.info(
        "Gateway context initialized",
        extra={
            "pat_hash": config.pat_hash,
            "base_id": config.default_base_id,
        },
    )
    return context


__all__ = ["AppContext", "build_context"]
