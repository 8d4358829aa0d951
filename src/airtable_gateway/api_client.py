"""Airtable REST API client with per-base/per-token rate limiting and retry."""

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from core.errors.exceptions import DomainError, classify_http_status, parse_retry_after
from core.logging.utilities import StructuredLogger
from core.resilience.rate_limiter import RateLimiter
from core.resilience.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.airtable.com"
REQUEST_ID_HEADER = "X-Airtable-Request-Id"

QueryValue = str | int | float | bool | list[str | int | float | bool] | None


def _format_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_params(query: dict[str, QueryValue] | None) -> list[tuple[str, str]]:
    """
    Flatten query options into ordered key/value pairs.

    List values repeat the key with a ``[]`` suffix (``fields[]=A&fields[]=B``);
    None values are skipped.
    """
    if not query:
        return []
    params: list[tuple[str, str]] = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            params.extend((f"{key}[]", _format_query_value(item)) for item in value)
        else:
            params.append((key, _format_query_value(value)))
    return params


def _extract_upstream_error(body: Any) -> tuple[str | None, str | None]:
    """Pull ``error.type`` / ``error.message`` out of an Airtable error body."""
    if not isinstance(body, dict):
        return None, None
    error = body.get("error")
    if not isinstance(error, dict):
        return None, None
    error_type = error.get("type")
    error_message = error.get("message")
    return (
        error_type if isinstance(error_type, str) else None,
        error_message if isinstance(error_message, str) else None,
    )


class AirtableApiClient:
    """
    Async client for the Airtable Web API.

    Every request is admitted by the base-keyed limiter (when a base id is
    known) and then the token-keyed limiter, always in that order, before
    each attempt. RateLimited and InternalError failures are retried up to
    ``max_retries`` total attempts; every other kind propagates at once.
    """

    def __init__(
        self,
        token: str,
        *,
        base_limiter: RateLimiter,
        pat_limiter: RateLimiter,
        pat_hash: str,
        user_agent: str,
        api_base_url: str = DEFAULT_API_BASE_URL,
        max_retries: int = 1,
        http_timeout_ms: int = 30000,
        structured_logger: StructuredLogger | None = None,
    ):
        if not token:
            raise ValueError("AirtableApiClient requires 'token'")

        self.api_base_url = (api_base_url or DEFAULT_API_BASE_URL).rstrip("/")
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"AirtableApiClient api_base_url must start with http:// or https://, got: {self.api_base_url!r}"
            )

        self._auth_header = f"Bearer {token}"
        self.base_limiter = base_limiter
        self.pat_limiter = pat_limiter
        self.pat_hash = pat_hash
        self.user_agent = user_agent
        self.max_retries = max(int(max_retries), 1)
        self.http_timeout_ms = int(http_timeout_ms)
        self._retry_config = RetryConfig(max_attempts=self.max_retries)

        base_log = structured_logger or StructuredLogger(logger)
        self._log = base_log.child(component="airtable_client", pat_hash=pat_hash)

        self._session: aiohttp.ClientSession | None = None
        self._closed = False

        self._log.debug(
            "AirtableApiClient initialized",
            api_url=self.api_base_url,
            max_attempts=self.max_retries,
            timeout_seconds=self.http_timeout_ms / 1000,
        )

    async def __aenter__(self) -> "AirtableApiClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        if self._closed:
            raise RuntimeError("AirtableApiClient is closed, cannot create new session")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

    async def close(self) -> None:
        self._closed = True
        if self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)
        self._session = None

    # -------------------------------------------------------------------------
    # Typed operations
    # -------------------------------------------------------------------------

    async def list_bases(self) -> dict[str, Any]:
        return await self.request("GET", "/v0/meta/bases")

    async def get_base(self, base_id: str) -> dict[str, Any]:
        return await self.request("GET", f"/v0/meta/bases/{quote(base_id, safe='')}", base_id=base_id)

    async def list_tables(self, base_id: str) -> dict[str, Any]:
        return await self.request(
            "GET", f"/v0/meta/bases/{quote(base_id, safe='')}/tables", base_id=base_id
        )

    async def query_records(
        self,
        base_id: str,
        table: str,
        query: dict[str, QueryValue] | None = None,
    ) -> dict[str, Any]:
        return await self.request(
            "GET", self._records_path(base_id, table), query=query or None, base_id=base_id
        )

    async def create_records(
        self,
        base_id: str,
        table: str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        return await self.request(
            "POST",
            self._records_path(base_id, table),
            body=payload,
            base_id=base_id,
            idempotency_key=idempotency_key,
        )

    async def update_records(
        self,
        base_id: str,
        table: str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        return await self.request(
            "PATCH",
            self._records_path(base_id, table),
            body=payload,
            base_id=base_id,
            idempotency_key=idempotency_key,
        )

    async def upsert_records(
        self,
        base_id: str,
        table: str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """Upsert is a PATCH whose payload carries ``performUpsert``."""
        return await self.request(
            "PATCH",
            self._records_path(base_id, table),
            body=payload,
            base_id=base_id,
            idempotency_key=idempotency_key,
        )

    async def list_webhooks(self, base_id: str) -> dict[str, Any]:
        return await self.request("GET", self._webhooks_path(base_id), base_id=base_id)

    async def create_webhook(self, base_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", self._webhooks_path(base_id), body=payload, base_id=base_id)

    async def refresh_webhook(self, base_id: str, webhook_id: str) -> dict[str, Any]:
        """Extend a webhook's expiration; Airtable takes no request body."""
        return await self.request(
            "POST",
            f"{self._webhooks_path(base_id)}/{quote(webhook_id, safe='')}/refresh",
            base_id=base_id,
        )

    @staticmethod
    def _records_path(base_id: str, table: str) -> str:
        return f"/v0/{quote(base_id, safe='')}/{quote(table, safe='')}"

    @staticmethod
    def _webhooks_path(base_id: str) -> str:
        return f"/v0/bases/{quote(base_id, safe='')}/webhooks"

    # -------------------------------------------------------------------------
    # Request pipeline
    # -------------------------------------------------------------------------

    async def _admit(self, base_id: str | None) -> None:
        # Base limiter strictly before the token limiter
        if base_id:
            await self.base_limiter.schedule(base_id)
        await self.pat_limiter.schedule(self.pat_hash)

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: dict[str, QueryValue] | None = None,
        body: Any = None,
        base_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> Any:
        """
        Perform one governed exchange: admission, HTTP call, classification, retry.

        Returns:
            Decoded JSON body (None for an empty body)

        Raises:
            DomainError: Classified failure; retryable kinds carry
                ``attempt``/``total_attempts`` context once retries are exhausted
        """

        async def attempt() -> Any:
            await self._admit(base_id)
            return await self._perform_request(method, path, query, body, base_id, idempotency_key)

        return await retry_async(attempt, self._retry_config, operation=f"{method} {path}")

    def _build_headers(self, payload: bytes | None, idempotency_key: str | None) -> dict[str, str]:
        headers = {
            "Authorization": self._auth_header,
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        if payload:
            headers["Content-Length"] = str(len(payload))
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _perform_request(
        self,
        method: str,
        path: str,
        query: dict[str, QueryValue] | None,
        body: Any,
        base_id: str | None,
        idempotency_key: str | None,
    ) -> Any:
        await self._ensure_session()
        if self._session is None:
            raise RuntimeError("HTTP session not initialized - call _ensure_session() first")

        url = f"{self.api_base_url}{path}"
        params = build_query_params(query)
        payload = None if body is None else json.dumps(body).encode("utf-8")
        headers = self._build_headers(payload, idempotency_key)

        log = self._log.child(api_method=method, api_endpoint=path, base_id=base_id)
        log.debug("API request starting", has_body=payload is not None)

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        try:
            async with self._session.request(
                method,
                url,
                params=params or None,
                data=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.http_timeout_ms / 1000),
            ) as response:
                # Invalid UTF-8 bytes become U+FFFD instead of raising
                raw_body = (await response.read()).decode("utf-8", errors="replace")
                status = response.status
                response_headers = response.headers
        except TimeoutError as e:
            duration = loop.time() - start_time
            log.warning(
                "API request timeout",
                timeout_seconds=self.http_timeout_ms / 1000,
                duration_seconds=round(duration, 3),
                is_retryable=True,
            )
            raise DomainError.internal(
                "Airtable request timed out",
                status=504,
                context=self._base_context(path, base_id),
                cause=e,
            ) from e
        except aiohttp.ClientError as e:
            duration = loop.time() - start_time
            log.error(
                "API connection error",
                error=str(e),
                duration_seconds=round(duration, 3),
                is_retryable=True,
            )
            raise DomainError.internal(
                "Network error communicating with Airtable",
                context=self._base_context(path, base_id),
                cause=e,
            ) from e

        duration = loop.time() - start_time

        parsed_body = None
        if raw_body:
            try:
                parsed_body = json.loads(raw_body)
            except ValueError as e:
                log.warning(
                    "API response was not valid JSON",
                    http_status=status,
                    response_body=raw_body[:500],
                    duration_seconds=round(duration, 3),
                )
                raise DomainError.internal(
                    "Failed to parse Airtable response",
                    status=status,
                    context=self._base_context(path, base_id),
                    cause=e,
                ) from e

        if 200 <= status < 300:
            if duration > 2.0:
                log.info("Slow API request", http_status=status, duration_seconds=round(duration, 3))
            else:
                log.debug("API request succeeded", http_status=status, duration_seconds=round(duration, 3))
            return parsed_body

        error = self._to_domain_error(status, parsed_body, response_headers, path, base_id)
        log.warning(
            "API request failed",
            http_status=status,
            error_kind=error.kind.value,
            is_retryable=error.is_retryable,
            retry_after_ms=error.retry_after_ms,
            upstream_error_type=error.context.get("upstream_error_type"),
            upstream_request_id=error.context.get("upstream_request_id"),
            duration_seconds=round(duration, 3),
        )
        raise error

    @staticmethod
    def _base_context(path: str, base_id: str | None) -> dict[str, Any]:
        context: dict[str, Any] = {"endpoint": path}
        if base_id:
            context["base_id"] = base_id
        return context

    @staticmethod
    def _to_domain_error(
        status: int,
        body: Any,
        headers: Any,
        path: str,
        base_id: str | None,
    ) -> DomainError:
        upstream_type, upstream_message = _extract_upstream_error(body)
        request_id = headers.get(REQUEST_ID_HEADER) if headers is not None else None
        retry_after = headers.get("Retry-After") if headers is not None else None
        return classify_http_status(
            status,
            endpoint=path,
            base_id=base_id,
            retry_after_ms=parse_retry_after(retry_after) if status == 429 else None,
            upstream_type=upstream_type,
            upstream_message=upstream_message,
            request_id=request_id if isinstance(request_id, str) else None,
        )


__all__ = [
    "AirtableApiClient",
    "DEFAULT_API_BASE_URL",
    "build_query_params",
]
