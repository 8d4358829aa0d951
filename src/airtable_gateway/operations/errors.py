"""
Failure handling shared by every operation.

DomainErrors are logged, recorded in the exception log and turned into a
troubleshooting message for the calling agent. Anything else is logged with
its traceback and reported as an unexpected server error.
"""

import math
from typing import TYPE_CHECKING

from pydantic import ValidationError

from airtable_gateway.operations.response import OperationResult, create_error_response
from airtable_gateway.schemas import validation_error_to_domain
from core.errors.exceptions import DomainError
from core.logging.utilities import log_exception
from core.types import ErrorKind

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext

UNEXPECTED_ERROR_MESSAGE = "Unexpected server error. Check logs for details."


def format_token_warnings(warnings: list[str]) -> str:
    if not warnings:
        return ""
    return "\n\nToken format issues detected:\n" + "\n".join(f"• {w}" for w in warnings)


def _details_block(upstream_message: str | None) -> str:
    return f"Details: {upstream_message}\n\n" if upstream_message else ""


def build_auth_message(error: DomainError, token_warnings: list[str]) -> str:
    error_type = error.context.get("upstream_error_type")
    base_id = error.context.get("base_id")
    endpoint = error.context.get("endpoint") or ""
    is_meta_api = "/meta/" in endpoint
    is_base_specific = bool(base_id) and f"/bases/{base_id}" in endpoint
    warnings_text = format_token_warnings(token_warnings)

    if error_type == "AUTHENTICATION_REQUIRED":
        return (
            "Authentication failed: Token is invalid or expired.\n\n"
            "Troubleshooting:\n"
            "1. Verify your token at https://airtable.com/create/tokens\n"
            "2. Check that the token hasn't been revoked\n"
            "3. Ensure you copied the entire token (typically ~82 characters)"
            f"{warnings_text}"
        )

    if error_type == "INVALID_PERMISSIONS_OR_MODEL_NOT_FOUND":
        if base_id:
            return (
                f'Authentication failed for base "{base_id}".\n\n'
                "Your token is valid but cannot access this specific base.\n\n"
                "Troubleshooting:\n"
                "1. Run list_bases to see which bases your token can access\n"
                "2. If this base is not listed, regenerate your token with access to it\n"
                "3. Verify your token has the required scopes:\n"
                "   • schema.bases:read (for describe/list operations)\n"
                "   • data.records:read (for query operations)\n"
                "   • data.records:write (for create/update operations)"
                f"{warnings_text}"
            )
        return (
            "Authentication failed: Token lacks required permissions.\n\n"
            "Troubleshooting:\n"
            '1. Verify your token has the "schema.bases:read" scope\n'
            "2. Check token permissions at https://airtable.com/create/tokens\n"
            "3. Regenerate token if scopes are missing"
            f"{warnings_text}"
        )

    if is_meta_api and is_base_specific:
        return (
            f'Authentication failed for base "{base_id}".\n\n'
            "This could mean:\n"
            '1. Your token lacks the "schema.bases:read" scope\n'
            "2. Your token does not have access to this specific base\n\n"
            "Run list_bases to see which bases your token can access."
            f"{warnings_text}"
        )

    if is_meta_api:
        return (
            "Authentication failed for Meta API.\n\n"
            "Troubleshooting:\n"
            '1. Ensure your token has the "schema.bases:read" scope\n'
            "2. Verify token at https://airtable.com/create/tokens"
            f"{warnings_text}"
        )

    return (
        "Authentication failed.\n\n"
        "Troubleshooting:\n"
        "1. Verify token scopes match the operation you're attempting\n"
        "2. Check base/table access permissions\n"
        "3. Review token at https://airtable.com/create/tokens"
        f"{warnings_text}"
    )


def build_validation_message(error: DomainError) -> str:
    error_type = error.context.get("upstream_error_type")
    upstream_message = error.context.get("upstream_error_message")

    if error_type == "UNKNOWN_FIELD_NAME":
        return (
            "Airtable rejected the request: Unknown field name.\n\n"
            f"{_details_block(upstream_message)}"
            "Troubleshooting:\n"
            "1. Use describe tool to see valid field names for this table\n"
            "2. Field names are case-sensitive\n"
            "3. Check for typos in field names"
        )

    if error_type == "INVALID_FIELD_TYPE":
        return (
            "Airtable rejected the request: Invalid field value type.\n\n"
            f"{_details_block(upstream_message)}"
            "Troubleshooting:\n"
            "1. Use describe tool to see field types\n"
            "2. Ensure values match expected types (text, number, date, etc.)\n"
            "3. Check Airtable field configuration"
        )

    if upstream_message:
        return (
            f"Airtable validation error: {upstream_message}\n\n"
            "Troubleshooting:\n"
            "1. Check field names and values match table schema\n"
            "2. Use describe tool to verify field types\n"
            "3. Ensure required fields are provided"
        )

    # Input rejected locally, before any request was sent
    if error.status is None and error.context.get("operation"):
        return f"{error.message}\n\nCheck the arguments against the operation's input schema."

    return (
        "Airtable rejected the request.\n\n"
        "Troubleshooting:\n"
        "1. Check field names exist in the table\n"
        "2. Verify values match expected field types\n"
        "3. Use describe tool to inspect table schema"
    )


def build_not_found_message(error: DomainError) -> str:
    base_id = error.context.get("base_id")
    upstream_message = error.context.get("upstream_error_message")

    if base_id:
        return (
            f'Resource not found in base "{base_id}".\n\n'
            f"{_details_block(upstream_message)}"
            "Troubleshooting:\n"
            "1. Verify the base ID is correct\n"
            "2. Check table/record IDs exist\n"
            "3. Use list_bases and describe tools to confirm identifiers"
        )

    return (
        "Requested Airtable resource was not found.\n\n"
        "Troubleshooting:\n"
        "1. Confirm base, table, and record identifiers are correct\n"
        "2. Use list_bases to see available bases\n"
        "3. Use describe to see tables in a base"
    )


def build_rate_limit_message(error: DomainError) -> str:
    retry_seconds = math.ceil(error.retry_after_ms / 1000) if error.retry_after_ms else None
    if retry_seconds:
        return (
            f"Airtable rate limit exceeded. Retry after {retry_seconds} seconds.\n\n"
            "The API allows 5 requests per second per base. Consider:\n"
            "1. Reducing request frequency\n"
            "2. Batching multiple record operations\n"
            "3. Using pagination for large result sets"
        )
    return (
        "Airtable rate limit exceeded.\n\n"
        "The API allows 5 requests per second per base. Retry after a brief delay."
    )


CONFLICT_MESSAGE = (
    "Record conflict detected.\n\n"
    "The record was modified since it was fetched.\n\n"
    "Troubleshooting:\n"
    "1. Fetch the latest version of the record\n"
    "2. Review the changes (diff)\n"
    "3. Retry the update with fresh data"
)

GOVERNANCE_MESSAGE = (
    "Operation blocked by governance policy.\n\n"
    "This operation is not allowed by the configured governance rules.\n"
    "Check AIRTABLE_ALLOWED_BASES and AIRTABLE_ALLOWED_TABLES settings."
)


def to_user_message(error: DomainError, token_warnings: list[str] | None = None) -> str:
    """Render a DomainError as troubleshooting text for the calling agent."""
    if error.kind == ErrorKind.RATE_LIMITED:
        return build_rate_limit_message(error)
    if error.kind == ErrorKind.VALIDATION:
        return build_validation_message(error)
    if error.kind == ErrorKind.AUTH:
        return build_auth_message(error, token_warnings or [])
    if error.kind == ErrorKind.CONFLICT:
        return CONFLICT_MESSAGE
    if error.kind == ErrorKind.NOT_FOUND:
        return build_not_found_message(error)
    if error.kind == ErrorKind.GOVERNANCE:
        return GOVERNANCE_MESSAGE
    return (
        "Unexpected Airtable error.\n\n"
        "Please retry the operation. If the problem persists, check:\n"
        "1. Airtable service status\n"
        "2. Server logs for details\n"
        f"3. Request ID: {error.context.get('upstream_request_id') or 'N/A'}"
    )


def handle_operation_error(operation: str, error: BaseException, ctx: "AppContext") -> OperationResult:
    """
    Convert a failure raised inside an operation into an error result.

    Args:
        operation: Operation name, used in the log line and exception summary
        error: The exception that escaped the operation
        ctx: Application context providing the logger and exception store

    Returns:
        OperationResult with is_error=True
    """
    if isinstance(error, ValidationError):
        error = validation_error_to_domain(error, operation)

    if not isinstance(error, DomainError):
        log_exception(
            ctx.logger,
            error,
            f"{operation} failed with unknown error",
            operation=operation,
            error_type=type(error).__name__,
        )
        return create_error_response(UNEXPECTED_ERROR_MESSAGE)

    log_exception(ctx.logger, error, f"{operation} failed", include_traceback=False, operation=operation)
    ctx.exceptions.record(error, f"{operation} failed", error.message)
    return create_error_response(to_user_message(error, ctx.config.token_format_warnings))


__all__ = [
    "UNEXPECTED_ERROR_MESSAGE",
    "handle_operation_error",
    "to_user_message",
]
