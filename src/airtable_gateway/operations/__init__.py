"""
Gateway operations.

Each operation is ``async def op(ctx, raw_args) -> OperationResult``: it
validates its input, gates through governance, calls the delivery client and
shapes the result. Failures never escape; they come back as error results.

Usage:
    result = await run_operation(ctx, "query", {"baseId": "app123", "table": "Tasks"})
    if result.is_error:
        print(result.content[0]["text"])
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from airtable_gateway.operations.describe import describe
from airtable_gateway.operations.errors import handle_operation_error, to_user_message
from airtable_gateway.operations.introspection import list_exceptions, list_governance
from airtable_gateway.operations.list_bases import list_bases
from airtable_gateway.operations.mutations import create_records, update_records, upsert_records
from airtable_gateway.operations.query import query
from airtable_gateway.operations.response import OperationResult, create_response
from airtable_gateway.operations.timeout import with_timeout
from airtable_gateway.operations.webhooks import create_webhook, list_webhooks, refresh_webhook
from core.logging.context_managers import OperationLogContext

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext

logger = logging.getLogger(__name__)

Operation = Callable[["AppContext", dict[str, Any]], Awaitable[OperationResult]]

OPERATIONS: dict[str, Operation] = {
    "list_bases": list_bases,
    "describe": describe,
    "query": query,
    "create": create_records,
    "update": update_records,
    "upsert": upsert_records,
    "list_exceptions": list_exceptions,
    "list_governance": list_governance,
    "list_webhooks": list_webhooks,
    "create_webhook": create_webhook,
    "refresh_webhook": refresh_webhook,
}


async def run_operation(
    ctx: "AppContext",
    name: str,
    raw_args: dict[str, Any] | None = None,
) -> OperationResult:
    """
    Run one named operation under the configured tool timeout.

    Raises:
        KeyError: Unknown operation name
    """
    operation = OPERATIONS[name]
    args = raw_args or {}
    base_id = args.get("baseId") if isinstance(args.get("baseId"), str) else None
    table = args.get("table") if isinstance(args.get("table"), str) else None

    with OperationLogContext(logger, name, base_id=base_id, table=table) as op_log:
        try:
            result = await with_timeout(operation(ctx, args), ctx.config.tool_timeout_ms, name)
        except Exception as e:
            result = handle_operation_error(name, e, ctx)
        op_log.set_result(is_error=result.is_error)
        return result


__all__ = [
    "OPERATIONS",
    "OperationResult",
    "create_response",
    "describe",
    "handle_operation_error",
    "list_bases",
    "list_exceptions",
    "list_governance",
    "query",
    "create_records",
    "update_records",
    "upsert_records",
    "list_webhooks",
    "create_webhook",
    "refresh_webhook",
    "run_operation",
    "to_user_message",
    "with_timeout",
]
