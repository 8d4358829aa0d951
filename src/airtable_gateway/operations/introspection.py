"""Read-only views of gateway state: the exception log and governance snapshot."""

from typing import TYPE_CHECKING, Any

from airtable_gateway.operations.errors import handle_operation_error
from airtable_gateway.operations.response import OperationResult, create_response
from airtable_gateway.schemas import ListExceptionsInput

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext


async def list_exceptions(ctx: "AppContext", raw_args: dict[str, Any] | None = None) -> OperationResult:
    try:
        args = ListExceptionsInput.model_validate(raw_args or {})
        page = ctx.exceptions.list(
            since=args.since,
            severity=args.severity,
            limit=args.limit,
            cursor=args.cursor,
        )
        return create_response(page.to_dict())
    except Exception as e:
        return handle_operation_error("list_exceptions", e, ctx)


async def list_governance(ctx: "AppContext", raw_args: dict[str, Any] | None = None) -> OperationResult:
    return create_response(ctx.governance.get_snapshot().to_dict())
