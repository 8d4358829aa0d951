"""List the bases the configured token can access."""

from typing import TYPE_CHECKING, Any

from airtable_gateway.operations.errors import handle_operation_error
from airtable_gateway.operations.response import OperationResult, create_response

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext


def normalize_base(raw: dict[str, Any]) -> dict[str, Any]:
    base = {"id": str(raw.get("id") or ""), "name": str(raw.get("name") or "")}
    if raw.get("permissionLevel"):
        base["permissionLevel"] = str(raw["permissionLevel"])
    return base


async def list_bases(ctx: "AppContext", raw_args: dict[str, Any] | None = None) -> OperationResult:
    try:
        ctx.logger.info("Listing accessible Airtable bases")
        response = await ctx.client.list_bases()
        raw_bases = response.get("bases") if isinstance(response, dict) else None
        if not raw_bases:
            return create_response({"bases": []})

        bases = [normalize_base(base) for base in raw_bases if isinstance(base, dict)]
        ctx.logger.info("Successfully listed bases", records_returned=len(bases))
        return create_response({"bases": bases})
    except Exception as e:
        return handle_operation_error("list_bases", e, ctx)
