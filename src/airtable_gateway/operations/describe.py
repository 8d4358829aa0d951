"""
Schema description for a base or a single table.

The detail level controls how much of the schema is returned:
    tableIdentifiersOnly: table ids and names
    identifiersOnly: plus primary field, field and view ids and names
    full: plus field types, descriptions and options, and view types
"""

from typing import TYPE_CHECKING, Any

from airtable_gateway.operations.errors import handle_operation_error
from airtable_gateway.operations.response import OperationResult, create_response
from airtable_gateway.operations.timeout import with_timeout
from airtable_gateway.schemas import DescribeInput, DetailLevel
from core.errors.exceptions import DomainError

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext


def normalize_field(raw: dict[str, Any], detail_level: DetailLevel) -> dict[str, Any]:
    field = {"id": str(raw.get("id") or ""), "name": str(raw.get("name") or "")}
    if detail_level == "full":
        field["type"] = str(raw.get("type") or "")
        if isinstance(raw.get("description"), str) and raw["description"]:
            field["description"] = raw["description"]
        if isinstance(raw.get("options"), dict):
            field["options"] = raw["options"]
    return field


def normalize_view(raw: dict[str, Any], detail_level: DetailLevel) -> dict[str, Any]:
    view = {"id": str(raw.get("id") or ""), "name": str(raw.get("name") or "")}
    if detail_level == "full" and isinstance(raw.get("type"), str) and raw["type"]:
        view["type"] = raw["type"]
    return view


def normalize_table(
    raw: dict[str, Any],
    detail_level: DetailLevel,
    include_fields: bool,
    include_views: bool,
) -> dict[str, Any]:
    table: dict[str, Any] = {"id": str(raw.get("id") or ""), "name": str(raw.get("name") or "")}
    if detail_level == "tableIdentifiersOnly":
        return table

    if isinstance(raw.get("primaryFieldId"), str) and raw["primaryFieldId"]:
        table["primaryFieldId"] = raw["primaryFieldId"]
    if include_fields and isinstance(raw.get("fields"), list):
        table["fields"] = [normalize_field(f, detail_level) for f in raw["fields"] if isinstance(f, dict)]
    if include_views and isinstance(raw.get("views"), list):
        table["views"] = [normalize_view(v, detail_level) for v in raw["views"] if isinstance(v, dict)]
    return table


def _table_visible(ctx: "AppContext", base_id: str, raw: dict[str, Any]) -> bool:
    table_id = raw.get("id") if isinstance(raw.get("id"), str) else ""
    table_name = raw.get("name") if isinstance(raw.get("name"), str) else ""
    return bool(
        (table_id and ctx.governance.is_table_allowed(base_id, table_id))
        or (table_name and ctx.governance.is_table_allowed(base_id, table_name))
    )


def _find_table(tables: list[dict[str, Any]], wanted: str) -> dict[str, Any] | None:
    wanted_lower = wanted.lower()
    for table in tables:
        if table["id"] == wanted or table["name"].lower() == wanted_lower:
            return table
    return None


async def describe(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = DescribeInput.model_validate(raw_args)
        ctx.governance.ensure_operation_allowed("describe")
        ctx.governance.ensure_base_allowed(args.base_id)

        detail_level = args.detail_level
        include_fields = detail_level != "tableIdentifiersOnly" and args.include_fields
        include_views = detail_level != "tableIdentifiersOnly" and args.include_views

        log = ctx.logger.child(operation="describe", base_id=args.base_id, table=args.table)

        # Sequential calls, each bounded so one hung request cannot eat the whole budget
        step_timeout_ms = ctx.config.tool_timeout_ms / 2
        base_info = await with_timeout(ctx.client.get_base(args.base_id), step_timeout_ms, "getBase")
        table_info = await with_timeout(ctx.client.list_tables(args.base_id), step_timeout_ms, "listTables")

        base_name = base_info.get("name") if isinstance(base_info, dict) else None
        raw_tables = table_info.get("tables") if isinstance(table_info, dict) else None
        raw_tables = [t for t in raw_tables or [] if isinstance(t, dict)]

        visible_tables = [raw for raw in raw_tables if _table_visible(ctx, args.base_id, raw)]
        tables = [
            normalize_table(raw, detail_level, include_fields, include_views)
            for raw in visible_tables
        ]

        if args.scope == "table":
            target = _find_table(tables, args.table)
            if target is None:
                raise DomainError.not_found(
                    f"Table {args.table} not found in base {args.base_id}",
                    context={"base_id": args.base_id, "table": args.table},
                )
            tables = [target]

        result: dict[str, Any] = {
            "base": {
                "id": args.base_id,
                "name": base_name if isinstance(base_name, str) else args.base_id,
            },
            "tables": tables,
        }

        if args.scope == "base" and include_views:
            result["views"] = [
                normalize_view(view, detail_level)
                for raw in visible_tables
                for view in raw.get("views") or []
                if isinstance(view, dict)
            ]

        log.debug("Describe completed", records_returned=len(tables))
        return create_response(result)
    except Exception as e:
        return handle_operation_error("describe", e, ctx)
