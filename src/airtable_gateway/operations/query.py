"""Record queries with governance gating and PII redaction."""

import hashlib
import json
from typing import TYPE_CHECKING, Any

from airtable_gateway.operations.errors import handle_operation_error
from airtable_gateway.operations.response import OperationResult, create_response
from airtable_gateway.sanitize import validate_formula
from airtable_gateway.schemas import QueryInput

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext

MASK = "••••"
REDACTED_OBJECT = "[redacted]"


def mask_value(value: Any) -> Any:
    """Mask a field value while keeping its rough shape."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [MASK] * len(value)
    if isinstance(value, dict):
        return REDACTED_OBJECT
    return MASK


def hash_value(value: Any) -> str:
    """SHA-256 hex of a string value, or of the JSON encoding of anything else."""
    if isinstance(value, str):
        serialized = value
    else:
        serialized = json.dumps("" if value is None else value, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def apply_pii_policies(fields: dict[str, Any], policies: list[dict[str, str]]) -> dict[str, Any]:
    """
    Apply per-field PII policies to one record's fields.

    Policies for fields absent from the record are ignored. The input dict
    is never modified.
    """
    if not policies:
        return fields

    result = dict(fields)
    for policy in policies:
        name = policy["field"]
        if name not in result:
            continue
        action = policy["policy"]
        if action == "drop":
            del result[name]
        elif action == "mask":
            result[name] = mask_value(result[name])
        elif action == "hash":
            result[name] = hash_value(result[name])
    return result


def build_record_query(args: QueryInput) -> dict[str, Any]:
    """Translate validated query input into Airtable list-records parameters."""
    params: dict[str, Any] = {}
    if args.fields:
        params["fields"] = args.fields
    if args.filter_by_formula:
        params["filterByFormula"] = args.filter_by_formula
    if args.view:
        params["view"] = args.view
    if args.page_size:
        params["pageSize"] = args.page_size
    if args.max_records:
        params["maxRecords"] = args.max_records
    if args.offset:
        params["offset"] = args.offset
    params["returnFieldsByFieldId"] = args.return_fields_by_field_id
    for index, sort in enumerate(args.sorts or []):
        params[f"sort[{index}][field]"] = sort.field
        params[f"sort[{index}][direction]"] = sort.direction
    return params


def _normalize_record(raw: dict[str, Any], policies: list[dict[str, str]]) -> dict[str, Any]:
    fields = raw.get("fields") if isinstance(raw.get("fields"), dict) else {}
    record: dict[str, Any] = {"id": str(raw.get("id") or "")}
    if raw.get("createdTime"):
        record["createdTime"] = str(raw["createdTime"])
    record["fields"] = apply_pii_policies(fields, policies)
    return record


async def query(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = QueryInput.model_validate(raw_args)
        ctx.governance.ensure_operation_allowed("query")
        ctx.governance.ensure_base_allowed(args.base_id)
        ctx.governance.ensure_table_allowed(args.base_id, args.table)

        log = ctx.logger.child(operation="query", base_id=args.base_id, table=args.table)

        if args.filter_by_formula:
            validation = validate_formula(args.filter_by_formula)
            if not validation.is_valid:
                # Logged only; Airtable evaluates the formula server-side
                log.warning(
                    "Potentially unsafe formula pattern detected",
                    warnings=validation.warning,
                    formula=args.filter_by_formula[:100],
                )

        response = await ctx.client.query_records(args.base_id, args.table, build_record_query(args))
        raw_records = response.get("records") if isinstance(response, dict) else None
        offset = response.get("offset") if isinstance(response, dict) else None

        policies = ctx.governance.list_pii_policies(args.base_id, args.table)
        records = [_normalize_record(raw, policies) for raw in raw_records or [] if isinstance(raw, dict)]

        result: dict[str, Any] = {"records": records}
        if isinstance(offset, str) and offset:
            result["offset"] = offset
        result["summary"] = {"returned": len(records), "hasMore": bool(offset)}

        log.debug("Query completed", records_returned=len(records), has_more=bool(offset))
        return create_response(result)
    except Exception as e:
        return handle_operation_error("query", e, ctx)
