"""
Record writes: create, update and upsert.

All three share one shape. A dry run returns the would-be diff without any
network call. A real write sends records in chunks of ``CHUNK_SIZE``, and
chunk ``i`` carries the idempotency key ``<key>:<i>`` so a retried chunk is
deduplicated upstream without colliding with its siblings.
"""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from airtable_gateway.operations.errors import handle_operation_error
from airtable_gateway.operations.response import OperationResult, create_response
from airtable_gateway.schemas import CreateInput, UpdateInput, UpsertInput

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext

# Airtable accepts at most 10 records per write request
CHUNK_SIZE = 10

T = TypeVar("T")

WriteCall = Callable[[str, str, dict[str, Any], str | None], Awaitable[Any]]


def chunk(items: list[T], size: int = CHUNK_SIZE) -> list[list[T]]:
    if size <= 0:
        raise ValueError("chunk size must be greater than zero")
    return [items[i : i + size] for i in range(0, len(items), size)]


def chunk_idempotency_key(key: str | None, index: int) -> str | None:
    return f"{key}:{index}" if key else None


def _normalize_written(raw: dict[str, Any]) -> dict[str, Any]:
    fields = raw.get("fields") if isinstance(raw.get("fields"), dict) else {}
    return {"id": str(raw.get("id")), "fields": fields}


async def _write_in_chunks(
    ctx: "AppContext",
    operation: str,
    write: WriteCall,
    base_id: str,
    table: str,
    records: list[dict[str, Any]],
    idempotency_key: str | None,
    extra_body: dict[str, Any],
) -> list[dict[str, Any]]:
    """Send ``records`` chunk by chunk, stopping at the first failing chunk."""
    log = ctx.logger.child(operation=operation, base_id=base_id, table=table)
    chunks = chunk(records)
    written: list[dict[str, Any]] = []
    for index, batch in enumerate(chunks):
        body = {"records": batch, **extra_body}
        log.debug(
            "Sending record chunk",
            chunk_index=index,
            chunk_count=len(chunks),
            records_sent=len(batch),
        )
        response = await write(base_id, table, body, chunk_idempotency_key(idempotency_key, index))
        returned = response.get("records") if isinstance(response, dict) else None
        if isinstance(returned, list):
            written.extend(_normalize_written(r) for r in returned if isinstance(r, dict))
    return written


def _gate(ctx: "AppContext", operation: str, base_id: str, table: str) -> None:
    ctx.governance.ensure_operation_allowed(operation)
    ctx.governance.ensure_base_allowed(base_id)
    ctx.governance.ensure_table_allowed(base_id, table)


async def create_records(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = CreateInput.model_validate(raw_args)
        _gate(ctx, "create", args.base_id, args.table)

        if args.dry_run:
            return create_response(
                {
                    "diff": {"added": len(args.records), "updated": 0, "unchanged": 0},
                    "dryRun": True,
                    "records": [{"id": "pending", "fields": r.fields} for r in args.records],
                }
            )

        written = await _write_in_chunks(
            ctx,
            "create",
            ctx.client.create_records,
            args.base_id,
            args.table,
            [{"fields": r.fields} for r in args.records],
            args.idempotency_key,
            {"typecast": args.typecast},
        )
        ctx.logger.info(
            "Create completed", operation="create", base_id=args.base_id, table=args.table, records_returned=len(written)
        )
        return create_response(
            {
                "diff": {"added": len(written), "updated": 0, "unchanged": 0},
                "records": written,
                "dryRun": False,
            }
        )
    except Exception as e:
        return handle_operation_error("create", e, ctx)


async def update_records(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = UpdateInput.model_validate(raw_args)
        _gate(ctx, "update", args.base_id, args.table)

        if args.dry_run:
            return create_response(
                {
                    "diff": {"added": 0, "updated": len(args.records), "unchanged": 0, "conflicts": 0},
                    "dryRun": True,
                    "records": [{"id": r.id, "fields": r.fields} for r in args.records],
                    "conflicts": [],
                }
            )

        written = await _write_in_chunks(
            ctx,
            "update",
            ctx.client.update_records,
            args.base_id,
            args.table,
            [{"id": r.id, "fields": r.fields} for r in args.records],
            args.idempotency_key,
            {"typecast": args.typecast},
        )
        ctx.logger.info(
            "Update completed", operation="update", base_id=args.base_id, table=args.table, records_returned=len(written)
        )
        return create_response(
            {
                "diff": {"added": 0, "updated": len(written), "unchanged": 0, "conflicts": 0},
                "records": written,
                "dryRun": False,
                "conflicts": [],
            }
        )
    except Exception as e:
        return handle_operation_error("update", e, ctx)


async def upsert_records(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = UpsertInput.model_validate(raw_args)
        _gate(ctx, "upsert", args.base_id, args.table)
        matched_by = list(args.perform_upsert.fields_to_merge_on)

        if args.dry_run:
            return create_response(
                {
                    "diff": {"added": len(args.records), "updated": 0, "unchanged": 0, "conflicts": 0},
                    "dryRun": True,
                    "records": [{"id": "pending", "fields": r.fields} for r in args.records],
                    "matchedBy": matched_by,
                }
            )

        written = await _write_in_chunks(
            ctx,
            "upsert",
            ctx.client.upsert_records,
            args.base_id,
            args.table,
            [{"fields": r.fields} for r in args.records],
            args.idempotency_key,
            {"typecast": args.typecast, "performUpsert": {"fieldsToMergeOn": matched_by}},
        )
        ctx.logger.info(
            "Upsert completed", operation="upsert", base_id=args.base_id, table=args.table, records_returned=len(written)
        )
        return create_response(
            {
                "diff": {"added": 0, "updated": len(written), "unchanged": 0},
                "matchedBy": matched_by,
                "records": written,
                "dryRun": False,
            }
        )
    except Exception as e:
        return handle_operation_error("upsert", e, ctx)
