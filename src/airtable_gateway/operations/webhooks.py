"""
Webhook management for a base: list, create and refresh.

The base comes from ``baseId`` when given, otherwise the configured default
base, otherwise the first allowed base. Whichever base is picked still has
to pass the base allow-list.
"""

from typing import TYPE_CHECKING, Any

from airtable_gateway.operations.errors import handle_operation_error
from airtable_gateway.operations.response import OperationResult, create_response
from airtable_gateway.schemas import CreateWebhookInput, ListWebhooksInput, RefreshWebhookInput
from core.errors.exceptions import DomainError

if TYPE_CHECKING:
    from airtable_gateway.context import AppContext


def resolve_webhook_base(ctx: "AppContext", base_id: str | None, operation: str) -> str:
    resolved = base_id or ctx.config.default_base_id
    if not resolved and ctx.config.allowed_bases:
        resolved = ctx.config.allowed_bases[0]
    if not resolved:
        raise DomainError.validation(
            "No base configured: pass baseId or set AIRTABLE_DEFAULT_BASE",
            context={"operation": operation},
        )
    ctx.governance.ensure_base_allowed(resolved)
    return resolved


def build_webhook_specification(args: CreateWebhookInput) -> dict[str, Any]:
    filters: dict[str, Any] = {"dataTypes": list(args.data_types)}
    if args.record_change_scope:
        filters["recordChangeScope"] = args.record_change_scope
    return {"options": {"filters": filters}}


async def list_webhooks(ctx: "AppContext", raw_args: dict[str, Any] | None = None) -> OperationResult:
    try:
        args = ListWebhooksInput.model_validate(raw_args or {})
        base_id = resolve_webhook_base(ctx, args.base_id, "list_webhooks")

        response = await ctx.client.list_webhooks(base_id)
        webhooks = response.get("webhooks") if isinstance(response, dict) else None
        webhooks = [w for w in webhooks or [] if isinstance(w, dict)]

        ctx.logger.debug("Listed webhooks", base_id=base_id, records_returned=len(webhooks))
        return create_response({"baseId": base_id, "webhooks": webhooks})
    except Exception as e:
        return handle_operation_error("list_webhooks", e, ctx)


async def create_webhook(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = CreateWebhookInput.model_validate(raw_args)
        base_id = resolve_webhook_base(ctx, args.base_id, "create_webhook")

        payload = {
            "notificationUrl": args.notification_url,
            "specification": build_webhook_specification(args),
        }
        result = await ctx.client.create_webhook(base_id, payload)

        # The response carries the MAC secret; it is returned, never logged
        ctx.logger.info("Created webhook", base_id=base_id)
        return create_response({"baseId": base_id, "webhook": result if isinstance(result, dict) else {}})
    except Exception as e:
        return handle_operation_error("create_webhook", e, ctx)


async def refresh_webhook(ctx: "AppContext", raw_args: dict[str, Any]) -> OperationResult:
    try:
        args = RefreshWebhookInput.model_validate(raw_args)
        base_id = resolve_webhook_base(ctx, args.base_id, "refresh_webhook")

        result = await ctx.client.refresh_webhook(base_id, args.webhook_id)
        webhook = {"id": args.webhook_id}
        if isinstance(result, dict):
            webhook.update(result)

        ctx.logger.info("Refreshed webhook", base_id=base_id)
        return create_response({"baseId": base_id, "webhook": webhook})
    except Exception as e:
        return handle_operation_error("refresh_webhook", e, ctx)
