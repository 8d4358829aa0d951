"""
Input schemas for gateway operations.

Pydantic models validating the raw argument dicts supplied by the calling
agent. Field names are snake_case in Python and camelCase on the wire
(``baseId``, ``filterByFormula``...); unknown keys are rejected.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from core.errors.exceptions import DomainError

DetailLevel = Literal["tableIdentifiersOnly", "identifiersOnly", "full"]

_STRICT = {"extra": "forbid", "populate_by_name": True}


class DescribeInput(BaseModel):
    """Arguments for the describe operation.

    detail_level:
        tableIdentifiersOnly: Only table ids and names
        identifiersOnly: Table, field and view ids and names
        full: Complete details including field types and options
    """

    model_config = _STRICT

    scope: Literal["base", "table"]
    base_id: str = Field(..., alias="baseId", min_length=1)
    table: str | None = Field(default=None, min_length=1)
    detail_level: DetailLevel = Field(default="full", alias="detailLevel")
    include_fields: bool = Field(default=True, alias="includeFields")
    include_views: bool = Field(default=False, alias="includeViews")

    @model_validator(mode="after")
    def require_table_for_table_scope(self) -> "DescribeInput":
        if self.scope == "table" and not self.table:
            raise ValueError('table is required when scope is "table"')
        return self


class SortSpec(BaseModel):
    model_config = _STRICT

    field: str = Field(..., min_length=1)
    direction: Literal["asc", "desc"] = "asc"


class QueryInput(BaseModel):
    """Arguments for the query operation."""

    model_config = _STRICT

    base_id: str = Field(..., alias="baseId", min_length=1)
    table: str = Field(..., min_length=1)
    fields: list[str] | None = None
    filter_by_formula: str | None = Field(default=None, alias="filterByFormula")
    view: str | None = None
    sorts: list[SortSpec] | None = None
    page_size: int | None = Field(default=None, alias="pageSize", ge=1, le=100)
    max_records: int | None = Field(default=None, alias="maxRecords", ge=1)
    offset: str | None = None
    return_fields_by_field_id: bool = Field(default=False, alias="returnFieldsByFieldId")

    @field_validator("fields")
    @classmethod
    def validate_field_names(cls, v: list[str] | None) -> list[str] | None:
        """Field names must be non-empty."""
        if v is not None and any(not name for name in v):
            raise ValueError("field names cannot be empty")
        return v


class NewRecord(BaseModel):
    model_config = _STRICT

    fields: dict[str, Any]


class ExistingRecord(BaseModel):
    model_config = _STRICT

    id: str
    fields: dict[str, Any]


class _MutationInput(BaseModel):
    model_config = _STRICT

    base_id: str = Field(..., alias="baseId", min_length=1)
    table: str = Field(..., min_length=1)
    typecast: bool = False
    idempotency_key: str | None = Field(default=None, alias="idempotencyKey", min_length=1)
    dry_run: bool = Field(default=False, alias="dryRun")


class CreateInput(_MutationInput):
    records: list[NewRecord] = Field(..., min_length=1)


class UpdateInput(_MutationInput):
    records: list[ExistingRecord] = Field(..., min_length=1)
    conflict_strategy: Literal["fail_on_conflict", "server_merge", "client_merge"] = Field(
        default="fail_on_conflict", alias="conflictStrategy"
    )
    if_unchanged_hash: str | None = Field(default=None, alias="ifUnchangedHash")


class PerformUpsert(BaseModel):
    model_config = _STRICT

    fields_to_merge_on: list[str] = Field(..., alias="fieldsToMergeOn", min_length=1)

    @field_validator("fields_to_merge_on")
    @classmethod
    def validate_merge_fields(cls, v: list[str]) -> list[str]:
        if any(not name for name in v):
            raise ValueError("fieldsToMergeOn entries cannot be empty")
        return v


class UpsertInput(_MutationInput):
    records: list[NewRecord] = Field(..., min_length=1)
    perform_upsert: PerformUpsert = Field(..., alias="performUpsert")
    conflict_strategy: Literal["fail_on_conflict", "server_merge", "client_merge"] = Field(
        default="fail_on_conflict", alias="conflictStrategy"
    )


class ListExceptionsInput(BaseModel):
    model_config = _STRICT

    since: str | None = None
    severity: Literal["info", "warning", "error"] | None = None
    limit: int = Field(default=100, ge=1, le=500)
    cursor: str | None = None


WebhookDataType = Literal["tableData", "tableFields", "tableMetadata"]


class ListWebhooksInput(BaseModel):
    model_config = _STRICT

    base_id: str | None = Field(default=None, alias="baseId", min_length=1)


class CreateWebhookInput(BaseModel):
    """Arguments for create_webhook.

    data_types and record_change_scope become the webhook's
    ``specification.options.filters``.
    """

    model_config = _STRICT

    base_id: str | None = Field(default=None, alias="baseId", min_length=1)
    notification_url: str = Field(..., alias="notificationUrl", min_length=1)
    data_types: list[WebhookDataType] = Field(
        default_factory=lambda: ["tableData"], alias="dataTypes", min_length=1
    )
    record_change_scope: str | None = Field(default=None, alias="recordChangeScope", min_length=1)

    @field_validator("notification_url")
    @classmethod
    def validate_notification_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError("notificationUrl must be an http(s) URL")
        return v


class RefreshWebhookInput(BaseModel):
    model_config = _STRICT

    base_id: str | None = Field(default=None, alias="baseId", min_length=1)
    webhook_id: str = Field(..., alias="webhookId", min_length=1)


def validation_error_to_domain(exc: ValidationError, operation: str) -> DomainError:
    """Convert a pydantic ValidationError into a ValidationError DomainError."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return DomainError.validation(
        f"Invalid {operation} input: {'; '.join(problems)}",
        context={"operation": operation},
        cause=exc,
    )


__all__ = [
    "DetailLevel",
    "DescribeInput",
    "SortSpec",
    "QueryInput",
    "NewRecord",
    "ExistingRecord",
    "CreateInput",
    "UpdateInput",
    "PerformUpsert",
    "UpsertInput",
    "ListExceptionsInput",
    "WebhookDataType",
    "ListWebhooksInput",
    "CreateWebhookInput",
    "RefreshWebhookInput",
    "validation_error_to_domain",
]
