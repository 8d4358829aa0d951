"""Tests for the describe operation."""

from unittest.mock import AsyncMock, patch

import pytest

from airtable_gateway.operations.describe import describe, normalize_field, normalize_table
from core.errors.exceptions import DomainError

BASE_RESPONSE = {"id": "app1", "name": "Projects", "permissionLevel": "create"}

TABLES_RESPONSE = {
    "tables": [
        {
            "id": "tblTasks",
            "name": "Tasks",
            "primaryFieldId": "fldName",
            "fields": [
                {"id": "fldName", "name": "Name", "type": "singleLineText", "description": "Task title"},
                {
                    "id": "fldStatus",
                    "name": "Status",
                    "type": "singleSelect",
                    "options": {"choices": [{"name": "Todo"}, {"name": "Done"}]},
                },
            ],
            "views": [{"id": "viwGrid", "name": "Grid view", "type": "grid"}],
        },
        {
            "id": "tblSecret",
            "name": "Salaries",
            "primaryFieldId": "fldEmp",
            "fields": [{"id": "fldEmp", "name": "Employee", "type": "singleLineText"}],
            "views": [{"id": "viwHidden", "name": "All salaries", "type": "grid"}],
        },
    ]
}


def _patch_client(ctx):
    return (
        patch.object(ctx.client, "get_base", new=AsyncMock(return_value=BASE_RESPONSE)),
        patch.object(ctx.client, "list_tables", new=AsyncMock(return_value=TABLES_RESPONSE)),
    )


class TestNormalizers:
    """Test schema normalization helpers."""

    def test_field_identifiers_only(self):
        raw = TABLES_RESPONSE["tables"][0]["fields"][1]
        assert normalize_field(raw, "identifiersOnly") == {"id": "fldStatus", "name": "Status"}

    def test_field_full(self):
        raw = TABLES_RESPONSE["tables"][0]["fields"][1]
        assert normalize_field(raw, "full") == {
            "id": "fldStatus",
            "name": "Status",
            "type": "singleSelect",
            "options": {"choices": [{"name": "Todo"}, {"name": "Done"}]},
        }

    def test_table_identifiers_only(self):
        raw = TABLES_RESPONSE["tables"][0]
        assert normalize_table(raw, "tableIdentifiersOnly", True, True) == {"id": "tblTasks", "name": "Tasks"}

    def test_table_without_fields(self):
        raw = TABLES_RESPONSE["tables"][0]
        assert normalize_table(raw, "identifiersOnly", False, False) == {
            "id": "tblTasks",
            "name": "Tasks",
            "primaryFieldId": "fldName",
        }


class TestDescribeOperation:
    """Test describe with a mocked client."""

    @pytest.mark.asyncio
    async def test_base_scope_full(self, make_ctx, payload):
        ctx = make_ctx()
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(ctx, {"scope": "base", "baseId": "app1"})

        data = payload(result)
        assert data["base"] == {"id": "app1", "name": "Projects"}
        assert [t["id"] for t in data["tables"]] == ["tblTasks", "tblSecret"]
        first = data["tables"][0]
        assert first["fields"][0] == {
            "id": "fldName",
            "name": "Name",
            "type": "singleLineText",
            "description": "Task title",
        }
        # Views are opt-in
        assert "views" not in first
        assert "views" not in data

    @pytest.mark.asyncio
    async def test_table_identifiers_only_skips_fields_and_views(self, make_ctx, payload):
        ctx = make_ctx()
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(
                ctx,
                {"scope": "base", "baseId": "app1", "detailLevel": "tableIdentifiersOnly", "includeViews": True},
            )

        data = payload(result)
        assert data["tables"] == [{"id": "tblTasks", "name": "Tasks"}, {"id": "tblSecret", "name": "Salaries"}]
        assert "views" not in data

    @pytest.mark.asyncio
    async def test_base_scope_views(self, make_ctx, payload):
        ctx = make_ctx()
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(
                ctx, {"scope": "base", "baseId": "app1", "detailLevel": "identifiersOnly", "includeViews": True}
            )

        data = payload(result)
        assert data["views"] == [
            {"id": "viwGrid", "name": "Grid view"},
            {"id": "viwHidden", "name": "All salaries"},
        ]
        assert data["tables"][0]["views"] == [{"id": "viwGrid", "name": "Grid view"}]

    @pytest.mark.asyncio
    async def test_allowed_tables_filter_tables_and_views(self, make_ctx, payload):
        ctx = make_ctx({"allowedTables": [{"baseId": "app1", "table": "Tasks"}]})
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(ctx, {"scope": "base", "baseId": "app1", "includeViews": True})

        data = payload(result)
        assert [t["name"] for t in data["tables"]] == ["Tasks"]
        assert data["views"] == [{"id": "viwGrid", "name": "Grid view", "type": "grid"}]

    @pytest.mark.asyncio
    async def test_allowed_tables_match_by_id(self, make_ctx, payload):
        ctx = make_ctx({"allowedTables": [{"baseId": "app1", "table": "tblSecret"}]})
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(ctx, {"scope": "base", "baseId": "app1"})

        assert [t["id"] for t in payload(result)["tables"]] == ["tblSecret"]

    @pytest.mark.asyncio
    async def test_table_scope_by_name_case_insensitive(self, make_ctx, payload):
        ctx = make_ctx()
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(ctx, {"scope": "table", "baseId": "app1", "table": "tasks"})

        data = payload(result)
        assert [t["id"] for t in data["tables"]] == ["tblTasks"]
        assert "views" not in data

    @pytest.mark.asyncio
    async def test_table_scope_not_found(self, make_ctx):
        ctx = make_ctx()
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(ctx, {"scope": "table", "baseId": "app1", "table": "Missing"})

        assert result.is_error
        assert result.content[0]["text"].startswith('Resource not found in base "app1".')
        assert ctx.exceptions.list().items[0].details == "Table Missing not found in base app1"

    @pytest.mark.asyncio
    async def test_hidden_table_is_not_found(self, make_ctx):
        ctx = make_ctx({"allowedTables": [{"baseId": "app1", "table": "Tasks"}]})
        get_base, list_tables = _patch_client(ctx)
        with get_base, list_tables:
            result = await describe(ctx, {"scope": "table", "baseId": "app1", "table": "Salaries"})

        assert result.is_error

    @pytest.mark.asyncio
    async def test_base_name_falls_back_to_id(self, make_ctx, payload):
        ctx = make_ctx()
        with patch.object(ctx.client, "get_base", new=AsyncMock(return_value={})), patch.object(
            ctx.client, "list_tables", new=AsyncMock(return_value={"tables": []})
        ):
            result = await describe(ctx, {"scope": "base", "baseId": "app1"})

        assert payload(result) == {"base": {"id": "app1", "name": "app1"}, "tables": []}

    @pytest.mark.asyncio
    async def test_disallowed_base_makes_no_calls(self, make_ctx):
        ctx = make_ctx({"allowedBases": ["appOther"]})
        get_base, list_tables = _patch_client(ctx)
        with get_base as mock_get_base, list_tables:
            result = await describe(ctx, {"scope": "base", "baseId": "app1"})

        assert result.is_error
        mock_get_base.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_auth_failure_message(self, make_ctx):
        ctx = make_ctx()
        error = DomainError.auth(
            "Authentication failed with Airtable",
            status=403,
            context={"endpoint": "/v0/meta/bases/app1", "base_id": "app1"},
        )
        with patch.object(ctx.client, "get_base", new=AsyncMock(side_effect=error)):
            result = await describe(ctx, {"scope": "base", "baseId": "app1"})

        assert result.is_error
        assert result.content[0]["text"].startswith('Authentication failed for base "app1".\n\nThis could mean:')
