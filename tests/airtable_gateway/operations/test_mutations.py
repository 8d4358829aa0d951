"""Tests for create, update and upsert operations."""

from unittest.mock import AsyncMock, patch

import pytest

from airtable_gateway.operations.mutations import (
    CHUNK_SIZE,
    chunk,
    chunk_idempotency_key,
    create_records,
    update_records,
    upsert_records,
)
from core.errors.exceptions import DomainError


def _echo_records(base_id, table, body, idempotency_key):
    """Mimic Airtable returning the written records with ids."""
    return {
        "records": [
            {"id": record.get("id", f"rec{index}"), "fields": record["fields"], "createdTime": "2024-01-01T00:00:00.000Z"}
            for index, record in enumerate(body["records"])
        ]
    }


def _new_records(count: int) -> list[dict]:
    return [{"fields": {"Name": f"Row {i}"}} for i in range(count)]


class TestChunking:
    """Test chunk helpers."""

    def test_chunk_sizes(self):
        assert [len(c) for c in chunk(list(range(25)))] == [10, 10, 5]

    def test_chunk_exact_multiple(self):
        assert [len(c) for c in chunk(list(range(20)), 10)] == [10, 10]

    def test_chunk_empty(self):
        assert chunk([]) == []

    @pytest.mark.parametrize("size", [0, -1])
    def test_chunk_rejects_non_positive_size(self, size):
        with pytest.raises(ValueError):
            chunk([1, 2], size)

    def test_idempotency_key_per_chunk(self):
        assert chunk_idempotency_key("abc", 0) == "abc:0"
        assert chunk_idempotency_key("abc", 2) == "abc:2"
        assert chunk_idempotency_key(None, 1) is None

    def test_chunk_size_matches_airtable_limit(self):
        assert CHUNK_SIZE == 10


class TestCreateRecords:
    """Test create_records."""

    @pytest.mark.asyncio
    async def test_dry_run_makes_no_calls(self, make_ctx, payload):
        ctx = make_ctx()
        with patch.object(ctx.client, "create_records", new=AsyncMock()) as mock_create:
            result = await create_records(
                ctx, {"baseId": "app1", "table": "Tasks", "records": _new_records(2), "dryRun": True}
            )

        mock_create.assert_not_awaited()
        assert payload(result) == {
            "diff": {"added": 2, "updated": 0, "unchanged": 0},
            "dryRun": True,
            "records": [
                {"id": "pending", "fields": {"Name": "Row 0"}},
                {"id": "pending", "fields": {"Name": "Row 1"}},
            ],
        }

    @pytest.mark.asyncio
    async def test_chunks_with_derived_idempotency_keys(self, make_ctx, payload):
        ctx = make_ctx()
        with patch.object(ctx.client, "create_records", new=AsyncMock(side_effect=_echo_records)) as mock_create:
            result = await create_records(
                ctx,
                {
                    "baseId": "app1",
                    "table": "Tasks",
                    "records": _new_records(25),
                    "typecast": True,
                    "idempotencyKey": "k",
                },
            )

        assert mock_create.await_count == 3
        calls = mock_create.await_args_list
        assert [c.args[3] for c in calls] == ["k:0", "k:1", "k:2"]
        assert [len(c.args[2]["records"]) for c in calls] == [10, 10, 5]
        assert all(c.args[2]["typecast"] is True for c in calls)
        assert calls[1].args[2]["records"][0] == {"fields": {"Name": "Row 10"}}

        data = payload(result)
        assert data["diff"] == {"added": 25, "updated": 0, "unchanged": 0}
        assert data["dryRun"] is False
        assert len(data["records"]) == 25
        # createdTime is not part of the written record shape
        assert data["records"][0] == {"id": "rec0", "fields": {"Name": "Row 0"}}

    @pytest.mark.asyncio
    async def test_no_idempotency_key(self, make_ctx):
        ctx = make_ctx()
        with patch.object(ctx.client, "create_records", new=AsyncMock(side_effect=_echo_records)) as mock_create:
            await create_records(ctx, {"baseId": "app1", "table": "Tasks", "records": _new_records(1)})

        assert mock_create.await_args.args[3] is None

    @pytest.mark.asyncio
    async def test_stops_at_first_failing_chunk(self, make_ctx):
        ctx = make_ctx()
        failure = DomainError.validation(
            "Airtable validation error",
            status=422,
            context={"upstream_error_type": "INVALID_FIELD_TYPE", "upstream_error_message": "bad value"},
        )
        with patch.object(
            ctx.client, "create_records", new=AsyncMock(side_effect=[_echo_records("app1", "Tasks", {"records": _new_records(10)}, None), failure])
        ) as mock_create:
            result = await create_records(ctx, {"baseId": "app1", "table": "Tasks", "records": _new_records(25)})

        assert mock_create.await_count == 2
        assert result.is_error
        assert "Invalid field value type" in result.content[0]["text"]
        assert "Details: bad value" in result.content[0]["text"]

    @pytest.mark.asyncio
    async def test_governance_block_is_recorded(self, make_ctx):
        ctx = make_ctx({"allowedOperations": ["describe", "query"]})
        with patch.object(ctx.client, "create_records", new=AsyncMock()) as mock_create:
            result = await create_records(ctx, {"baseId": "app1", "table": "Tasks", "records": _new_records(1)})

        mock_create.assert_not_awaited()
        assert result.is_error
        item = ctx.exceptions.list().items[0]
        assert item.category.value == "schema_drift"
        assert item.summary == "create failed"
        assert item.details == "Operation create is not permitted"

    @pytest.mark.asyncio
    async def test_dry_run_still_gated(self, make_ctx):
        ctx = make_ctx({"allowedBases": ["appOther"]})
        result = await create_records(
            ctx, {"baseId": "app1", "table": "Tasks", "records": _new_records(1), "dryRun": True}
        )
        assert result.is_error


class TestUpdateRecords:
    """Test update_records."""

    @pytest.mark.asyncio
    async def test_dry_run(self, make_ctx, payload):
        ctx = make_ctx()
        records = [{"id": "rec1", "fields": {"Status": "Done"}}]
        with patch.object(ctx.client, "update_records", new=AsyncMock()) as mock_update:
            result = await update_records(
                ctx, {"baseId": "app1", "table": "Tasks", "records": records, "dryRun": True}
            )

        mock_update.assert_not_awaited()
        assert payload(result) == {
            "diff": {"added": 0, "updated": 1, "unchanged": 0, "conflicts": 0},
            "dryRun": True,
            "records": records,
            "conflicts": [],
        }

    @pytest.mark.asyncio
    async def test_sends_ids(self, make_ctx, payload):
        ctx = make_ctx()
        records = [{"id": f"rec{i}", "fields": {"Status": "Done"}} for i in range(12)]
        with patch.object(ctx.client, "update_records", new=AsyncMock(side_effect=_echo_records)) as mock_update:
            result = await update_records(ctx, {"baseId": "app1", "table": "Tasks", "records": records})

        assert mock_update.await_count == 2
        assert mock_update.await_args_list[1].args[2] == {
            "records": [{"id": "rec10", "fields": {"Status": "Done"}}, {"id": "rec11", "fields": {"Status": "Done"}}],
            "typecast": False,
        }
        data = payload(result)
        assert data["diff"] == {"added": 0, "updated": 12, "unchanged": 0, "conflicts": 0}
        assert data["conflicts"] == []

    @pytest.mark.asyncio
    async def test_conflict_message(self, make_ctx):
        ctx = make_ctx()
        conflict = DomainError.conflict("Airtable reported a conflict", status=409)
        with patch.object(ctx.client, "update_records", new=AsyncMock(side_effect=conflict)):
            result = await update_records(
                ctx, {"baseId": "app1", "table": "Tasks", "records": [{"id": "rec1", "fields": {}}]}
            )

        assert result.is_error
        assert result.content[0]["text"].startswith("Record conflict detected.")


class TestUpsertRecords:
    """Test upsert_records."""

    @pytest.mark.asyncio
    async def test_body_carries_merge_fields(self, make_ctx, payload):
        ctx = make_ctx()
        with patch.object(ctx.client, "upsert_records", new=AsyncMock(side_effect=_echo_records)) as mock_upsert:
            result = await upsert_records(
                ctx,
                {
                    "baseId": "app1",
                    "table": "People",
                    "records": [{"fields": {"Email": "a@example.com", "Name": "Ada"}}],
                    "performUpsert": {"fieldsToMergeOn": ["Email"]},
                    "idempotencyKey": "up",
                },
            )

        mock_upsert.assert_awaited_once_with(
            "app1",
            "People",
            {
                "records": [{"fields": {"Email": "a@example.com", "Name": "Ada"}}],
                "typecast": False,
                "performUpsert": {"fieldsToMergeOn": ["Email"]},
            },
            "up:0",
        )
        data = payload(result)
        assert data["matchedBy"] == ["Email"]
        assert data["diff"] == {"added": 0, "updated": 1, "unchanged": 0}
        assert data["dryRun"] is False

    @pytest.mark.asyncio
    async def test_dry_run(self, make_ctx, payload):
        ctx = make_ctx()
        with patch.object(ctx.client, "upsert_records", new=AsyncMock()) as mock_upsert:
            result = await upsert_records(
                ctx,
                {
                    "baseId": "app1",
                    "table": "People",
                    "records": [{"fields": {"Email": "a@example.com"}}],
                    "performUpsert": {"fieldsToMergeOn": ["Email"]},
                    "dryRun": True,
                },
            )

        mock_upsert.assert_not_awaited()
        assert payload(result) == {
            "diff": {"added": 1, "updated": 0, "unchanged": 0, "conflicts": 0},
            "dryRun": True,
            "records": [{"id": "pending", "fields": {"Email": "a@example.com"}}],
            "matchedBy": ["Email"],
        }

    @pytest.mark.asyncio
    async def test_missing_perform_upsert(self, make_ctx):
        ctx = make_ctx()
        result = await upsert_records(
            ctx, {"baseId": "app1", "table": "People", "records": [{"fields": {"Email": "a@example.com"}}]}
        )
        assert result.is_error
        assert "performUpsert" in result.content[0]["text"]
