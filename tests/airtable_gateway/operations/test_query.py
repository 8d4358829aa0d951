"""Tests for the query operation and PII redaction."""

import hashlib
import logging
from unittest.mock import AsyncMock, patch

import pytest

from airtable_gateway.operations.query import (
    MASK,
    REDACTED_OBJECT,
    apply_pii_policies,
    build_record_query,
    hash_value,
    mask_value,
    query,
)
from airtable_gateway.schemas import QueryInput

RECORDS_RESPONSE = {
    "records": [
        {
            "id": "rec1",
            "createdTime": "2024-01-01T00:00:00.000Z",
            "fields": {"Name": "Ada", "Email": "ada@example.com", "Phone": "555-0100", "SSN": "123"},
        },
        {"id": "rec2", "fields": {"Name": "Grace"}},
    ],
}

PII_GOVERNANCE = {
    "piiFields": [
        {"baseId": "app1", "table": "People", "field": "Email", "policy": "mask"},
        {"baseId": "app1", "table": "People", "field": "Phone", "policy": "hash"},
        {"baseId": "app1", "table": "People", "field": "SSN", "policy": "drop"},
    ]
}


class TestMaskAndHash:
    """Test value masking and hashing."""

    def test_mask_scalar(self):
        assert mask_value("secret") == MASK
        assert mask_value(42) == MASK

    def test_mask_list_keeps_length(self):
        assert mask_value(["a", "b", "c"]) == [MASK, MASK, MASK]

    def test_mask_object(self):
        assert mask_value({"url": "x"}) == REDACTED_OBJECT

    def test_mask_none(self):
        assert mask_value(None) is None

    def test_hash_string(self):
        assert hash_value("555-0100") == hashlib.sha256(b"555-0100").hexdigest()

    def test_hash_non_string_uses_compact_json(self):
        assert hash_value([1, 2]) == hashlib.sha256(b"[1,2]").hexdigest()
        assert hash_value(5) == hashlib.sha256(b"5").hexdigest()

    def test_hash_is_stable(self):
        assert hash_value({"a": 1}) == hash_value({"a": 1})


class TestApplyPiiPolicies:
    """Test per-field policy application."""

    def test_applies_each_policy(self):
        fields = {"Email": "ada@example.com", "Phone": "555-0100", "SSN": "123", "Name": "Ada"}
        policies = [
            {"field": "Email", "policy": "mask"},
            {"field": "Phone", "policy": "hash"},
            {"field": "SSN", "policy": "drop"},
        ]
        result = apply_pii_policies(fields, policies)
        assert result == {
            "Email": MASK,
            "Phone": hashlib.sha256(b"555-0100").hexdigest(),
            "Name": "Ada",
        }

    def test_input_not_mutated(self):
        fields = {"Email": "ada@example.com"}
        apply_pii_policies(fields, [{"field": "Email", "policy": "drop"}])
        assert fields == {"Email": "ada@example.com"}

    def test_missing_field_ignored(self):
        assert apply_pii_policies({"Name": "Ada"}, [{"field": "Email", "policy": "mask"}]) == {"Name": "Ada"}

    def test_no_policies_returns_fields(self):
        fields = {"Name": "Ada"}
        assert apply_pii_policies(fields, []) is fields


class TestBuildRecordQuery:
    """Test translation of query input to request parameters."""

    def test_minimal(self):
        args = QueryInput.model_validate({"baseId": "app1", "table": "T"})
        assert build_record_query(args) == {"returnFieldsByFieldId": False}

    def test_all_options(self):
        args = QueryInput.model_validate(
            {
                "baseId": "app1",
                "table": "T",
                "fields": ["Name", "Status"],
                "filterByFormula": "{Status} = 'Done'",
                "view": "Grid view",
                "pageSize": 50,
                "maxRecords": 200,
                "offset": "itr123",
                "returnFieldsByFieldId": True,
                "sorts": [{"field": "Name"}, {"field": "Created", "direction": "desc"}],
            }
        )
        assert build_record_query(args) == {
            "fields": ["Name", "Status"],
            "filterByFormula": "{Status} = 'Done'",
            "view": "Grid view",
            "pageSize": 50,
            "maxRecords": 200,
            "offset": "itr123",
            "returnFieldsByFieldId": True,
            "sort[0][field]": "Name",
            "sort[0][direction]": "asc",
            "sort[1][field]": "Created",
            "sort[1][direction]": "desc",
        }


class TestQueryOperation:
    """Test the query operation end to end with a mocked client."""

    @pytest.mark.asyncio
    async def test_returns_records_with_pii_applied(self, make_ctx, payload):
        ctx = make_ctx(PII_GOVERNANCE)
        with patch.object(ctx.client, "query_records", new=AsyncMock(return_value=RECORDS_RESPONSE)) as mock_query:
            result = await query(ctx, {"baseId": "app1", "table": "People", "fields": ["Name"]})

        data = payload(result)
        mock_query.assert_awaited_once_with(
            "app1", "People", {"fields": ["Name"], "returnFieldsByFieldId": False}
        )
        first = data["records"][0]
        assert first["id"] == "rec1"
        assert first["createdTime"] == "2024-01-01T00:00:00.000Z"
        assert first["fields"] == {
            "Name": "Ada",
            "Email": MASK,
            "Phone": hashlib.sha256(b"555-0100").hexdigest(),
        }
        assert data["records"][1] == {"id": "rec2", "fields": {"Name": "Grace"}}
        assert data["summary"] == {"returned": 2, "hasMore": False}
        assert "offset" not in data

    @pytest.mark.asyncio
    async def test_policies_scoped_to_table(self, make_ctx, payload):
        ctx = make_ctx(PII_GOVERNANCE)
        with patch.object(ctx.client, "query_records", new=AsyncMock(return_value=RECORDS_RESPONSE)):
            result = await query(ctx, {"baseId": "app1", "table": "Other"})

        assert payload(result)["records"][0]["fields"]["Email"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_offset_means_more(self, make_ctx, payload):
        ctx = make_ctx()
        response = {"records": [{"id": "rec1", "fields": {}}], "offset": "itr2/rec9"}
        with patch.object(ctx.client, "query_records", new=AsyncMock(return_value=response)):
            result = await query(ctx, {"baseId": "app1", "table": "T"})

        data = payload(result)
        assert data["offset"] == "itr2/rec9"
        assert data["summary"] == {"returned": 1, "hasMore": True}

    @pytest.mark.asyncio
    async def test_empty_response(self, make_ctx, payload):
        ctx = make_ctx()
        with patch.object(ctx.client, "query_records", new=AsyncMock(return_value={})):
            result = await query(ctx, {"baseId": "app1", "table": "T"})
        assert payload(result) == {"records": [], "summary": {"returned": 0, "hasMore": False}}

    @pytest.mark.asyncio
    async def test_unsafe_formula_logged_but_sent(self, make_ctx, payload, caplog):
        ctx = make_ctx()
        formula = 'OR({Name} = "x"), TRUE()'
        with patch.object(ctx.client, "query_records", new=AsyncMock(return_value={"records": []})) as mock_query:
            with caplog.at_level(logging.WARNING):
                result = await query(ctx, {"baseId": "app1", "table": "T", "filterByFormula": formula})

        payload(result)
        assert mock_query.await_args.args[2]["filterByFormula"] == formula
        warnings = [r for r in caplog.records if r.getMessage() == "Potentially unsafe formula pattern detected"]
        assert len(warnings) == 1
        assert warnings[0].formula == formula[:100]

    @pytest.mark.asyncio
    async def test_disallowed_table_never_calls_client(self, make_ctx):
        ctx = make_ctx({"allowedTables": [{"baseId": "app1", "table": "Public"}]})
        with patch.object(ctx.client, "query_records", new=AsyncMock()) as mock_query:
            result = await query(ctx, {"baseId": "app1", "table": "Secret"})

        assert result.is_error
        assert "Operation blocked by governance policy" in result.content[0]["text"]
        mock_query.assert_not_awaited()
        assert len(ctx.exceptions) == 1

    @pytest.mark.asyncio
    async def test_disallowed_operation(self, make_ctx):
        ctx = make_ctx({"allowedOperations": ["describe"]})
        with patch.object(ctx.client, "query_records", new=AsyncMock()) as mock_query:
            result = await query(ctx, {"baseId": "app1", "table": "T"})

        assert result.is_error
        mock_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_input(self, make_ctx):
        ctx = make_ctx()
        result = await query(ctx, {"baseId": "app1"})

        assert result.is_error
        assert result.content[0]["text"].startswith("Invalid query input: table:")
        item = ctx.exceptions.list().items[0]
        assert item.category.value == "validation"
        assert item.severity.value == "warning"
