"""Shared fixtures for operation tests."""

import json

import pytest

from airtable_gateway.context import build_context
from airtable_gateway.governance import GovernanceSnapshot
from config.config import GatewayConfig

VALID_PAT = "pat" + "A" * 14 + "." + "b" * 64


@pytest.fixture
def make_ctx():
    """Factory building an AppContext with optional governance and config overrides."""

    def _make(governance: dict | None = None, **config_overrides):
        snapshot = GovernanceSnapshot.model_validate(governance or {})
        config = GatewayConfig(personal_access_token=VALID_PAT, governance=snapshot, **config_overrides)
        return build_context(config)

    return _make


@pytest.fixture
def payload():
    """Return the structured payload of a successful result, checked against its text block."""

    def _payload(result) -> dict:
        assert not result.is_error, result.content[0]["text"]
        assert json.loads(result.content[0]["text"]) == result.structured_content
        return result.structured_content

    return _payload
