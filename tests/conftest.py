"""
pytest configuration for gateway tests.

Adds src directory to Python path for imports and clears gateway
environment variables so a developer's shell cannot leak into tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

GATEWAY_ENV_VARS = (
    "AIRTABLE_PAT",
    "AIRTABLE_TOKEN",
    "AIRTABLE_API_TOKEN",
    "AIRTABLE_API_KEY",
    "AIRTABLE_DEFAULT_BASE",
    "AIRTABLE_BASE_ID",
    "AIRTABLE_BASE",
    "AIRTABLE_ALLOWED_BASES",
    "AIRTABLE_BASE_ALLOWLIST",
    "AIRTABLE_ALLOWED_TABLES",
    "AIRTABLE_GOVERNANCE_PATH",
    "AIRTABLE_BASE_RPS",
    "AIRTABLE_PAT_RPS",
    "AIRTABLE_HTTP_TIMEOUT_MS",
    "AIRTABLE_MAX_RETRIES",
    "AIRTABLE_TOOL_TIMEOUT_MS",
    "AIRTABLE_API_URL",
    "AIRTABLE_GATEWAY_CONFIG",
    "EXCEPTION_QUEUE_SIZE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_gateway_env(monkeypatch):
    """Remove gateway settings from the environment for every test."""
    for name in GATEWAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
