"""
Governance allow-lists and PII policies.

The snapshot is built once at startup and never mutated. GovernanceService
answers "may this call proceed?" without any I/O, so every check runs before
the delivery client is touched.

Allow-list semantics:
- allowed_bases empty: every base is allowed
- allowed_tables: scoped per base. A base with no entries allows all of its
  tables; a base with at least one entry allows only the listed tables
- allowed_operations: always enforced
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from core.errors.exceptions import DomainError

logger = logging.getLogger(__name__)

OperationName = Literal["describe", "query", "create", "update", "upsert"]
PiiPolicy = Literal["mask", "hash", "drop"]

ALL_OPERATIONS: tuple[str, ...] = ("describe", "query", "create", "update", "upsert")


class AllowedTable(BaseModel):
    """One ``baseId:table`` allow-list entry. ``table`` may be an id or a name."""

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    base_id: str = Field(..., alias="baseId", min_length=1)
    table: str = Field(..., min_length=1)


class PiiField(BaseModel):
    """PII handling policy for one field of one table."""

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    base_id: str = Field(..., alias="baseId")
    table: str
    field: str
    policy: PiiPolicy


class GovernanceSnapshot(BaseModel):
    """
    Immutable governance configuration.

    Serializes with camelCase aliases (``model_dump(by_alias=True)``) so the
    JSON shape matches the governance file format.
    """

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    allowed_bases: list[str] = Field(default_factory=list, alias="allowedBases")
    allowed_tables: list[AllowedTable] = Field(default_factory=list, alias="allowedTables")
    allowed_operations: list[OperationName] = Field(
        default_factory=lambda: list(ALL_OPERATIONS), alias="allowedOperations"
    )
    pii_fields: list[PiiField] = Field(default_factory=list, alias="piiFields")
    redaction_policy: Literal["mask_all_pii", "mask_on_inline", "none"] = Field(
        default="mask_on_inline", alias="redactionPolicy"
    )
    logging_policy: Literal["errors_only", "minimal", "verbose"] = Field(
        default="minimal", alias="loggingPolicy"
    )
    retention_days: int = Field(default=7, ge=0, alias="retentionDays")

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class GovernanceService:
    """Read-only policy engine over a GovernanceSnapshot."""

    def __init__(self, snapshot: GovernanceSnapshot):
        self._snapshot = snapshot
        self._allowed_bases = frozenset(snapshot.allowed_bases)
        self._allowed_operations = frozenset(snapshot.allowed_operations)
        self._tables_by_base = self._build_table_index(snapshot.allowed_tables)

    @staticmethod
    def _build_table_index(entries: Iterable[AllowedTable]) -> dict[str, frozenset[str]]:
        index: dict[str, set[str]] = {}
        for entry in entries:
            index.setdefault(entry.base_id, set()).add(entry.table)
        return {base_id: frozenset(tables) for base_id, tables in index.items()}

    def ensure_base_allowed(self, base_id: str) -> None:
        if self._allowed_bases and base_id not in self._allowed_bases:
            raise DomainError.governance(
                f"Base {base_id} is not in the allow-list",
                context={"base_id": base_id, "governance_rule": "allowedBases"},
            )

    def ensure_operation_allowed(self, operation: str) -> None:
        if operation not in self._allowed_operations:
            raise DomainError.governance(
                f"Operation {operation} is not permitted",
                context={"governance_rule": "allowedOperations"},
            )

    def ensure_table_allowed(self, base_id: str, table: str) -> None:
        if not self.is_table_allowed(base_id, table):
            raise DomainError.governance(
                f"Table {table} is not allowed in base {base_id}",
                context={"base_id": base_id, "table": table, "governance_rule": "allowedTables"},
            )

    def is_table_allowed(self, base_id: str, table: str) -> bool:
        allowed = self._tables_by_base.get(base_id)
        if not allowed:
            return True
        return table in allowed

    def list_pii_policies(self, base_id: str, table: str) -> list[dict[str, str]]:
        return [
            {"field": item.field, "policy": item.policy}
            for item in self._snapshot.pii_fields
            if item.base_id == base_id and item.table == table
        ]

    def get_snapshot(self) -> GovernanceSnapshot:
        return self._snapshot


# =============================================================================
# Snapshot construction
# =============================================================================


def parse_allowed_tables(entries: Iterable[str]) -> list[AllowedTable]:
    """
    Parse ``baseId:table`` strings.

    Raises:
        DomainError: GovernanceError for an entry missing either half
    """
    tables: list[AllowedTable] = []
    for raw in entries:
        entry = raw.strip()
        if not entry:
            continue
        base_id, _, table = entry.partition(":")
        # Only the first two colon-separated parts are significant
        table = table.split(":", 1)[0]
        if not base_id.strip() or not table.strip():
            raise DomainError.governance(
                f'Invalid AIRTABLE_ALLOWED_TABLES entry "{entry}". '
                "Expected format baseId:tableName."
            )
        tables.append(AllowedTable(base_id=base_id.strip(), table=table.strip()))
    return tables


def read_governance_file(path: Path) -> dict | None:
    """
    Load governance overrides from a JSON or YAML file.

    Returns None when the file does not exist. Every key is optional; the
    result is validated against GovernanceSnapshot before being returned.

    Raises:
        DomainError: GovernanceError when the file cannot be parsed or validated
    """
    if not path.exists():
        return None

    try:
        raw = path.read_text(encoding="utf-8")
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw) or {}
        else:
            data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("top-level value must be an object")
        GovernanceSnapshot.model_validate(data)
    except (OSError, ValueError, yaml.YAMLError, ValidationError) as e:
        raise DomainError.governance(
            f"Failed to parse governance configuration at {path}: {e}",
            cause=e,
        ) from e

    logger.info("Loaded governance configuration", extra={"operation": "load_governance"})
    return data


def build_governance_snapshot(
    allowed_bases: Iterable[str] = (),
    allowed_tables: Iterable[AllowedTable] = (),
    governance_path: Path | None = None,
) -> GovernanceSnapshot:
    """
    Combine defaults, the governance file and configured allow-lists.

    Configured bases and tables are unioned into whatever the file declares.
    Tables are de-duplicated by ``baseId:table``.
    """
    overrides = read_governance_file(governance_path) if governance_path else None
    merged = GovernanceSnapshot.model_validate(overrides or {})

    bases = list(dict.fromkeys([*merged.allowed_bases, *allowed_bases]))

    extra_tables = list(allowed_tables)
    tables = merged.allowed_tables
    if extra_tables:
        by_key: dict[str, AllowedTable] = {}
        for entry in [*merged.allowed_tables, *extra_tables]:
            by_key[f"{entry.base_id}:{entry.table}"] = entry
        tables = list(by_key.values())

    return merged.model_copy(update={"allowed_bases": bases, "allowed_tables": tables})


__all__ = [
    "ALL_OPERATIONS",
    "AllowedTable",
    "PiiField",
    "GovernanceSnapshot",
    "GovernanceService",
    "parse_allowed_tables",
    "read_governance_file",
    "build_governance_snapshot",
]
