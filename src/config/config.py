"""Gateway configuration from YAML file and environment.

Loads from config/config.yaml (or AIRTABLE_GATEWAY_CONFIG) with all settings in
one place:
- Airtable credentials and API endpoint
- Allow-lists and governance file location
- Rate limits, HTTP timeout and retry budget
- Exception log capacity and log level

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
Dedicated environment variables (AIRTABLE_PAT, AIRTABLE_BASE_RPS, ...) take
precedence over the file.
"""

import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from airtable_gateway.credentials import hash_secret, validate_api_key
from airtable_gateway.governance import (
    GovernanceSnapshot,
    build_governance_snapshot,
    parse_allowed_tables,
)
from core.errors.exceptions import DomainError

# Configure module logger
logger = logging.getLogger(__name__)

# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"
CONFIG_PATH_ENV = "AIRTABLE_GATEWAY_CONFIG"

DEFAULT_API_BASE_URL = "https://api.airtable.com"
DEFAULT_EXCEPTION_QUEUE_SIZE = 500

_TOKEN_ENV_VARS = ("AIRTABLE_PAT", "AIRTABLE_TOKEN", "AIRTABLE_API_TOKEN", "AIRTABLE_API_KEY")
_DEFAULT_BASE_ENV_VARS = ("AIRTABLE_DEFAULT_BASE", "AIRTABLE_BASE_ID", "AIRTABLE_BASE")
_ALLOWED_BASES_ENV_VARS = ("AIRTABLE_ALLOWED_BASES", "AIRTABLE_BASE_ALLOWLIST")
_LOG_LEVELS = ("error", "warn", "warning", "info", "debug")


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _first_env(names: tuple[str, ...]) -> Optional[str]:
    """Return the first non-empty environment variable among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def _parse_csv(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def _positive_int(value: Any, default: int) -> int:
    """Parse a positive integer; anything else yields ``default``."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _positive_float(value: Any, default: float) -> float:
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


@dataclass
class GatewayConfig:
    """Airtable gateway configuration.

    Configuration structure (config.yaml):
        airtable:
          personal_access_token: ...   # Prefer AIRTABLE_PAT in the environment
          default_base_id: ...
          api_base_url: https://api.airtable.com
          allowed_bases: [...]
          allowed_tables: ["appXXX:Table", ...]
          governance_path: config/governance.json
          rate_limits: {base_requests_per_second, pat_requests_per_second}
          http: {timeout_ms, max_retries}
          tool_timeout_ms: 60000
        exceptions:
          queue_size: 500
        logging:
          level: info

    All timing values in milliseconds.
    """

    personal_access_token: str = field(default="", repr=False)
    default_base_id: Optional[str] = None
    api_base_url: str = DEFAULT_API_BASE_URL

    # =========================================================================
    # GOVERNANCE
    # =========================================================================
    allowed_bases: List[str] = field(default_factory=list)
    allowed_tables: List[str] = field(default_factory=list)
    governance_path: Optional[str] = None
    governance: GovernanceSnapshot = field(default_factory=GovernanceSnapshot)

    # =========================================================================
    # DELIVERY
    # =========================================================================
    base_requests_per_second: float = 5.0
    pat_requests_per_second: float = 50.0
    http_timeout_ms: int = 30000
    max_retries: int = 1
    tool_timeout_ms: int = 60000

    # =========================================================================
    # OBSERVABILITY
    # =========================================================================
    exception_queue_size: int = DEFAULT_EXCEPTION_QUEUE_SIZE
    log_level: str = "info"

    token_format_warnings: List[str] = field(default_factory=list)
    version: str = "0.1.0"

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.base_requests_per_second = float(self.base_requests_per_second)
        self.pat_requests_per_second = float(self.pat_requests_per_second)
        self.http_timeout_ms = int(self.http_timeout_ms)
        self.max_retries = max(int(self.max_retries), 1)
        self.tool_timeout_ms = int(self.tool_timeout_ms)
        self.exception_queue_size = int(self.exception_queue_size)
        self.api_base_url = self.api_base_url.rstrip("/")

    @property
    def pat_hash(self) -> str:
        """Short hash identifying the credential in logs and rate-limit keys."""
        return hash_secret(self.personal_access_token)

    def validate(self) -> None:
        """Validate configuration for correctness and constraints."""
        if not self.personal_access_token:
            raise DomainError.governance(
                "Missing Airtable credentials. Set AIRTABLE_PAT (preferred) or AIRTABLE_TOKEN."
            )
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"api_base_url must start with http:// or https://, got: {self.api_base_url!r}"
            )
        for key in ("base_requests_per_second", "pat_requests_per_second"):
            if getattr(self, key) <= 0:
                raise ValueError(f"{key} must be > 0, got {getattr(self, key)}")
        for key in ("http_timeout_ms", "tool_timeout_ms", "exception_queue_size"):
            if getattr(self, key) <= 0:
                raise ValueError(f"{key} must be > 0, got {getattr(self, key)}")

    def to_dict(self) -> Dict[str, Any]:
        """Configuration without the credential, for display."""
        return {
            "pat_hash": self.pat_hash,
            "default_base_id": self.default_base_id,
            "api_base_url": self.api_base_url,
            "allowed_bases": list(self.allowed_bases),
            "allowed_tables": list(self.allowed_tables),
            "governance_path": self.governance_path,
            "base_requests_per_second": self.base_requests_per_second,
            "pat_requests_per_second": self.pat_requests_per_second,
            "http_timeout_ms": self.http_timeout_ms,
            "max_retries": self.max_retries,
            "tool_timeout_ms": self.tool_timeout_ms,
            "exception_queue_size": self.exception_queue_size,
            "log_level": self.log_level,
            "token_format_warnings": list(self.token_format_warnings),
        }


def _resolve_config_path(config_path: Optional[Path]) -> tuple[Path, bool]:
    """Return (path, explicit). Explicit paths must exist."""
    if config_path is not None:
        return Path(config_path), True
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path), True
    return DEFAULT_CONFIG_FILE, False


def _resolve_log_level(value: Any) -> str:
    raw = str(value or "info").strip().lower()
    return raw if raw in _LOG_LEVELS else "info"


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> GatewayConfig:
    """Load gateway configuration from config.yaml and the environment.

    Priority (highest to lowest): environment variables, ``overrides``,
    YAML file, dataclass defaults.

    Raises:
        FileNotFoundError: An explicitly requested config file is missing
        DomainError: GovernanceError for missing credentials, malformed
            allowed-table entries or an invalid governance file
        ValueError: Out-of-range numeric settings
    """
    path, explicit = _resolve_config_path(config_path)
    if explicit and not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.debug("Loading configuration from file: %s", path)
    yaml_data = _expand_env_vars(load_yaml(path))

    airtable = dict(yaml_data.get("airtable") or {})
    if overrides:
        logger.debug("Applying overrides: %s", list(overrides.keys()))
        airtable.update(overrides)

    rate_limits = airtable.get("rate_limits") or {}
    http = airtable.get("http") or {}
    exceptions = yaml_data.get("exceptions") or {}
    logging_section = yaml_data.get("logging") or {}

    token = _first_env(_TOKEN_ENV_VARS) or airtable.get("personal_access_token") or ""
    default_base_id = _first_env(_DEFAULT_BASE_ENV_VARS) or airtable.get("default_base_id") or None

    # Default base is always allowed; an empty list means every base is allowed
    allowed_bases = list(
        dict.fromkeys(
            ([default_base_id] if default_base_id else [])
            + _parse_csv(_first_env(_ALLOWED_BASES_ENV_VARS) or airtable.get("allowed_bases"))
        )
    )
    allowed_tables = _parse_csv(
        os.getenv("AIRTABLE_ALLOWED_TABLES") or airtable.get("allowed_tables")
    )

    governance_path = os.getenv("AIRTABLE_GOVERNANCE_PATH") or airtable.get("governance_path")
    governance_file = (
        Path(governance_path) if governance_path else Path.cwd() / "config" / "governance.json"
    )

    governance = build_governance_snapshot(
        allowed_bases=allowed_bases,
        allowed_tables=parse_allowed_tables(allowed_tables),
        governance_path=governance_file,
    )

    token_validation = validate_api_key(token) if token else None

    config = GatewayConfig(
        personal_access_token=token.strip(),
        default_base_id=default_base_id,
        api_base_url=(
            os.getenv("AIRTABLE_API_URL") or airtable.get("api_base_url") or DEFAULT_API_BASE_URL
        ),
        allowed_bases=allowed_bases,
        allowed_tables=allowed_tables,
        governance_path=str(governance_file),
        governance=governance,
        base_requests_per_second=_positive_float(
            os.getenv("AIRTABLE_BASE_RPS") or rate_limits.get("base_requests_per_second"), 5.0
        ),
        pat_requests_per_second=_positive_float(
            os.getenv("AIRTABLE_PAT_RPS") or rate_limits.get("pat_requests_per_second"), 50.0
        ),
        http_timeout_ms=_positive_int(
            os.getenv("AIRTABLE_HTTP_TIMEOUT_MS") or http.get("timeout_ms"), 30000
        ),
        max_retries=_positive_int(
            os.getenv("AIRTABLE_MAX_RETRIES") or http.get("max_retries"), 1
        ),
        tool_timeout_ms=_positive_int(
            os.getenv("AIRTABLE_TOOL_TIMEOUT_MS") or airtable.get("tool_timeout_ms"), 60000
        ),
        exception_queue_size=_positive_int(
            os.getenv("EXCEPTION_QUEUE_SIZE") or exceptions.get("queue_size"),
            DEFAULT_EXCEPTION_QUEUE_SIZE,
        ),
        log_level=_resolve_log_level(os.getenv("LOG_LEVEL") or logging_section.get("level")),
        token_format_warnings=token_validation.warnings if token_validation else [],
    )

    config.validate()

    for warning in config.token_format_warnings:
        logger.warning("Token warning: %s", warning, extra={"pat_hash": config.pat_hash})

    logger.debug(
        "Configuration loaded",
        extra={"pat_hash": config.pat_hash, "base_id": config.default_base_id},
    )
    return config


def _cli_main() -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(description="Airtable Gateway Configuration Tool")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--governance",
        action="store_true",
        help="Also print the resolved governance snapshot",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s", stream=sys.stderr)

    try:
        config = load_config(config_path=args.config)
    except (FileNotFoundError, ValueError, DomainError) as e:
        print(json.dumps({"error": str(e)}))
        return 1

    output: Dict[str, Any] = {"config": config.to_dict()}
    if args.governance:
        output["governance"] = config.governance.to_dict()
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(_cli_main())
