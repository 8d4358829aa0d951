"""Configuration loading for the Airtable gateway.

Configuration is loaded from a single YAML file plus environment variables.

Configuration Structure
-----------------------

config/
    config.yaml          # Defaults; every value can be overridden from the environment

Main Functions
--------------

    - load_config(): Build a GatewayConfig from YAML + environment

Usage Examples
--------------

Load configuration:
    >>> from config import load_config
    >>>
    >>> config = load_config()
    >>> config.base_requests_per_second
    5.0

Custom config path:
    >>> from pathlib import Path
    >>> config = load_config(config_path=Path("/custom/path/config.yaml"))

Configuration Priority
---------------------

Settings are merged in the following priority (highest to lowest):

1. Environment variables (AIRTABLE_PAT, AIRTABLE_BASE_RPS, LOG_LEVEL, ...)
2. Explicit overrides passed to load_config()
3. YAML configuration file
4. Dataclass defaults

See Also
--------

- config.config: Configuration dataclass and loading logic
- airtable_gateway.governance: Governance snapshot construction
"""

from config.config import (
    DEFAULT_CONFIG_FILE,
    GatewayConfig,
    load_config,
)

__all__ = [
    "load_config",
    "GatewayConfig",
    "DEFAULT_CONFIG_FILE",
]
