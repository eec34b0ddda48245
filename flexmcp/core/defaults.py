# Purpose: Fallback configuration source (lowest precedence). Hardcoded
#          values used when neither request metadata nor the deployment
#          environment defines a key.
# Relationships: core/resolver.py reads get_default_config() when no explicit
#               fallback is passed; core/settings.py layers the settings
#               file's "defaults" section on top via create_custom_defaults().

import copy
from typing import Any

# Edit these for a concrete integration, e.g. an ERP backend would carry
# its own URL, database and user here.
DEFAULT_CONFIG: dict[str, Any] = {
    "clientUrl": "http://localhost:8000",
    "clientDb": "development",
    "clientUser": "dev_user",
    "availableTools": ["add", "calculate", "health_check"],
    "timeout": 30000,
    "retries": 3,
    "debug": False,
}


def get_default_config() -> dict[str, Any]:
    """Return a deep copy so callers cannot mutate the module constant."""
    return copy.deepcopy(DEFAULT_CONFIG)


def is_default_value(key: str, value: Any) -> bool:
    return key in DEFAULT_CONFIG and DEFAULT_CONFIG[key] == value


def default_config_keys() -> list[str]:
    return list(DEFAULT_CONFIG)


def create_custom_defaults(overrides: dict[str, Any] | None) -> dict[str, Any]:
    """Shallow-merge overrides over the built-in defaults."""
    merged = get_default_config()
    merged.update(copy.deepcopy(overrides or {}))
    return merged
