"""
Server settings for flexmcp.

Loads the YAML settings file that configures the process itself (listen
address, log level, fallback overrides). Per-request configuration lives in
core/resolver.py; the "defaults" section here only feeds its lowest level.
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from .defaults import create_custom_defaults
from .errors import ConfigurationError

_USER_CONFIG = Path.home() / ".config" / "flexmcp" / "config.yaml"
_BUNDLED_CONFIG = Path(__file__).resolve().parent.parent / "config.yaml"
_MISSING = object()


class Settings:
    """
    Settings loaded from one YAML file.

    Resolution order for the file: explicit path > $FLEXMCP_CONFIG >
    ~/.config/flexmcp/config.yaml > the copy bundled with the package.
    """

    def __init__(self, path: str | None = None) -> None:
        self._data: Dict[str, Any] = {}
        self._load(path)

    def _load(self, path: str | None = None) -> None:
        resolved = self._resolve_path(path)
        try:
            with open(resolved) as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigurationError(f"Cannot read settings file {resolved}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Malformed settings file {resolved}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {resolved} must contain a mapping")

        self._data = data
        self.path = resolved

    def _resolve_path(self, path: str | None) -> Path:
        if path:
            explicit = Path(path)
            if not explicit.exists():
                raise ConfigurationError(f"Settings file not found: {explicit}")
            return explicit

        env_path = os.environ.get("FLEXMCP_CONFIG")
        if env_path and Path(env_path).exists():
            return Path(env_path)

        if _USER_CONFIG.exists():
            return _USER_CONFIG

        return _BUNDLED_CONFIG

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a settings value by dot-separated key (e.g. "server.port").

        Returns default when any segment is missing.
        """
        value: Any = self._data
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def fallback_config(self) -> Dict[str, Any]:
        """Built-in defaults with this file's 'defaults' section merged on top."""
        overrides = self.get("defaults") or {}
        if not isinstance(overrides, dict):
            raise ConfigurationError("'defaults' section must be a mapping")
        return create_custom_defaults(overrides)
