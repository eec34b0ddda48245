# Purpose: Three-level configuration resolution. Merges per-request metadata,
#          deployment variables and the fallback source into one resolved
#          mapping, recording which level supplied each key.
# Relationships: Uses core/keys.py and core/coercion.py for normalisation,
#               core/defaults.py for the fallback level. The resolved mapping
#               is handed to tools/registry.py for filtering and to every
#               tool handler.
#
# Precedence: request > deployment > fallback, key by key. The tool list
# ("availableTools") is resolved separately because each level names it
# differently: the request carries it as the "to-use" header, the deployment
# as DEFAULT_TOOLS or AVAILABLE_TOOLS, the fallback as availableTools.
#
# Nothing in this module raises to the caller. A malformed field degrades to
# its raw string (or an empty list for tool lists) and a warning is recorded
# on the returned context, so one bad header never aborts the request.

import copy
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .coercion import looks_structured, parse_literal
from .defaults import get_default_config
from .keys import kebab_to_camel, upper_snake_to_camel

logger = logging.getLogger("resolver")

TOOL_LIST_KEY = "availableTools"
REQUEST_TOOLS_KEY = "to-use"
DEPLOYMENT_TOOLS_KEY = "defaultTools"
_DEPLOYMENT_TOOLS_SUFFIX = "_TOOLS"

_SENSITIVE_MARKERS = ("pass", "secret", "token", "apikey", "authorization")
_REDACTED = "[REDACTED]"


class ConfigSource(str, Enum):
    REQUEST = "request"
    DEPLOYMENT = "deployment"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool = True
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolutionContext:
    """
    Snapshot of one resolution. Built once per request and never mutated.

    resolved   : canonical key -> value; always holds TOOL_LIST_KEY.
    sources    : canonical key -> ConfigSource, one entry per resolved key.
    validation : is_valid is always True (there is no schema); warnings
                 collect parse degradations and the empty-tool-list notice.
    raw        : the three normalised inputs, kept for audit.
    """

    resolved: dict[str, Any]
    sources: dict[str, ConfigSource]
    validation: ValidationResult
    timestamp: datetime
    raw: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def available_tools(self) -> list[str]:
        return self.resolved[TOOL_LIST_KEY]

    def to_dict(self, redact: bool = True) -> dict:
        """JSON-safe view. Sensitive values are masked unless redact=False."""
        view = redact_config if redact else dict
        return {
            "resolved": view(self.resolved),
            "sources": {key: source.value for key, source in self.sources.items()},
            "validation": {
                "is_valid": self.validation.is_valid,
                "errors": list(self.validation.errors),
                "warnings": list(self.validation.warnings),
            },
            "timestamp": self.timestamp.isoformat(),
            "raw": {level: view(values) for level, values in self.raw.items()},
        }


# ---------------------------------------------------------------------------
# Source extraction
# ---------------------------------------------------------------------------


def _warn(warnings: list[str] | None, message: str) -> None:
    logger.warning(message)
    if warnings is not None:
        warnings.append(message)


def _iter_pairs(raw: Mapping[str, str] | Iterable[tuple[str, str]] | None):
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        return raw.items()
    return raw


def _parse_requested_tools(value: str, warnings: list[str] | None) -> list[str]:
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list) and all(isinstance(name, str) for name in parsed):
        return parsed
    # Valid JSON that is not an array of names (e.g. '"add"') is still a
    # present header: [] wins the tool-list chain instead of falling through
    # to the deployment list.
    _warn(warnings, f'Failed to parse "{REQUEST_TOOLS_KEY}" header as a JSON array: {value!r}')
    return []


def _parse_deployment_tools(key: str, value: str, warnings: list[str] | None) -> list[str]:
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
        if looks_structured(value.strip()):
            _warn(warnings, f"Failed to parse {key} as a JSON array, splitting on commas: {value!r}")
    if isinstance(parsed, list):
        return [str(name) for name in parsed]
    return [part.strip() for part in value.split(",") if part.strip()]


def extract_request_config(
    raw_headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """
    Normalise per-request metadata into the request source.

    Keys go through kebab_to_camel and values through the literal sniffer.
    The reserved "to-use" key keeps its name and is always parsed as a JSON
    array of tool names; anything else yields [] and a warning. Later pairs
    with the same key replace earlier ones.
    """
    config: dict[str, Any] = {}
    for key, value in _iter_pairs(raw_headers):
        if key == REQUEST_TOOLS_KEY:
            config[REQUEST_TOOLS_KEY] = _parse_requested_tools(value, warnings)
            continue
        coerced, degraded = parse_literal(value)
        if degraded:
            _warn(warnings, f"Header {key!r} looked like JSON but failed to parse; kept as string")
        config[kebab_to_camel(key)] = coerced
    return config


def extract_deployment_config(
    raw_env: Mapping[str, Any] | None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """
    Normalise deployment variables into the deployment source.

    Only string values are considered. Keys ending in _TOOLS are always
    lists: a JSON array when the value parses as one, otherwise the value
    split on commas with whitespace trimmed.
    """
    config: dict[str, Any] = {}
    if not isinstance(raw_env, Mapping):
        return config
    for key, value in raw_env.items():
        if not isinstance(value, str):
            continue
        canonical = upper_snake_to_camel(key)
        if key.endswith(_DEPLOYMENT_TOOLS_SUFFIX):
            config[canonical] = _parse_deployment_tools(key, value, warnings)
            continue
        coerced, degraded = parse_literal(value)
        if degraded:
            _warn(warnings, f"Variable {key} looked like JSON but failed to parse; kept as string")
        config[canonical] = coerced
    return config


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _resolve_tool_list(
    request: dict[str, Any],
    deployment: dict[str, Any],
    fallback: dict[str, Any],
) -> tuple[list[str], ConfigSource]:
    # First list found wins. Presence alone is enough: an empty "to-use"
    # array still beats the deployment and fallback lists.
    chain = (
        (ConfigSource.REQUEST, request, REQUEST_TOOLS_KEY),
        (ConfigSource.DEPLOYMENT, deployment, DEPLOYMENT_TOOLS_KEY),
        (ConfigSource.DEPLOYMENT, deployment, TOOL_LIST_KEY),
        (ConfigSource.FALLBACK, fallback, TOOL_LIST_KEY),
    )
    for source, layer, key in chain:
        value = layer.get(key)
        if isinstance(value, list):
            return list(value), source
    return [], ConfigSource.FALLBACK


def resolve_config(
    raw_headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
    raw_env: Mapping[str, Any] | None,
    fallback: Mapping[str, Any] | None = None,
) -> ResolutionContext:
    """
    Resolve one effective configuration from the three sources.

    fallback=None uses the built-in defaults from core/defaults.py.
    A key whose value is None in a level counts as undefined there.
    Resolved values are copies, so a handler that mutates them leaves the
    raw inputs untouched.
    """
    timestamp = datetime.now(timezone.utc)
    warnings: list[str] = []

    request = extract_request_config(raw_headers, warnings)
    deployment = extract_deployment_config(raw_env, warnings)
    fallback_config = get_default_config() if fallback is None else copy.deepcopy(dict(fallback))

    levels = (
        (ConfigSource.REQUEST, request),
        (ConfigSource.DEPLOYMENT, deployment),
        (ConfigSource.FALLBACK, fallback_config),
    )

    resolved: dict[str, Any] = {}
    sources: dict[str, ConfigSource] = {}
    all_keys = dict.fromkeys([*fallback_config, *deployment, *request])
    for key in all_keys:
        for source, values in levels:
            if values.get(key) is not None:
                resolved[key] = copy.deepcopy(values[key])
                sources[key] = source
                break

    tools, tools_source = _resolve_tool_list(request, deployment, fallback_config)
    resolved[TOOL_LIST_KEY] = tools
    sources[TOOL_LIST_KEY] = tools_source

    if not tools:
        warnings.append(
            f"No tools available - consider setting {TOOL_LIST_KEY} "
            f"or the {REQUEST_TOOLS_KEY} header"
        )

    return ResolutionContext(
        resolved=resolved,
        sources=sources,
        validation=ValidationResult(is_valid=True, errors=(), warnings=tuple(warnings)),
        timestamp=timestamp,
        raw={
            "request": request,
            "deployment": deployment,
            "fallback": fallback_config,
        },
    )


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def redact_config(config: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy with values of credential-like keys masked."""
    return {
        key: _REDACTED if is_sensitive_key(key) else value
        for key, value in config.items()
    }


def config_summary(context: ResolutionContext) -> str:
    """Multi-line, human readable summary of a resolution for logs."""
    validation = context.validation
    lines = [
        f"Configuration resolved at {context.timestamp.isoformat()}",
        f"Status: {'valid' if validation.is_valid else 'invalid'}",
    ]
    if validation.errors:
        lines.append(f"Errors: {', '.join(validation.errors)}")
    if validation.warnings:
        lines.append(f"Warnings: {', '.join(validation.warnings)}")

    lines.append("")
    lines.append("Configuration values:")
    for key, value in context.resolved.items():
        if is_sensitive_key(key):
            shown = _REDACTED
        elif isinstance(value, list):
            shown = f"[{len(value)} items]"
        else:
            shown = str(value)
        source = context.sources.get(key)
        lines.append(f"  {key}: {shown} (from {source.value if source else 'unknown'})")
    return "\n".join(lines)
