"""
health_check tool: process health, the request's resolved configuration
and the tool filter outcome for that configuration.

Connectivity checking is format-only: every string value under a key that
contains "url" and starts with http:// or https:// is parsed, and a value
that does not parse marks the status as degraded. No outbound requests are
made; api_health in tools/api.py does that for the REST backend.
"""

import logging
import platform
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from ..core.resolver import TOOL_LIST_KEY, redact_config
from .registry import ToolDefinition, ToolMetadata, ToolRegistry

logger = logging.getLogger("tools.health")


class HealthCheckParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    include_config: bool = Field(
        default=False,
        description="Whether to include configuration details in the response",
    )
    test_connectivity: bool = Field(
        default=False,
        description="Whether to validate the configured URL fields",
    )


def _url_fields(config: dict) -> list[tuple[str, str]]:
    return [
        (key, value)
        for key, value in config.items()
        if isinstance(value, str)
        and "url" in key.lower()
        and value.startswith(("http://", "https://"))
    ]


def _check_url(key: str, url: str) -> dict[str, Any]:
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError for an out-of-range or non-numeric port
        if not parts.hostname:
            raise ValueError("missing host")
    except ValueError as exc:
        return {
            "field": key,
            "url": url,
            "status": "url_invalid",
            "message": f"Invalid {key}: {exc}",
            "error": True,
        }
    return {
        "field": key,
        "url": url,
        "status": "url_valid",
        "message": f"{key} is properly formatted",
    }


def check_connectivity(config: dict) -> list[dict[str, Any]] | dict[str, str]:
    fields = _url_fields(config)
    if not fields:
        return {
            "status": "no_urls_found",
            "message": "No URL fields found in configuration for connectivity testing",
        }
    return [_check_url(key, url) for key, url in fields]


def make_health_check_tool(
    registry: ToolRegistry,
    server_name: str = "flexmcp",
    version: str = "2.0.0",
) -> ToolDefinition:
    """
    Return a health_check tool bound to registry.

    The registry is needed to report which tools the calling request can
    see; the handler itself only reads from it.
    """

    def handler(params: dict, config: dict) -> dict:
        health: dict[str, Any] = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "system": {
                "platform": platform.system(),
                "runtime": platform.python_implementation(),
                "python_version": platform.python_version(),
                "version": version,
                "agent": server_name,
            },
        }

        if params["include_config"]:
            health["configuration"] = {
                **redact_config(config),
                "availableToolsCount": len(config.get(TOOL_LIST_KEY, [])),
            }

        if params["test_connectivity"]:
            connectivity = check_connectivity(config)
            health["connectivity"] = connectivity
            if isinstance(connectivity, list) and any(c.get("error") for c in connectivity):
                health["status"] = "degraded"

        tool_filter = registry.filter_tools(config)
        health["tools"] = {
            "total": tool_filter.summary.total,
            "available": tool_filter.summary.included,
            "excluded": tool_filter.summary.excluded,
            "filtered_tools": tool_filter.tool_names,
            "excluded_tools": tool_filter.to_dict()["excluded"],
        }

        logger.debug("Health check completed status=%s", health["status"])
        return health

    return ToolDefinition(
        name="health_check",
        description="Check system health and configuration status",
        params_model=HealthCheckParams,
        handler=handler,
        metadata=ToolMetadata(
            category="system",
            tags=["health", "diagnostics", "monitoring"],
            version="1.0.0",
            requires_auth=False,
            cacheable=False,
            estimated_duration_ms=50,
        ),
    )
