# Purpose: Tests for the built-in tools (calculator, health_check, api_*).
# Covers: arithmetic results and division by zero, health report contents
#         (redaction, connectivity, filter summary), API tools driven by a
#         stub client so no network is used.

import pytest

from flexmcp.clients.rest_api import ApiResponse, build_client_config
from flexmcp.core.errors import UpstreamConnectionError
from flexmcp.tools.api import make_api_tools
from flexmcp.tools.calculator import make_add_tool, make_calculate_tool
from flexmcp.tools.health import check_connectivity, make_health_check_tool
from flexmcp.tools.registry import ToolRegistry

_CONFIG = {"availableTools": []}


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


async def test_add():
    assert await make_add_tool().execute({"a": 2, "b": 3}, _CONFIG) == {"result": 5}


async def test_add_decimals():
    assert await make_add_tool().execute({"a": 0.5, "b": 0.25}, _CONFIG) == {"result": 0.75}


@pytest.mark.parametrize(
    "operation, expected",
    [("add", 8), ("subtract", 4), ("multiply", 12), ("divide", 3)],
)
async def test_calculate(operation, expected):
    result = await make_calculate_tool().execute({"operation": operation, "a": 6, "b": 2}, _CONFIG)
    assert result == {"result": expected}


async def test_calculate_divide_by_zero():
    result = await make_calculate_tool().execute({"operation": "divide", "a": 1, "b": 0}, _CONFIG)
    assert result == {"error": "Cannot divide by zero"}


async def test_calculate_rejects_unknown_operation():
    result = await make_calculate_tool().execute({"operation": "modulo", "a": 1, "b": 2}, _CONFIG)
    assert "Parameter validation failed" in result["error"]


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


def _health_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_many([make_add_tool(), make_calculate_tool()])
    registry.register(make_health_check_tool(registry, server_name="test", version="9.9"))
    return registry


async def test_health_check_minimal_report():
    registry = _health_registry()
    result = await registry.get("health_check").execute({}, {"availableTools": ["add"]})
    assert result["status"] == "healthy"
    assert result["system"]["agent"] == "test"
    assert result["system"]["version"] == "9.9"
    assert "configuration" not in result
    assert "connectivity" not in result
    assert result["tools"]["filtered_tools"] == ["add"]
    assert result["tools"]["total"] == 3
    assert {e["tool_name"] for e in result["tools"]["excluded_tools"]} == {"calculate", "health_check"}


async def test_health_check_includes_redacted_config():
    registry = _health_registry()
    config = {"availableTools": [], "apiToken": "abc", "clientUrl": "http://x"}
    result = await registry.get("health_check").execute({"include_config": True}, config)
    assert result["configuration"]["apiToken"] == "[REDACTED]"
    assert result["configuration"]["clientUrl"] == "http://x"
    assert result["configuration"]["availableToolsCount"] == 0


async def test_health_check_degraded_on_malformed_url():
    registry = _health_registry()
    config = {"availableTools": [], "clientUrl": "http://ok:8000", "apiUrl": "http://bad:port"}
    result = await registry.get("health_check").execute({"test_connectivity": True}, config)
    assert result["status"] == "degraded"
    statuses = {c["field"]: c["status"] for c in result["connectivity"]}
    assert statuses == {"clientUrl": "url_valid", "apiUrl": "url_invalid"}


def test_check_connectivity_without_urls():
    assert check_connectivity({"timeout": 5, "callbackUrl": "ftp://x"})["status"] == "no_urls_found"


# ---------------------------------------------------------------------------
# API tools
# ---------------------------------------------------------------------------


class _StubClient:
    """Records calls and returns canned responses instead of doing HTTP."""

    instances: list["_StubClient"] = []

    def __init__(self, resolved: dict, fail: bool = False) -> None:
        self.config = build_client_config(resolved)
        self.resolved = resolved
        self.fail = fail
        self.calls: list[tuple] = []
        _StubClient.instances.append(self)

    async def get(self, endpoint, params=None):
        self.calls.append(("GET", endpoint, params))
        if self.fail:
            raise UpstreamConnectionError("HTTP 503: Service Unavailable", url=endpoint, status_code=503)
        return ApiResponse(data={"items": [1, 2]}, status=200, reason="OK")

    async def post(self, endpoint, data=None):
        self.calls.append(("POST", endpoint, data))
        return ApiResponse(data={"created": data}, status=201, reason="Created")

    async def test_connection(self, endpoint="/health"):
        self.calls.append(("HEALTH", endpoint))
        return not self.fail


def _api_tools(fail: bool = False) -> dict:
    _StubClient.instances.clear()
    tools = make_api_tools(lambda resolved: _StubClient(resolved, fail=fail))
    return {t.name: t for t in tools}


async def test_api_get_uses_request_config():
    tools = _api_tools()
    config = {"availableTools": [], "apiUrl": "http://per-request"}
    result = await tools["api_get"].execute({"endpoint": "/users", "params": {"page": "2"}}, config)
    assert result == {"status": 200, "data": {"items": [1, 2]}}
    client = _StubClient.instances[0]
    assert client.config.base_url == "http://per-request"
    assert client.calls == [("GET", "/users", {"page": "2"})]


async def test_api_get_failure_returns_error_payload():
    tools = _api_tools(fail=True)
    result = await tools["api_get"].execute({"endpoint": "/users"}, _CONFIG)
    assert result["error"] == "Error in api_get: HTTP 503: Service Unavailable"
    assert result["details"]["code"] == "CONNECTION_ERROR"


async def test_api_post():
    tools = _api_tools()
    result = await tools["api_post"].execute({"endpoint": "/users", "data": {"name": "x"}}, _CONFIG)
    assert result == {"status": 201, "data": {"created": {"name": "x"}}}


@pytest.mark.parametrize("fail, status", [(False, "healthy"), (True, "unhealthy")])
async def test_api_health(fail, status):
    tools = _api_tools(fail=fail)
    result = await tools["api_health"].execute({}, {"availableTools": [], "apiUrl": "http://api"})
    assert result["status"] == status
    assert result["base_url"] == "http://api"
    assert result["health_endpoint"] == "/health"


def test_api_tools_require_auth():
    assert all(t.metadata.requires_auth for t in _api_tools().values())
