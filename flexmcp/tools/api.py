# Purpose: Generic REST tools (api_get, api_post, api_health). Each call
#          builds a RestApiClient from the calling request's resolved
#          configuration, so apiUrl/apiToken/apiKey can differ per request.
# Relationships: Uses clients/rest_api.py. Registered by main.build_registry().
#               All three require authentication and are hidden when the
#               server is configured with tools.include_auth_required=false.

from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from ..clients.rest_api import RestApiClient
from ..core.errors import UpstreamConnectionError, tool_error_response
from .registry import ToolDefinition, ToolMetadata

ClientFactory = Callable[[dict], RestApiClient]


class ApiGetParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: str = Field(description="The API endpoint to call (e.g. /users, /products)")
    params: dict[str, str] = Field(default_factory=dict, description="Query parameters")


class ApiPostParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: str = Field(description="The API endpoint to call")
    data: dict[str, Any] = Field(description="Data to send in the request body")


class ApiHealthParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoint: str = Field(default="/health", description="Health endpoint to probe")


class ApiCallResult(BaseModel):
    status: int
    data: Any


class ApiHealthResult(BaseModel):
    status: str
    timestamp: str
    base_url: str
    health_endpoint: str


def _api_metadata(duration_ms: int) -> ToolMetadata:
    return ToolMetadata(
        category="api",
        tags=["http", "rest"],
        version="1.0.0",
        requires_auth=True,
        cacheable=False,
        estimated_duration_ms=duration_ms,
    )


def make_api_get_tool(client_factory: ClientFactory = RestApiClient) -> ToolDefinition:
    async def handler(params: dict, config: dict) -> dict:
        client = client_factory(config)
        try:
            response = await client.get(params["endpoint"], params=params["params"])
        except UpstreamConnectionError as exc:
            return tool_error_response(exc, "api_get")
        return ApiCallResult(status=response.status, data=response.data).model_dump()

    return ToolDefinition(
        name="api_get",
        description="Make a GET request to an endpoint of the configured API",
        params_model=ApiGetParams,
        handler=handler,
        metadata=_api_metadata(500),
    )


def make_api_post_tool(client_factory: ClientFactory = RestApiClient) -> ToolDefinition:
    async def handler(params: dict, config: dict) -> dict:
        client = client_factory(config)
        try:
            response = await client.post(params["endpoint"], data=params["data"])
        except UpstreamConnectionError as exc:
            return tool_error_response(exc, "api_post")
        return ApiCallResult(status=response.status, data=response.data).model_dump()

    return ToolDefinition(
        name="api_post",
        description="Make a POST request to an endpoint of the configured API",
        params_model=ApiPostParams,
        handler=handler,
        metadata=_api_metadata(1000),
    )


def make_api_health_tool(client_factory: ClientFactory = RestApiClient) -> ToolDefinition:
    async def handler(params: dict, config: dict) -> dict:
        client = client_factory(config)
        healthy = await client.test_connection(params["endpoint"])
        return ApiHealthResult(
            status="healthy" if healthy else "unhealthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            base_url=client.config.base_url,
            health_endpoint=params["endpoint"],
        ).model_dump()

    return ToolDefinition(
        name="api_health",
        description="Check whether the configured API is healthy and reachable",
        params_model=ApiHealthParams,
        handler=handler,
        metadata=_api_metadata(5000),
    )


def make_api_tools(client_factory: ClientFactory = RestApiClient) -> list[ToolDefinition]:
    return [
        make_api_get_tool(client_factory),
        make_api_post_tool(client_factory),
        make_api_health_tool(client_factory),
    ]
