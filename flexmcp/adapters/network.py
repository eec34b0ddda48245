# Purpose: HTTP adapter. Exposes the tool registry over a small JSON API and
#          resolves configuration per request from the request headers, the
#          deployment environment and the fallback source.
# Relationships: Calls core/resolver.resolve_config for every tool request
#               and tools/registry.ToolRegistry.filter_tools to decide which
#               tools that request may see. Built and started by main.py.
#
# Wire protocol: JSON over HTTP.
#   GET  /health        : liveness check
#   GET  /tools         : tools visible to this request, with schemas
#   POST /tools/{name}  : run a visible tool; JSON body is the tool input
#   GET  /config        : redacted resolution context for this request
#
# Per-request configuration: every header becomes a configuration key
# (header names are lower-cased, "api-url" -> apiUrl). The "to-use" header
# carries a JSON array of tool names and narrows the visible set.

import json
import logging
import os
from collections.abc import Mapping
from typing import Any

from aiohttp import web

from ..core.resolver import ResolutionContext, config_summary, resolve_config
from ..core.settings import Settings
from ..tools.registry import ToolFilterOptions, ToolFilterResult, ToolRegistry

logger = logging.getLogger("network")

# Separate logger for HTTP access lines so they can be filtered independently.
_access_log = logging.getLogger("network.access")


def _json(payload: Any, status: int = 200) -> web.Response:
    return web.Response(
        status=status,
        content_type="application/json",
        text=json.dumps(payload, default=str),
    )


def _error(message: str, error_type: str, status: int) -> web.Response:
    return _json({"error": {"message": message, "type": error_type}}, status=status)


@web.middleware
async def _request_log_middleware(request: web.Request, handler):
    """Log every inbound request before routing so unmatched paths are visible."""
    logger.debug("→ %s %s  [%s]", request.method, request.path_qs, request.remote)
    response = await handler(request)
    logger.debug("← %s %s  status=%d", request.method, request.path, response.status)
    return response


async def _handle_404(request: web.Request) -> web.Response:
    logger.warning("404: no route for %s %s", request.method, request.path_qs)
    return _error(
        f"No route matched {request.method} {request.path!r}. "
        "Available routes: GET /health, GET /tools, POST /tools/{name}, GET /config",
        "not_found",
        404,
    )


def request_headers(request: web.Request) -> dict[str, str]:
    """
    Flatten request headers into a lower-cased name -> value mapping.

    Repeated headers are joined with ", ", the usual HTTP folding rule.
    """
    headers: dict[str, str] = {}
    for key, value in request.headers.items():
        name = key.lower()
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers


class NetworkAdapter:
    """
    aiohttp server exposing a ToolRegistry.

    env:      deployment variables; None reads os.environ at request time.
    fallback: lowest-precedence configuration; defaults to the settings
              file's merged fallback.
    """

    def __init__(
        self,
        settings: Settings,
        registry: ToolRegistry,
        env: Mapping[str, str] | None = None,
        fallback: dict | None = None,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._env = env
        self._fallback = fallback if fallback is not None else settings.fallback_config()
        self._filter_options = ToolFilterOptions(
            include_auth_required=settings.get("tools.include_auth_required", True),
        )

        self._app = web.Application(middlewares=[_request_log_middleware])
        self._app.router.add_get("/health", self._handle_health)
        self._app.router.add_get("/tools", self._handle_list_tools)
        self._app.router.add_post("/tools/{name}", self._handle_call_tool)
        self._app.router.add_get("/config", self._handle_config)

        # Catch-all: must be added last so explicit routes take priority.
        self._app.router.add_route("*", "/{path_info:.*}", _handle_404)

        self._runner: web.AppRunner | None = None

    @property
    def app(self) -> web.Application:
        return self._app

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app, access_log=_access_log)
        await self._runner.setup()

        host = self._settings.get("server.host", "127.0.0.1")
        port = int(self._settings.get("server.port", 8787))
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info("Network adapter listening on %s:%d", host, port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Network adapter stopped")

    # -------------------------------------------------------------------------
    # Per-request resolution
    # -------------------------------------------------------------------------

    def _resolve(self, request: web.Request) -> tuple[ResolutionContext, ToolFilterResult]:
        env = os.environ if self._env is None else self._env
        context = resolve_config(request_headers(request), env, self._fallback)
        tool_filter = self._registry.filter_tools(context.resolved, self._filter_options)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Request configuration:\n%s", config_summary(context))
            logger.debug(
                "Tool filtering: %d/%d available tools=%s excluded=%s",
                tool_filter.summary.included,
                tool_filter.summary.total,
                tool_filter.tool_names,
                tool_filter.to_dict()["excluded"],
            )
        return context, tool_filter

    # -------------------------------------------------------------------------
    # Request handlers
    # -------------------------------------------------------------------------

    async def _handle_health(self, request: web.Request) -> web.Response:
        return _json({"status": "ok"})

    async def _handle_list_tools(self, request: web.Request) -> web.Response:
        _, tool_filter = self._resolve(request)
        payload = tool_filter.to_dict()
        payload["tools"] = self._registry.schema_for_tools(tool_filter.tools)
        return _json(payload)

    async def _handle_config(self, request: web.Request) -> web.Response:
        context, _ = self._resolve(request)
        return _json(context.to_dict(redact=True))

    async def _handle_call_tool(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        context, tool_filter = self._resolve(request)

        tool = self._registry.get(name)
        if tool is None:
            return _error(f"Unknown tool: {name!r}", "not_found", 404)
        if name not in tool_filter.tool_names:
            return _error(
                f"Tool {name!r} is not available for this request",
                "tool_not_available",
                404,
            )

        body: Any = {}
        if request.can_read_body:
            try:
                body = await request.json()
            except ValueError as exc:
                raw = await request.text()
                logger.warning("tools/%s: invalid JSON body: %s | raw=%r", name, exc, raw[:500])
                return _error("Invalid JSON body", "invalid_request_error", 400)
        if not isinstance(body, dict):
            return _error("Tool input must be a JSON object", "invalid_request_error", 400)

        result = await tool.execute(body, context.resolved)
        is_error = isinstance(result, dict) and "error" in result
        logger.info("tools/%s: completed is_error=%s", name, is_error)
        return _json({"tool": name, "result": result, "is_error": is_error})
