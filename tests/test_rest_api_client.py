# Purpose: Tests for clients/rest_api.py against a local aiohttp upstream.
# Covers: client config mapping from a resolved config, auth headers, query
#         params and JSON bodies, retries then UpstreamConnectionError,
#         non-JSON bodies, test_connection().

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from flexmcp.clients.rest_api import RestApiClient, build_client_config
from flexmcp.core.errors import UpstreamConnectionError


# ---------------------------------------------------------------------------
# Config mapping (no I/O)
# ---------------------------------------------------------------------------


def test_build_client_config_defaults():
    config = build_client_config({})
    assert config.base_url == "http://localhost:3000"
    assert config.timeout_ms == 30000
    assert config.retries == 3
    assert "Authorization" not in config.headers
    assert config.headers["Accept"] == "application/json"


def test_build_client_config_from_resolved_values():
    config = build_client_config({
        "apiUrl": "http://api",
        "timeout": 1500,
        "retries": "2",
        "apiToken": "tok",
        "apiKey": "key",
    })
    assert config.base_url == "http://api"
    assert config.timeout_ms == 1500
    assert config.retries == 2
    assert config.headers["Authorization"] == "Bearer tok"
    assert config.headers["X-API-Key"] == "key"


def test_build_client_config_custom_mapping_and_case_fallback():
    config = build_client_config({"crmurl": "http://crm"}, mapping={"base_url": "crmUrl"})
    assert config.base_url == "http://crm"


def test_build_client_config_bad_numbers_use_defaults():
    config = build_client_config({"timeout": "soon", "retries": "many"})
    assert config.timeout_ms == 30000
    assert config.retries == 3


# ---------------------------------------------------------------------------
# Against a real local server
# ---------------------------------------------------------------------------


@pytest.fixture()
async def upstream():
    """Local aiohttp app standing in for the configured REST backend."""
    calls = {"flaky": 0}

    async def echo(request: web.Request) -> web.Response:
        body = await request.json() if request.can_read_body else None
        return web.json_response({
            "method": request.method,
            "query": dict(request.query),
            "auth": request.headers.get("Authorization"),
            "api_key": request.headers.get("X-API-Key"),
            "body": body,
        })

    async def flaky(request: web.Request) -> web.Response:
        calls["flaky"] += 1
        if calls["flaky"] < 3:
            return web.Response(status=503, text="try later")
        return web.json_response({"ok": True})

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500, text="down")

    async def plain(request: web.Request) -> web.Response:
        return web.Response(text="pong")

    app = web.Application()
    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/flaky", flaky)
    app.router.add_get("/broken", broken)
    app.router.add_get("/health", plain)

    server = TestServer(app)
    await server.start_server()
    yield str(server.make_url("/")), calls
    await server.close()


def _client(base_url: str, **extra) -> RestApiClient:
    resolved = {"apiUrl": base_url, "apiToken": "tok", "apiKey": "key", "retries": 2, **extra}
    return RestApiClient(resolved, backoff_s=0)


async def test_get_sends_query_and_auth_headers(upstream):
    base_url, _ = upstream
    response = await _client(base_url).get("/echo", params={"page": 2})
    assert response.status == 200
    assert response.data["method"] == "GET"
    assert response.data["query"] == {"page": "2"}
    assert response.data["auth"] == "Bearer tok"
    assert response.data["api_key"] == "key"


async def test_post_sends_json_body(upstream):
    base_url, _ = upstream
    response = await _client(base_url).post("/echo", data={"name": "x"})
    assert response.data["method"] == "POST"
    assert response.data["body"] == {"name": "x"}


async def test_put_and_delete(upstream):
    base_url, _ = upstream
    client = _client(base_url)
    assert (await client.put("/echo", data={"a": 1})).data["body"] == {"a": 1}
    assert (await client.delete("/echo")).data["method"] == "DELETE"


async def test_retries_until_success(upstream):
    base_url, calls = upstream
    response = await _client(base_url).get("/flaky")
    assert response.data == {"ok": True}
    assert calls["flaky"] == 3


async def test_exhausted_retries_raise(upstream):
    base_url, _ = upstream
    with pytest.raises(UpstreamConnectionError) as info:
        await _client(base_url).get("/broken")
    assert info.value.status_code == 500
    assert info.value.details == "down"


async def test_unreachable_host_raises():
    client = RestApiClient({"apiUrl": "http://127.0.0.1:9"}, backoff_s=0)
    with pytest.raises(UpstreamConnectionError):
        await client.get("/anything", retries=0)


async def test_non_json_body_returned_as_text(upstream):
    base_url, _ = upstream
    response = await _client(base_url).get("/health")
    assert response.data == "pong"


async def test_test_connection(upstream):
    base_url, _ = upstream
    assert await _client(base_url).test_connection() is True
    assert await _client(base_url).test_connection("/broken") is False
