# Purpose: Minimal async REST client configured from a request's resolved
#          configuration (base URL, timeout, retries, credentials).
# Relationships: Used by tools/api.py. Raises UpstreamConnectionError from
#               core/errors.py once every attempt has failed.

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import aiohttp

from ..core.errors import UpstreamConnectionError

logger = logging.getLogger("rest_client")

USER_AGENT = "flexmcp/2.0"

# client setting -> resolved configuration key
DEFAULT_MAPPING = {
    "base_url": "apiUrl",
    "timeout": "timeout",
    "retries": "retries",
    "auth_token": "apiToken",
    "api_key": "apiKey",
}

_DEFAULT_BASE_URL = "http://localhost:3000"
_DEFAULT_TIMEOUT_MS = 30000
_DEFAULT_RETRIES = 3


@dataclass
class ApiResponse:
    data: Any
    status: int
    reason: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class ClientConfig:
    base_url: str
    timeout_ms: int
    retries: int
    headers: dict[str, str]
    auth_token: str | None = None
    api_key: str | None = None


def _lookup(config: dict, key: str) -> Any:
    # Falsy values fall through to the next spelling and then to the default.
    return config.get(key) or config.get(key.lower()) or config.get(key.upper())


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value) if value else default
    except (TypeError, ValueError):
        return default


def build_client_config(resolved: dict, mapping: dict[str, str] | None = None) -> ClientConfig:
    keys = {**DEFAULT_MAPPING, **(mapping or {})}
    auth_token = _lookup(resolved, keys["auth_token"])
    api_key = _lookup(resolved, keys["api_key"])

    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    if auth_token:
        headers["Authorization"] = f"Bearer {auth_token}"
    if api_key:
        headers["X-API-Key"] = str(api_key)

    return ClientConfig(
        base_url=str(_lookup(resolved, keys["base_url"]) or _DEFAULT_BASE_URL),
        timeout_ms=_as_int(_lookup(resolved, keys["timeout"]), _DEFAULT_TIMEOUT_MS),
        retries=_as_int(_lookup(resolved, keys["retries"]), _DEFAULT_RETRIES),
        headers=headers,
        auth_token=str(auth_token) if auth_token else None,
        api_key=str(api_key) if api_key else None,
    )


class RestApiClient:
    """
    REST client bound to one resolved configuration.

    backoff_s scales the exponential delay between attempts
    (backoff_s * 2**attempt); tests pass 0.
    """

    def __init__(
        self,
        resolved: dict,
        mapping: dict[str, str] | None = None,
        backoff_s: float = 1.0,
    ) -> None:
        self.config = build_client_config(resolved, mapping)
        self._backoff_s = backoff_s
        logger.debug(
            "RestApiClient initialised base_url=%s timeout_ms=%d retries=%d",
            self.config.base_url, self.config.timeout_ms, self.config.retries,
        )

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        timeout_ms: int | None = None,
        retries: int | None = None,
    ) -> ApiResponse:
        url = urljoin(self.config.base_url, endpoint)
        timeout = aiohttp.ClientTimeout(total=(timeout_ms or self.config.timeout_ms) / 1000)
        attempts = (self.config.retries if retries is None else retries) + 1
        request_headers = {**self.config.headers, **(headers or {})}
        query = {key: str(value) for key, value in (params or {}).items()}
        body = data if data is not None and method != "GET" else None

        last_error: Exception | None = None
        for attempt in range(attempts):
            logger.debug("%s %s attempt %d/%d", method, url, attempt + 1, attempts)
            try:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.request(
                        method, url, params=query, json=body, headers=request_headers
                    ) as resp:
                        if resp.content_type == "application/json":
                            payload = await resp.json()
                        else:
                            payload = await resp.text()
                        if resp.status >= 400:
                            raise UpstreamConnectionError(
                                f"HTTP {resp.status}: {resp.reason}",
                                url=url,
                                status_code=resp.status,
                                details=payload,
                            )
                        return ApiResponse(
                            data=payload,
                            status=resp.status,
                            reason=resp.reason or "",
                            headers=dict(resp.headers),
                        )
            except (aiohttp.ClientError, asyncio.TimeoutError, UpstreamConnectionError) as exc:
                last_error = exc
                will_retry = attempt + 1 < attempts
                logger.warning(
                    "Request attempt %d to %s failed: %r (will_retry=%s)",
                    attempt + 1, url, exc, will_retry,
                )
                if will_retry:
                    await asyncio.sleep(self._backoff_s * 2 ** attempt)

        logger.error("All %d request attempts to %s failed", attempts, url)
        if isinstance(last_error, UpstreamConnectionError):
            raise last_error
        raise UpstreamConnectionError(
            f"Request to {url} failed: {last_error!r}", url=url
        ) from last_error

    async def get(self, endpoint: str, params: dict[str, Any] | None = None, **kwargs) -> ApiResponse:
        return await self.request(endpoint, method="GET", params=params, **kwargs)

    async def post(self, endpoint: str, data: Any = None, **kwargs) -> ApiResponse:
        return await self.request(endpoint, method="POST", data=data, **kwargs)

    async def put(self, endpoint: str, data: Any = None, **kwargs) -> ApiResponse:
        return await self.request(endpoint, method="PUT", data=data, **kwargs)

    async def delete(self, endpoint: str, **kwargs) -> ApiResponse:
        return await self.request(endpoint, method="DELETE", **kwargs)

    async def test_connection(self, endpoint: str = "/health") -> bool:
        try:
            await self.request(endpoint, method="GET", timeout_ms=5000, retries=0)
            return True
        except UpstreamConnectionError as exc:
            logger.warning("Connection test failed: %s", exc)
            return False
