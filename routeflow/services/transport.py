"""
HttpTransport - Performs exactly one physical request.

Renders the route's URL template, sends the call through httpx and maps the
outcome onto a payload, an HttpError or a NetworkError. Retrying and caching
happen around it, never inside.
"""

import re
from typing import Any, Mapping
from urllib.parse import quote

import httpx
from loguru import logger

from routeflow.services.errors import (
    HttpError,
    NetworkError,
    RequestTimeoutError,
    RouteParameterError,
)

PLACEHOLDER_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")

# Methods whose leftover parameters travel in the query string
QUERY_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "DELETE"})

DEFAULT_HEADERS = {"Content-Type": "application/json"}


def render_url(
    template: str,
    params: Mapping[str, Any] | None,
    route_id: str | None = None,
) -> tuple[str, dict[str, Any]]:
    """
    Substitute :name placeholders.

    Returns the rendered URL and the parameters that were not consumed.
    """
    remaining = dict(params or {})
    used: set[str] = set()

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in remaining:
            raise RouteParameterError(route_id, name)
        used.add(name)
        return quote(str(remaining[name]), safe="")

    url = PLACEHOLDER_RE.sub(substitute, template)
    for name in used:
        remaining.pop(name, None)
    return url, remaining


class HttpTransport:
    """
    Thin async HTTP executor.

    Usage:
        transport = HttpTransport(base_url="https://api.example.com")
        payload = await transport.execute("GET", "/api/user/:id", {"id": 1}, timeout=15.0)
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._default_headers = {**DEFAULT_HEADERS, **(default_headers or {})}
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._default_headers,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http_client

    async def execute(
        self,
        method: str,
        url_template: str,
        params: Mapping[str, Any] | None = None,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        route_id: str | None = None,
    ) -> Any:
        """
        Execute one request.

        Returns:
            Decoded JSON payload, raw text for non-JSON bodies, None when empty

        Raises:
            HttpError: Non-2xx response
            RequestTimeoutError: No response within timeout
            NetworkError: Connection-level failure
        """
        url, remaining = render_url(url_template, params, route_id)
        method = method.upper()

        query = remaining if method in QUERY_METHODS and remaining else None
        body = remaining if method not in QUERY_METHODS and remaining else None

        client = await self._get_http_client()
        try:
            response = await client.request(
                method=method,
                url=url,
                params=query,
                json=body,
                headers=dict(headers) if headers else None,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(route_id, timeout) from e
        except httpx.RequestError as e:
            raise NetworkError(e, route_id=route_id) from e

        if not response.is_success:
            logger.debug(
                f"{method} {url} -> {response.status_code} {response.reason_phrase}"
            )
            raise HttpError(
                response.status_code,
                response.reason_phrase,
                self._decode(response),
                route_id=route_id,
            )

        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
