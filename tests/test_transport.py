import json

import httpx
import pytest

from routeflow.services import (
    HttpError,
    HttpTransport,
    NetworkError,
    RequestTimeoutError,
    RouteParameterError,
)
from routeflow.services.transport import render_url

BASE_URL = "https://api.test"


def test_render_url_substitutes_placeholders_and_returns_leftovers() -> None:
    url, remaining = render_url(
        "/api/users/:userId/goals/:goal_id", {"userId": 7, "goal_id": "a b", "page": 2}
    )

    assert url == "/api/users/7/goals/a%20b"
    assert remaining == {"page": 2}


def test_render_url_leaves_ports_alone() -> None:
    url, remaining = render_url("http://localhost:8080/api/:id", {"id": 1})

    assert url == "http://localhost:8080/api/1"
    assert remaining == {}


def test_render_url_requires_every_placeholder() -> None:
    with pytest.raises(RouteParameterError, match=":id"):
        render_url("/api/test/:id", {}, route_id="test.get")


def make_transport(handler) -> HttpTransport:
    return HttpTransport(base_url=BASE_URL, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio()
async def test_get_request_with_path_parameters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": "test response"})

    transport = make_transport(handler)
    payload = await transport.execute("GET", "/api/test/:id", {"id": 123})
    await transport.close()

    assert payload == {"data": "test response"}
    assert str(seen[0].url) == "https://api.test/api/test/123"
    assert seen[0].method == "GET"
    assert seen[0].headers["content-type"] == "application/json"
    assert seen[0].content == b""


@pytest.mark.asyncio()
async def test_get_request_sends_leftover_params_as_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    transport = make_transport(handler)
    await transport.execute("GET", "/api/items", {"category": "insights", "page": 2})
    await transport.close()

    assert dict(seen[0].url.params) == {"category": "insights", "page": "2"}


@pytest.mark.asyncio()
async def test_post_request_sends_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": 1})

    transport = make_transport(handler)
    body = {"name": "test", "value": 42}
    payload = await transport.execute("POST", "/api/test", body, headers={"X-Trace": "t1"})
    await transport.close()

    assert payload == {"id": 1}
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content) == body
    assert seen[0].headers["content-type"] == "application/json"
    assert seen[0].headers["x-trace"] == "t1"


@pytest.mark.asyncio()
async def test_non_2xx_response_becomes_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "Resource not found"})

    transport = make_transport(handler)
    with pytest.raises(HttpError, match="API request failed: 404 Not Found") as excinfo:
        await transport.execute("GET", "/api/test/:id", {"id": 999}, route_id="test.get")
    await transport.close()

    error = excinfo.value
    assert error.status == 404
    assert error.status_text == "Not Found"
    assert error.body == {"error": "Resource not found"}
    assert error.route_id == "test.get"
    assert not error.is_transient


@pytest.mark.asyncio()
async def test_server_errors_are_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    transport = make_transport(handler)
    with pytest.raises(HttpError) as excinfo:
        await transport.execute("GET", "/api/test")
    await transport.close()

    assert excinfo.value.is_transient
    assert excinfo.value.body == "boom"


@pytest.mark.asyncio()
async def test_connection_failure_becomes_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    transport = make_transport(handler)
    with pytest.raises(NetworkError) as excinfo:
        await transport.execute("GET", "/api/test")
    await transport.close()

    assert excinfo.value.is_transient
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio()
async def test_timeout_becomes_request_timeout_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    transport = make_transport(handler)
    with pytest.raises(RequestTimeoutError, match="timed out after 2.5s") as excinfo:
        await transport.execute("GET", "/api/test", timeout=2.5, route_id="slow")
    await transport.close()

    assert isinstance(excinfo.value, NetworkError)
    assert excinfo.value.timeout == 2.5


@pytest.mark.asyncio()
async def test_text_and_empty_bodies() -> None:
    responses = [httpx.Response(200, text="plain"), httpx.Response(204)]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    transport = make_transport(handler)
    assert await transport.execute("GET", "/text") == "plain"
    assert await transport.execute("DELETE", "/thing") is None
    await transport.close()
