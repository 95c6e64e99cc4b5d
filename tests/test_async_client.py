from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from http_xtra import (
    AsyncHttpXtraClient,
    HttpXtraAuthError,
    HttpXtraHTTPError,
    async_refresh_with_route,
)


BASE_URL = "https://api.test"


def only_fresh_token(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/refresh":
        return httpx.Response(200, json={"access_token": "fresh", "refresh_token": "r2"})
    if request.headers.get("authorization") == "Bearer fresh":
        return httpx.Response(200, json={"id": 1})
    return httpx.Response(401, text="token expired")


def make_client(handler, **kwargs) -> AsyncHttpXtraClient:
    transport = httpx.MockTransport(handler)
    return AsyncHttpXtraClient(BASE_URL, httpx_client=httpx.AsyncClient(transport=transport), **kwargs)


def test_async_get_with_parser() -> None:
    async def run() -> bool:
        async with make_client(lambda request: httpx.Response(200, content=b'"Up"')) as client:
            return await client.get("/health", parser=lambda value: value == "Up")

    assert asyncio.run(run()) is True


def test_async_post_sends_json_and_merges_headers() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, text="created")

    async def run() -> object:
        async with make_client(handler, default_headers={"X-Env": "prod", "X-Team": "core"}) as client:
            return await client.post("/items", body={"name": "pen"}, headers={"X-Team": "billing"})

    assert asyncio.run(run()) == "created"
    headers = captured["headers"]
    assert captured["url"] == "https://api.test/items"
    assert captured["body"] == {"name": "pen"}
    assert headers["x-env"] == "prod"
    assert headers["x-team"] == "billing"
    assert headers["content-type"] == "application/json"


def test_async_server_error() -> None:
    async def run() -> None:
        async with make_client(lambda request: httpx.Response(500, text="server exploded")) as client:
            await client.delete("/items/1")

    with pytest.raises(HttpXtraHTTPError) as exc_info:
        asyncio.run(run())

    assert str(exc_info.value) == "server exploded"


def test_async_refresh_with_coroutine_callback() -> None:
    calls: list[str | None] = []

    async def on_refresh(client: AsyncHttpXtraClient, refresh_token: str | None) -> None:
        calls.append(refresh_token)
        await asyncio.sleep(0)
        client.set_authorization("fresh", "r2")

    async def run() -> object:
        async with make_client(only_fresh_token, on_refresh=on_refresh, access_token="stale", refresh_token="r1") as client:
            result = await client.get("/me")
            assert not client.is_refreshing
            assert client.refresh_token == "r2"
            return result

    assert asyncio.run(run()) == {"id": 1}
    assert calls == ["r1"]


def test_async_refresh_with_plain_callback() -> None:
    def on_refresh(client: AsyncHttpXtraClient, refresh_token: str | None) -> None:
        client.set_authorization("fresh")

    async def run() -> object:
        async with make_client(only_fresh_token, on_refresh=on_refresh, access_token="stale") as client:
            return await client.get("/me")

    assert asyncio.run(run()) == {"id": 1}


def test_async_single_retry_when_callback_does_nothing() -> None:
    requests: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request.url.path)
        return only_fresh_token(request)

    async def noop(client: AsyncHttpXtraClient, refresh_token: str | None) -> None:
        return None

    async def run() -> None:
        async with make_client(handler, on_refresh=noop) as client:
            try:
                await client.get("/me")
            finally:
                assert not client.is_refreshing

    with pytest.raises(HttpXtraAuthError):
        asyncio.run(run())
    assert requests == ["/me", "/me"]


def test_concurrent_401_fails_while_refresh_in_flight() -> None:
    calls: list[str | None] = []

    async def run() -> tuple[object, Exception | None]:
        started = asyncio.Event()
        release = asyncio.Event()

        async def on_refresh(client: AsyncHttpXtraClient, refresh_token: str | None) -> None:
            calls.append(refresh_token)
            started.set()
            await release.wait()
            client.set_authorization("fresh")

        async with make_client(only_fresh_token, on_refresh=on_refresh, access_token="stale") as client:
            first = asyncio.create_task(client.get("/me"))
            await started.wait()
            assert client.is_refreshing

            error: Exception | None = None
            try:
                await client.get("/me")
            except HttpXtraAuthError as exc:
                error = exc

            release.set()
            return await first, error

    result, error = asyncio.run(run())

    assert result == {"id": 1}
    assert isinstance(error, HttpXtraAuthError)
    assert calls == [None]


def test_async_refresh_with_route() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return only_fresh_token(request)

    async def run() -> tuple[object, str | None]:
        async with make_client(
            handler,
            on_refresh=async_refresh_with_route("/refresh"),
            access_token="stale",
            refresh_token="r1",
        ) as client:
            return await client.get("/me"), client.refresh_token

    result, refresh_token = asyncio.run(run())

    assert result == {"id": 1}
    assert refresh_token == "r2"
    assert paths == ["/me", "/refresh", "/me"]


def test_async_transport_error_propagates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    async def run() -> None:
        async with make_client(handler) as client:
            await client.get("/slow")

    with pytest.raises(httpx.ConnectTimeout):
        asyncio.run(run())
