from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from typing import Any

import httpx
import pytest
import respx

from fetch_oauth import fetch_with_middleware, prefix_uri

BASE_URL = "http://testserver"

VALID_TOKEN = {"access_token": "abc123", "token_type": "Bearer"}
EXPIRED_TOKEN = {"access_token": "expired", "token_type": "Bearer"}


class TokenNotFoundError(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__("Token not found")
        self.response = response


@pytest.fixture
def base_url() -> str:
    """Origin of the mocked protected API."""
    return BASE_URL


@pytest.fixture
def valid_token() -> dict[str, str]:
    """Token accepted by /secured and returned by the token endpoints."""
    return dict(VALID_TOKEN)


@pytest.fixture
def expired_token() -> dict[str, str]:
    """Token rejected by /secured with a 401 challenge."""
    return dict(EXPIRED_TOKEN)


def _secured(request: httpx.Request) -> httpx.Response:
    if request.headers.get("authorization") == "Bearer abc123":
        return httpx.Response(200, json={"data": "foo"})
    return httpx.Response(401, headers={"WWW-Authenticate": 'Bearer realm="example"'})


@pytest.fixture
def server() -> Iterator[respx.MockRouter]:
    """Protected test API: /secured accepts only `Bearer abc123`."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.get("/secured", name="secured").mock(side_effect=_secured)
        router.get("/token", name="fetch_token").mock(
            return_value=httpx.Response(200, json=VALID_TOKEN)
        )
        router.put("/token", name="generate_token").mock(
            return_value=httpx.Response(200, json=VALID_TOKEN)
        )
        router.get("/token/404", name="token_not_found").mock(
            return_value=httpx.Response(404, json={"error": "not_found"})
        )
        router.get("/request", name="request").mock(return_value=httpx.Response(200, text="ok"))
        yield router


async def _token_request(uri: str, method: str) -> Any:
    response = await fetch_with_middleware(prefix_uri(BASE_URL))(uri, {"method": method})
    if response.is_success:
        return response.json()
    raise TokenNotFoundError(response)


async def _fetch_token() -> Any:
    return await _token_request("/token", "GET")


async def _fetch_token_not_found() -> Any:
    return await _token_request("/token/404", "GET")


async def _generate_token() -> Any:
    return await _token_request("/token", "PUT")


@pytest.fixture
def fetch_token(server: respx.MockRouter) -> Callable[[], Awaitable[Any]]:
    return _fetch_token


@pytest.fixture
def fetch_token_not_found(server: respx.MockRouter) -> Callable[[], Awaitable[Any]]:
    return _fetch_token_not_found


@pytest.fixture
def generate_token(server: respx.MockRouter) -> Callable[[], Awaitable[Any]]:
    return _generate_token


def _only_once(fn: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[Any]]:
    called = False

    async def wrapper() -> Any:
        nonlocal called
        if called:
            raise RuntimeError("Called more than once")
        called = True
        await asyncio.sleep(0.05)
        return await fn()

    return wrapper


@pytest.fixture
def only_once() -> Callable[[Callable[[], Awaitable[Any]]], Callable[[], Awaitable[Any]]]:
    """Wrap a token function so a second call fails; the first is delayed by 50ms."""
    return _only_once
