"""
OAuth2 middleware.

Two middleware cooperate around a ``TokenStorage``:

- ``set_oauth2_authorization`` attaches the cached (or freshly acquired) token
  to every outgoing request.
- ``authorisation_challenge_handler`` watches for a 401 response, generates a
  new token and replays the request once, directly against the transport.

Compose the challenge handler before (outside) the injector so the first
attempt uses the injected token and the replay uses the refreshed one::

    fetch_with_middleware(
        authorisation_challenge_handler(storage),
        set_oauth2_authorization(storage),
    )
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeAlias

import httpx

from .clients.http import fetch_with_config
from .clients.pipeline import Handler, RequestConfig
from .hooks import strip_url_query_and_fragment

logger = logging.getLogger(__name__)

ChallengeTest: TypeAlias = Callable[[httpx.Response], Awaitable[bool] | bool]


class TokenSource(Protocol):
    async def get_token(self) -> Any: ...

    async def refresh_token(self) -> Any: ...


async def is_authorisation_challenge(response: httpx.Response) -> bool:
    """Default challenge test: the server answered 401 Unauthorized."""
    return response.status_code == 401


class OAuth2Authorization:
    """Sets the ``Authorization`` header from ``storage.get_token()``."""

    def __init__(self, storage: TokenSource):
        self._storage = storage

    def apply(self, next: Handler) -> Handler:
        storage = self._storage

        async def _handler(config: RequestConfig) -> httpx.Response:
            token = await storage.get_token()
            return await next(config.set_access_token(token))

        return _handler


class AuthorisationChallengeHandler:
    """
    Replays a challenged request once with a refreshed token.

    The replay goes straight to ``send`` (by default the terminal transport
    call), skipping the middleware below this one. A challenge on the replay is
    returned to the caller as-is.
    """

    def __init__(
        self,
        storage: TokenSource,
        test: ChallengeTest | None = None,
        *,
        send: Handler | None = None,
    ):
        self._storage = storage
        self._test = test or is_authorisation_challenge
        self._send = send or fetch_with_config

    async def _is_challenge(self, response: httpx.Response) -> bool:
        result = self._test(response)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    def apply(self, next: Handler) -> Handler:
        async def _handler(config: RequestConfig) -> httpx.Response:
            response = await next(config)
            if not await self._is_challenge(response):
                return response

            url = strip_url_query_and_fragment(config.uri)
            logger.debug(
                f"Authorization challenge ({response.status_code}) for "
                f"{config.method} {url}; refreshing token"
            )
            token = await self._storage.refresh_token()
            replay = await self._send(config.set_access_token(token))
            logger.debug(f"Replayed {config.method} {url} -> {replay.status_code}")
            return replay

        return _handler


def set_oauth2_authorization(storage: TokenSource) -> OAuth2Authorization:
    return OAuth2Authorization(storage)


def authorisation_challenge_handler(
    storage: TokenSource,
    test: ChallengeTest | None = None,
    *,
    send: Handler | None = None,
) -> AuthorisationChallengeHandler:
    return AuthorisationChallengeHandler(storage, test, send=send)


def prefix_uri(prefix: str) -> Callable[[Handler], Handler]:
    """Middleware prepending ``prefix`` (typically a scheme and host) to every URI."""

    def _wrap(next: Handler) -> Handler:
        async def _handler(config: RequestConfig) -> httpx.Response:
            return await next(config.update_uri(lambda uri: prefix + uri))

        return _handler

    return _wrap
