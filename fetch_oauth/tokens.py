"""
In-memory token storage.

``TokenStorage`` caches one credential and knows how to obtain a new one:
``fetch_token`` retrieves an existing token from the authorization server,
``generate_token`` asks it to issue a new one. Each function is wrapped in a
``RaceGuard``, so concurrent callers share a single in-flight request per kind.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from .exceptions import RemoteFetchUnsupportedError, RemoteGenerateUnsupportedError
from .race import RaceGuard

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _fetch_unsupported() -> Any:
    raise RemoteFetchUnsupportedError()


async def _generate_unsupported() -> Any:
    raise RemoteGenerateUnsupportedError()


def _describe(token: Any) -> str:
    token_type = getattr(token, "token_type", None)
    if token_type is None and isinstance(token, dict):
        token_type = token.get("token_type")
    return f"{token_type} token" if token_type else "token"


class TokenStorage(Generic[T]):
    """
    Token cache with fetch-or-generate acquisition.

    Tokens are opaque to the storage: whatever ``fetch_token`` or
    ``generate_token`` return is cached and handed back unchanged. The cache
    lives only as long as the instance.
    """

    def __init__(
        self,
        *,
        initial_token: T | None = None,
        fetch_token: Callable[[], Awaitable[T]] | None = None,
        generate_token: Callable[[], Awaitable[T]] | None = None,
    ):
        self._token: T | None = initial_token
        self._epoch = 0
        self._fetch_token: RaceGuard[T] | None = RaceGuard(fetch_token) if fetch_token else None
        self._generate_token: RaceGuard[T] | None = (
            RaceGuard(generate_token) if generate_token else None
        )

    @property
    def token(self) -> T | None:
        """Currently cached token, if any."""
        return self._token

    def clear(self) -> None:
        self._token = None

    async def _fetch(self) -> T:
        if self._fetch_token is None:
            return await _fetch_unsupported()
        return await self._fetch_token()

    async def _generate(self) -> T:
        if self._generate_token is None:
            return await _generate_unsupported()
        return await self._generate_token()

    async def get_token(self) -> T:
        """
        Return the cached token, fetching or generating one when none is cached.

        Any failure of the fetch path falls through to generation; when both
        fail, the generation error is raised. A call made while a refresh is in
        flight waits for the refreshed token instead of fetching.
        """
        if self._token is not None:
            return self._token
        if self._generating:
            return await self._join_generate()

        epoch = self._epoch
        try:
            token = await self._fetch()
        except Exception as e:
            logger.debug(f"Fetching token failed ({type(e).__name__}: {e}); generating a new one")
            token = await self._generate()
            logger.debug(f"Generated {_describe(token)}")
        else:
            logger.debug(f"Fetched {_describe(token)}")

        if self._epoch != epoch:
            # A refresh started meanwhile; its token supersedes this one.
            if self._token is not None:
                return self._token
            if self._generating:
                return await self._join_generate()
        self._token = token
        return token

    @property
    def _generating(self) -> bool:
        return self._generate_token is not None and self._generate_token.pending

    async def _join_generate(self) -> T:
        epoch = self._epoch
        token = await self._generate()
        if self._epoch == epoch:
            self._token = token
        return token

    async def refresh_token(self) -> T:
        """Drop the cached token and generate a new one."""
        self._epoch += 1
        self._token = None
        token = await self._generate()
        logger.debug(f"Refreshed {_describe(token)}")
        self._token = token
        return token


def token_storage(
    *,
    initial_token: T | None = None,
    fetch_token: Callable[[], Awaitable[T]] | None = None,
    generate_token: Callable[[], Awaitable[T]] | None = None,
) -> TokenStorage[T]:
    return TokenStorage(
        initial_token=initial_token,
        fetch_token=fetch_token,
        generate_token=generate_token,
    )
