"""
HTTP transport adapter and pipeline entry point.

``fetch_with_middleware`` builds a ``RequestConfig`` for each call, runs it
through the composed middleware chain and hands the final config to
``fetch_with_config``, which performs the request with httpx.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..hooks import strip_url_query_and_fragment
from .pipeline import Middleware, MiddlewareFunction, RequestConfig, compose_async

logger = logging.getLogger(__name__)

# Fetch-style option names passed straight through to httpx.AsyncClient.request
_PASSTHROUGH_OPTIONS = ("params", "json", "content", "data", "files", "cookies")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class TransportConfig:
    """Settings for ``HTTPTransport``."""

    timeout: float = 30.0
    headers: Mapping[str, str] = field(default_factory=dict)
    follow_redirects: bool = False
    log_requests: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> TransportConfig:
        """
        Build a config from explicit values, then environment, then defaults.

        Reads ``FETCH_OAUTH_TIMEOUT``, ``FETCH_OAUTH_FOLLOW_REDIRECTS`` and
        ``FETCH_OAUTH_LOG_REQUESTS``.
        """
        values: dict[str, Any] = {}
        timeout = os.getenv("FETCH_OAUTH_TIMEOUT", "").strip()
        if timeout:
            try:
                values["timeout"] = float(timeout)
            except ValueError as e:
                raise ValueError(f"FETCH_OAUTH_TIMEOUT must be a number, got {timeout!r}") from e
        follow = os.getenv("FETCH_OAUTH_FOLLOW_REDIRECTS", "").strip()
        if follow:
            values["follow_redirects"] = follow.lower() in _TRUE_VALUES
        log_requests = os.getenv("FETCH_OAUTH_LOG_REQUESTS", "").strip()
        if log_requests:
            values["log_requests"] = log_requests.lower() in _TRUE_VALUES
        values.update(overrides)
        return cls(**values)


class HTTPTransport:
    """
    Thin async adapter over ``httpx.AsyncClient``.

    Without an injected ``client`` or ``transport`` a short-lived client is
    opened for every request. An injected ``transport`` (e.g.
    ``httpx.MockTransport``) is wrapped in a client owned by this adapter and
    released by ``aclose()``. An injected ``client`` is never closed here.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if client is not None and transport is not None:
            raise ValueError("Pass either 'client' or 'transport', not both")
        self._config = config or TransportConfig()
        self._client = client
        self._transport = transport
        self._owned_client: httpx.AsyncClient | None = None

    @property
    def config(self) -> TransportConfig:
        return self._config

    def _build_request_kwargs(self, opts: Mapping[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            key: opts[key] for key in _PASSTHROUGH_OPTIONS if opts.get(key) is not None
        }
        if "content" not in kwargs and opts.get("body") is not None:
            kwargs["content"] = opts["body"]
        kwargs["headers"] = {**self._config.headers, **(opts.get("headers") or {})}
        kwargs["timeout"] = opts.get("timeout", self._config.timeout)
        kwargs["follow_redirects"] = bool(
            opts.get("follow_redirects", self._config.follow_redirects)
        )
        return kwargs

    def _client_for_transport(self) -> httpx.AsyncClient:
        if self._owned_client is None:
            self._owned_client = httpx.AsyncClient(transport=self._transport)
        return self._owned_client

    async def send(self, uri: str, opts: Mapping[str, Any] | None = None) -> httpx.Response:
        """Perform the request. The response body is read before returning."""
        opts = opts or {}
        method = str(opts.get("method") or "GET").upper()
        kwargs = self._build_request_kwargs(opts)
        if self._config.log_requests:
            logger.debug(f"{method} {strip_url_query_and_fragment(uri)}")

        if self._client is not None:
            response = await self._client.request(method, uri, **kwargs)
        elif self._transport is not None:
            response = await self._client_for_transport().request(method, uri, **kwargs)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.request(method, uri, **kwargs)

        if self._config.log_requests:
            logger.debug(
                f"{method} {strip_url_query_and_fragment(uri)} -> {response.status_code}"
            )
        return response

    async def aclose(self) -> None:
        if self._owned_client is not None:
            await self._owned_client.aclose()
            self._owned_client = None

    async def __aenter__(self) -> HTTPTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


_default_transport = HTTPTransport()
_active_transport: ContextVar[HTTPTransport | None] = ContextVar(
    "fetch_oauth_active_transport", default=None
)


def current_transport() -> HTTPTransport:
    """Transport bound to the running ``fetch_with_middleware`` call, or the default one."""
    return _active_transport.get() or _default_transport


async def fetch_with_config(config: RequestConfig) -> httpx.Response:
    """Terminal handler: send ``config`` through the current transport."""
    return await current_transport().send(config.uri, config.opts)


def fetch_with_middleware(
    *middlewares: Middleware | MiddlewareFunction,
    transport: HTTPTransport | None = None,
) -> Callable[..., Awaitable[httpx.Response]]:
    """
    Build a fetch function that runs every request through ``middlewares``.

    The first middleware is the outermost one: it sees the config first and the
    response last.

    Example:
        ```python
        storage = token_storage(fetch_token=fetch_token, generate_token=generate_token)
        fetch = fetch_with_middleware(
            prefix_uri("https://api.example.com"),
            authorisation_challenge_handler(storage),
            set_oauth2_authorization(storage),
        )
        response = await fetch("/secured", {"method": "GET"})
        ```

    Args:
        middlewares: ``Middleware`` objects or ``(next) -> handler`` callables.
        transport: Transport used for this fetch function's requests, including
            challenge replays. Defaults to a process-wide ``HTTPTransport``.
    """
    handler = compose_async(middlewares, fetch_with_config)

    async def fetch(uri: str = "", opts: Mapping[str, Any] | None = None) -> httpx.Response:
        config = RequestConfig(uri=uri, opts=dict(opts or {}))
        if transport is None:
            return await handler(config)
        bound = _active_transport.set(transport)
        try:
            return await handler(config)
        finally:
            _active_transport.reset(bound)

    return fetch
