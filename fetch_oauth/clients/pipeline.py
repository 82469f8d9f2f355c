"""
Request pipeline primitives.

Requests are described by an immutable ``RequestConfig`` that flows through an
ordered chain of middleware before reaching the transport. Each middleware wraps
the next handler, so it can rewrite the config on the way in and inspect or
replace the response on the way out.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, TypeAlias, runtime_checkable

import httpx

from ..models import Token


@dataclass(frozen=True, slots=True)
class RequestConfig:
    """
    Immutable description of an HTTP call.

    ``opts`` holds fetch-style options (``method``, ``headers``, ``params``,
    ``json``, ``content``, ``data``, ``timeout``, ``follow_redirects``). Every
    transform returns a new instance; neither the instance nor its nested
    ``headers`` mapping is modified in place.
    """

    uri: str = ""
    opts: dict[str, Any] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return str(self.opts.get("method") or "GET").upper()

    @property
    def headers(self) -> dict[str, str]:
        return dict(self.opts.get("headers") or {})

    def set_header(self, name: str, value: str) -> RequestConfig:
        """Set ``name``, replacing any existing header with the same name in another case."""
        headers = {
            key: current
            for key, current in (self.opts.get("headers") or {}).items()
            if key.lower() != name.lower()
        }
        headers[name] = value
        return replace(self, opts={**self.opts, "headers": headers})

    def set_access_token(self, token: Token | Mapping[str, Any]) -> RequestConfig:
        return self.set_header("Authorization", Token.coerce(token).authorization)

    def update_uri(self, fn: Callable[[str], str]) -> RequestConfig:
        return replace(self, uri=fn(self.uri))


Handler: TypeAlias = Callable[[RequestConfig], Awaitable[httpx.Response]]
MiddlewareFunction: TypeAlias = Callable[[Handler], Handler]


@runtime_checkable
class Middleware(Protocol):
    def apply(self, next: Handler) -> Handler: ...


class _FunctionMiddleware:
    __slots__ = ("_fn",)

    def __init__(self, fn: Callable[[RequestConfig, Handler], Awaitable[httpx.Response]]):
        self._fn = fn

    def apply(self, next: Handler) -> Handler:
        fn = self._fn

        async def _handler(config: RequestConfig) -> httpx.Response:
            return await fn(config, next)

        return _handler

    def __repr__(self) -> str:
        return f"middleware({getattr(self._fn, '__qualname__', self._fn)!r})"


def middleware(
    fn: Callable[[RequestConfig, Handler], Awaitable[httpx.Response]],
) -> Middleware:
    """
    Turn ``async def fn(config, next) -> Response`` into a middleware.

    Example:
        ```python
        @middleware
        async def add_trace_header(config, next):
            return await next(config.set_header("X-Trace", "1"))
        ```
    """
    return _FunctionMiddleware(fn)


def _wrapper_for(mw: Middleware | MiddlewareFunction) -> MiddlewareFunction:
    if isinstance(mw, Middleware):
        return mw.apply
    if callable(mw):
        return mw
    raise ValueError(f"Middleware must be callable or define apply(), got {type(mw).__name__}")


def compose_async(
    middlewares: Sequence[Middleware | MiddlewareFunction], terminal: Handler
) -> Handler:
    """Fold ``middlewares`` right-to-left around ``terminal``; the first one is outermost."""
    wrappers = [_wrapper_for(mw) for mw in middlewares]
    pipeline = terminal
    for wrap in reversed(wrappers):
        pipeline = wrap(pipeline)
    return pipeline


def apply_middleware(
    *middlewares: Middleware | MiddlewareFunction,
) -> Callable[[Handler], Handler]:
    def _build(terminal: Handler) -> Handler:
        return compose_async(middlewares, terminal)

    return _build
