"""
Observer middleware: request/response/error hooks and request logging.

Hooks only observe. Responses are returned and errors re-raised unchanged.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx

from .clients.pipeline import Handler, RequestConfig


@dataclass(frozen=True, slots=True)
class RequestInfo:
    method: str
    url: str


@dataclass(frozen=True, slots=True)
class ResponseInfo:
    request: RequestInfo
    status_code: int
    elapsed_ms: float


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    request: RequestInfo
    error: BaseException
    elapsed_ms: float


RequestHook = Callable[[RequestInfo], None]
ResponseHook = Callable[[ResponseInfo], None]
ErrorHook = Callable[[ErrorInfo], None]


def strip_url_query_and_fragment(url: str) -> str:
    """
    Keep scheme/host/path but drop query/fragment to reduce accidental leakage of secrets.
    """
    try:
        parts = urlsplit(url)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    except ValueError:
        return url


def hooks_middleware(
    *,
    on_request: RequestHook | None = None,
    on_response: ResponseHook | None = None,
    on_error: ErrorHook | None = None,
) -> Callable[[Handler], Handler]:
    def _wrap(next: Handler) -> Handler:
        async def _handler(config: RequestConfig) -> httpx.Response:
            info = RequestInfo(method=config.method, url=config.uri)
            if on_request is not None:
                on_request(info)
            started = time.monotonic()
            try:
                response = await next(config)
            except Exception as e:
                if on_error is not None:
                    elapsed = (time.monotonic() - started) * 1000
                    on_error(ErrorInfo(request=info, error=e, elapsed_ms=elapsed))
                raise
            if on_response is not None:
                elapsed = (time.monotonic() - started) * 1000
                on_response(
                    ResponseInfo(
                        request=info, status_code=response.status_code, elapsed_ms=elapsed
                    )
                )
            return response

        return _handler

    return _wrap


def logging_middleware(
    logger: logging.Logger | None = None, *, level: int = logging.DEBUG
) -> Callable[[Handler], Handler]:
    """Log one line per request, response and error. URLs are logged without query strings."""
    log = logger or logging.getLogger("fetch_oauth.requests")

    def _on_request(req: RequestInfo) -> None:
        log.log(level, f"-> {req.method} {strip_url_query_and_fragment(req.url)}")

    def _on_response(res: ResponseInfo) -> None:
        url = strip_url_query_and_fragment(res.request.url)
        log.log(level, f"<- {res.status_code} {url} elapsedMs={int(res.elapsed_ms)}")

    def _on_error(err: ErrorInfo) -> None:
        url = strip_url_query_and_fragment(err.request.url)
        log.log(level, f"!! {type(err.error).__name__} {url}")

    return hooks_middleware(on_request=_on_request, on_response=_on_response, on_error=_on_error)
