"""
Exception hierarchy for fetch-oauth.

Errors raised by the transport (``httpx.HTTPError`` and subclasses) and by the
caller-supplied token functions are never wrapped; they propagate unchanged
through the middleware chain. The classes below cover conditions detected by
the package itself.
"""

from __future__ import annotations


class FetchOAuthError(Exception):
    """Base class for errors raised by fetch-oauth."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class CapabilityUnsupportedError(FetchOAuthError):
    """A token storage operation was invoked without the function it needs."""

    def __init__(self, message: str, *, capability: str) -> None:
        super().__init__(message)
        self.capability = capability


class RemoteFetchUnsupportedError(CapabilityUnsupportedError):
    def __init__(self) -> None:
        super().__init__(
            "Getting a token from the server is not supported", capability="fetch_token"
        )


class RemoteGenerateUnsupportedError(CapabilityUnsupportedError):
    def __init__(self) -> None:
        super().__init__(
            "Generating a token on the server is not supported", capability="generate_token"
        )
