"""
fetch-oauth: async request pipeline with OAuth2 token handling.

Example:
    ```python
    from fetch_oauth import (
        authorisation_challenge_handler,
        fetch_with_middleware,
        prefix_uri,
        set_oauth2_authorization,
        token_storage,
    )

    storage = token_storage(fetch_token=fetch_token, generate_token=generate_token)
    fetch = fetch_with_middleware(
        prefix_uri("https://api.example.com"),
        authorisation_challenge_handler(storage),
        set_oauth2_authorization(storage),
    )
    response = await fetch("/secured", {"method": "GET"})
    ```
"""

from __future__ import annotations

from .clients.http import (
    HTTPTransport,
    TransportConfig,
    current_transport,
    fetch_with_config,
    fetch_with_middleware,
)
from .clients.pipeline import (
    Handler,
    Middleware,
    RequestConfig,
    apply_middleware,
    compose_async,
    middleware,
)
from .exceptions import (
    CapabilityUnsupportedError,
    FetchOAuthError,
    RemoteFetchUnsupportedError,
    RemoteGenerateUnsupportedError,
)
from .hooks import hooks_middleware, logging_middleware
from .models import Token
from .oauth import (
    AuthorisationChallengeHandler,
    OAuth2Authorization,
    authorisation_challenge_handler,
    is_authorisation_challenge,
    prefix_uri,
    set_oauth2_authorization,
)
from .race import RaceGuard, prevent_race_condition
from .tokens import TokenStorage, token_storage

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "RequestConfig",
    "Handler",
    "Middleware",
    "middleware",
    "compose_async",
    "apply_middleware",
    # Transport
    "HTTPTransport",
    "TransportConfig",
    "current_transport",
    "fetch_with_config",
    "fetch_with_middleware",
    # Tokens
    "Token",
    "TokenStorage",
    "token_storage",
    "RaceGuard",
    "prevent_race_condition",
    # OAuth2 middleware
    "OAuth2Authorization",
    "AuthorisationChallengeHandler",
    "set_oauth2_authorization",
    "authorisation_challenge_handler",
    "is_authorisation_challenge",
    "prefix_uri",
    # Hooks
    "hooks_middleware",
    "logging_middleware",
    # Errors
    "FetchOAuthError",
    "CapabilityUnsupportedError",
    "RemoteFetchUnsupportedError",
    "RemoteGenerateUnsupportedError",
]
