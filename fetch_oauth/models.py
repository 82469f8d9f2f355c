"""Credential models."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict


class Token(BaseModel):
    """
    OAuth2 access token.

    Only ``token_type`` and ``access_token`` are interpreted. Any other fields
    returned by the token endpoint (``expires_in``, ``refresh_token``, ``scope``)
    are kept as extras.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    token_type: str
    access_token: str

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f"{self.token_type} {self.access_token}"

    @classmethod
    def coerce(cls, value: Token | Mapping[str, Any]) -> Token:
        if isinstance(value, Token):
            return value
        return cls.model_validate(dict(value))
