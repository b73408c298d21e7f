"""Token request and response models for OAuth 2.0.

Contains the token endpoint request bodies (code exchange, refresh,
revocation) and the immutable token response handed to callers.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """Successful OAuth 2.0 token response (RFC 6749 Section 5.1).

    ``issued_at`` is recorded locally when the response is received, so
    expiry is computed against our own clock rather than anything the
    provider reports.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(min_length=1)
    token_type: str = "bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    id_token: str | None = None  # OpenID Connect
    scope: str | None = None
    issued_at: int

    @classmethod
    def from_response(
        cls, data: Mapping[str, Any], issued_at: int | None = None
    ) -> TokenResponse:
        """Create from a token endpoint body, stamping the receipt time.

        Raises:
            pydantic.ValidationError: If required fields are missing or invalid
        """
        payload = {key: value for key, value in data.items() if key != "issued_at"}
        payload["issued_at"] = int(time.time()) if issued_at is None else issued_at
        return cls.model_validate(payload)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> TokenResponse:
        """Create from implicit-flow redirect parameters."""
        return cls.from_response(params)

    def expires_at(self) -> int | None:
        """Unix timestamp when the access token expires, or None."""
        if self.expires_in is None:
            return None
        return self.issued_at + self.expires_in

    def is_fresh(self, buffer_seconds: float = 600.0) -> bool:
        """Check whether the access token is still usable.

        Args:
            buffer_seconds: Treat the token as stale this long before expiry
        """
        expires_at = self.expires_at()
        if expires_at is None:
            return True  # No expiry means token doesn't expire
        return time.time() < expires_at - buffer_seconds


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    ``code_verifier`` is the PKCE verifier (never the challenge) and
    ``client_secret`` is only ever sent on this back-channel request.
    """

    # Required fields first
    token_endpoint: str
    code: str = field(repr=False)
    redirect_uri: str
    client_id: str

    # Optional fields with defaults last
    code_verifier: str | None = field(default=None, repr=False)  # RFC 7636 PKCE
    client_secret: str | None = field(default=None, repr=False)
    grant_type: str = "authorization_code"
    extra_params: Mapping[str, str] = field(default_factory=dict)

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        data = dict(self.extra_params)
        data.update(
            {
                "grant_type": self.grant_type,
                "code": self.code,
                "redirect_uri": self.redirect_uri,
                "client_id": self.client_id,
            }
        )

        if self.code_verifier:
            data["code_verifier"] = self.code_verifier
        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data


@dataclass(frozen=True)
class RefreshTokenRequest:
    """OAuth 2.0 refresh token request parameters (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str = field(repr=False)
    client_id: str

    client_secret: str | None = field(default=None, repr=False)
    grant_type: str = "refresh_token"
    scope: str | None = None

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        data = {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret
        if self.scope:
            data["scope"] = self.scope

        return data


@dataclass(frozen=True)
class RevokeTokenRequest:
    """OAuth 2.0 token revocation parameters (RFC 7009 Section 2.1)."""

    revocation_endpoint: str
    token: str = field(repr=False)
    client_id: str

    token_type_hint: str | None = None  # "access_token" or "refresh_token"
    client_secret: str | None = field(default=None, repr=False)

    def to_form_data(self) -> dict[str, str]:
        data = {"token": self.token, "client_id": self.client_id}

        if self.token_type_hint:
            data["token_type_hint"] = self.token_type_hint
        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data
