"""Discovery-related models for provider endpoint metadata.

Contains the endpoint set an authorization flow runs against, and the
mapping from OpenID Connect discovery metadata onto it.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class DiscoveryDocument(BaseModel):
    """Provider endpoints needed to run an authorization flow.

    Any endpoint may be absent when the provider lacks the capability.
    Immutable; shared by reference across requests and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    revocation_endpoint: str | None = None
    user_info_endpoint: str | None = None

    # Optional OpenID Connect extras
    end_session_endpoint: str | None = None
    registration_endpoint: str | None = None
    issuer: str | None = None
    discovery_document: dict[str, Any] | None = None

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> DiscoveryDocument:
        """Build from an OpenID Connect discovery (or RFC 8414) payload.

        Args:
            metadata: Parsed ``.well-known/openid-configuration`` body

        Returns:
            DiscoveryDocument keeping the raw payload for provider extras
        """
        return cls(
            authorization_endpoint=metadata.get("authorization_endpoint"),
            token_endpoint=metadata.get("token_endpoint"),
            revocation_endpoint=metadata.get("revocation_endpoint"),
            user_info_endpoint=metadata.get("userinfo_endpoint"),
            end_session_endpoint=metadata.get("end_session_endpoint"),
            registration_endpoint=metadata.get("registration_endpoint"),
            issuer=metadata.get("issuer"),
            discovery_document=metadata,
        )
