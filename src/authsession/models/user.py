"""Normalized user identity returned by a provider's user-info endpoint."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProviderUser:
    """Provider-agnostic user identity.

    ``provider_data`` keeps the untouched user-info payload for callers
    that need fields normalization does not cover.
    """

    id: str | None
    name: str | None = None
    email: str | None = None
    picture: str | None = None
    provider_data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_user_info(cls, data: Mapping[str, Any]) -> ProviderUser:
        """Normalize an OpenID Connect UserInfo (or legacy profile) payload."""
        user_id = data.get("sub", data.get("id"))
        return cls(
            id=str(user_id) if user_id is not None else None,
            name=data.get("name"),
            email=data.get("email"),
            picture=data.get("picture"),
            provider_data=data,
        )
