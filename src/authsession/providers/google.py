"""Google OpenID Connect provider profile."""

from __future__ import annotations

from authsession.models.discovery import DiscoveryDocument
from authsession.providers.base import ProviderProfile

GOOGLE_DISCOVERY = DiscoveryDocument(
    authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
    token_endpoint="https://oauth2.googleapis.com/token",
    revocation_endpoint="https://oauth2.googleapis.com/revoke",
    user_info_endpoint="https://openidconnect.googleapis.com/v1/userinfo",
    issuer="https://accounts.google.com",
)

# Needed for the user-info endpoint to return profile data.
GOOGLE_MINIMUM_SCOPES = (
    "openid",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)

GOOGLE = ProviderProfile(
    name="google",
    discovery=GOOGLE_DISCOVERY,
    minimum_scopes=GOOGLE_MINIMUM_SCOPES,
    language_param="hl",
    window_hints={"width": 515, "height": 680},
)
