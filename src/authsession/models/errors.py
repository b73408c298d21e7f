"""Exception hierarchy for OAuth 2.0 / OpenID Connect authorization flows.

Provides specific exception types for different failure modes so callers
can tell misconfiguration, protocol violations and remote failures apart.
User cancellation is not an exception; it is a normal flow result.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all authorization flow errors."""

    pass


class ConfigError(OAuth2Error):
    """Raised when the caller's configuration cannot produce a valid request.

    Missing client id, missing redirect URI, or a response type the
    discovery document has no endpoint for. Never worth retrying.
    """

    pass


class DiscoveryError(OAuth2Error):
    """Raised when provider discovery metadata cannot be fetched or parsed."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class FlowError(OAuth2Error):
    """Raised when the authorization flow is driven in an invalid order."""

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class AlreadyInFlightError(FlowError):
    """Raised when a request is presented while a presentation is pending."""

    def __init__(self, message: str = "Authorization request is already in flight"):
        super().__init__(message, reason="already_in_flight")


class RequestConsumedError(FlowError):
    """Raised when a resolved (single-use) request is presented again."""

    def __init__(self, message: str = "Authorization request was already used"):
        super().__init__(message, reason="request_consumed")


class StateMismatchError(FlowError):
    """Raised when a callback's state does not match the pending request.

    This indicates either a missing state parameter or a forged callback,
    which could indicate a CSRF attack.
    """

    def __init__(
        self, message: str = "State parameter mismatch - possible CSRF attack"
    ):
        super().__init__(message, reason="state_mismatch")


class AuthorizationError(OAuth2Error):
    """Raised when the authorization server returned an error redirect."""

    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        error_description: str | None = None,
        error_uri: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri


class TokenError(OAuth2Error):
    """Raised when a token endpoint call fails.

    ``error`` is ``network``, ``http_status`` or ``invalid_response`` for
    failures detected locally, or the provider's own error code
    (``invalid_grant``, ``invalid_client``, ...) when it sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        error: str,
        error_description: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description
        self.status_code = status_code


class UserInfoError(OAuth2Error):
    """Raised when the user-info endpoint is unavailable or fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
