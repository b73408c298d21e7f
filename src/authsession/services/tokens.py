"""OAuth 2.0 token endpoint service.

Implements RFC 6749 token endpoint interactions: authorization code
exchange with PKCE (RFC 7636), refresh, and revocation (RFC 7009).
No call is retried; retry policy belongs to the caller.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import ConfigError, TokenError
from authsession.models.flow import AuthorizationRequest, ResponseType
from authsession.models.tokens import (
    RefreshTokenRequest,
    RevokeTokenRequest,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class OAuth2TokenManager:
    """Manages token endpoint operations.

    Handles:
    - Authorization code to access token exchange (RFC 6749 Section 4.1.3)
    - Access token refresh (RFC 6749 Section 6)
    - Token revocation (RFC 7009)

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize token manager.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Shared client to use instead of creating one
        """
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code(
        self, code: str, request: AuthorizationRequest
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Sends the original redirect URI, the PKCE verifier (never the
        challenge) and, for confidential clients, the client secret. The
        request hands both over once and forgets them.

        Args:
            code: Authorization code from a successful callback
            request: The request the code was issued for

        Returns:
            TokenResponse: Tokens stamped with their receipt time

        Raises:
            ConfigError: If the request is not a code grant or has no token endpoint
            TokenError: If the exchange fails
        """
        if request.response_type is not ResponseType.CODE:
            raise ConfigError(
                f"Cannot exchange a code for a {request.response_type.value} request"
            )
        token_endpoint = request.discovery.token_endpoint
        if not token_endpoint:
            raise ConfigError("Discovery document has no token_endpoint")

        code_verifier, client_secret = request.take_exchange_credentials()
        token_request = TokenRequest(
            token_endpoint=token_endpoint,
            code=code,
            redirect_uri=request.redirect_uri,
            client_id=request.config.client_id or "",
            code_verifier=code_verifier,
            client_secret=client_secret,
        )

        # Log request details (without sensitive data)
        logger.debug(
            f"Exchanging authorization code at {token_endpoint}: "
            f"client_id={token_request.client_id}, "
            f"pkce={code_verifier is not None}, "
            f"confidential={client_secret is not None}"
        )

        response = await self._post_form(
            token_endpoint, token_request.to_form_data(), "token exchange"
        )
        token_response = self._parse_token_response(response, "token exchange")
        logger.info("Token exchange successful")
        return token_response

    async def refresh_access_token(
        self,
        refresh_token: str,
        discovery: DiscoveryDocument,
        client_id: str,
        client_secret: str | None = None,
        scopes: tuple[str, ...] = (),
    ) -> TokenResponse:
        """Refresh an access token using a refresh token.

        Implements RFC 6749 Section 6 - Refreshing an Access Token.

        Raises:
            ConfigError: If discovery has no token endpoint
            TokenError: If the refresh fails
        """
        if not discovery.token_endpoint:
            raise ConfigError("Discovery document has no token_endpoint")

        refresh_request = RefreshTokenRequest(
            token_endpoint=discovery.token_endpoint,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            scope=" ".join(scopes) or None,
        )
        logger.debug(f"Refreshing access token at {discovery.token_endpoint}")

        response = await self._post_form(
            discovery.token_endpoint, refresh_request.to_form_data(), "token refresh"
        )
        return self._parse_token_response(response, "token refresh")

    async def revoke_token(
        self,
        token: str,
        discovery: DiscoveryDocument,
        client_id: str,
        token_type_hint: str | None = None,
        client_secret: str | None = None,
    ) -> None:
        """Revoke an access or refresh token (RFC 7009).

        Raises:
            ConfigError: If discovery has no revocation endpoint
            TokenError: If the provider rejects the revocation
        """
        if not discovery.revocation_endpoint:
            raise ConfigError("Discovery document has no revocation_endpoint")

        revoke_request = RevokeTokenRequest(
            revocation_endpoint=discovery.revocation_endpoint,
            token=token,
            client_id=client_id,
            token_type_hint=token_type_hint,
            client_secret=client_secret,
        )
        response = await self._post_form(
            discovery.revocation_endpoint,
            revoke_request.to_form_data(),
            "token revocation",
        )
        if not 200 <= response.status_code < 300:
            self._raise_for_error_body(response, "token revocation")
        logger.info("Token revoked")

    async def _post_form(
        self, endpoint: str, form_data: dict[str, str], action: str
    ) -> httpx.Response:
        try:
            return await self._http_client.post(
                endpoint, data=form_data, headers=FORM_HEADERS
            )
        except httpx.HTTPError as e:
            raise TokenError(f"HTTP error during {action}: {e}", error="network") from e

    def _parse_token_response(
        self, response: httpx.Response, action: str
    ) -> TokenResponse:
        """Parse a token endpoint response into TokenResponse.

        Error responses (RFC 6749 Section 5.2) and malformed bodies raise
        TokenError carrying the status and any provider error code.
        """
        if not 200 <= response.status_code < 300:
            self._raise_for_error_body(response, action)

        try:
            response_data = response.json()
        except ValueError as e:
            raise TokenError(
                f"Invalid {action} response format: {e}",
                error="invalid_response",
                status_code=response.status_code,
            ) from e

        if not isinstance(response_data, dict):
            raise TokenError(
                f"Invalid {action} response format: expected a JSON object",
                error="invalid_response",
                status_code=response.status_code,
            )
        if response_data.get("error"):
            self._raise_for_error_body(response, action)

        try:
            return TokenResponse.from_response(response_data)
        except ValidationError as e:
            raise TokenError(
                f"Invalid {action} response format: {e}",
                error="invalid_response",
                status_code=response.status_code,
            ) from e

    def _raise_for_error_body(self, response: httpx.Response, action: str) -> None:
        try:
            response_data = response.json()
        except ValueError:
            response_data = None

        if isinstance(response_data, dict) and response_data.get("error"):
            error_code = str(response_data["error"])
            error_description = response_data.get("error_description")
            logger.warning(
                f"{action.capitalize()} failed with {response.status_code}: "
                f"{error_code} - {error_description}"
            )
            raise TokenError(
                f"{action.capitalize()} failed: {error_code}"
                + (f" ({error_description})" if error_description else ""),
                error=error_code,
                error_description=error_description,
                status_code=response.status_code,
            )

        logger.warning(f"{action.capitalize()} failed with {response.status_code}")
        raise TokenError(
            f"{action.capitalize()} failed with HTTP {response.status_code}",
            error="http_status",
            status_code=response.status_code,
        )

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()
