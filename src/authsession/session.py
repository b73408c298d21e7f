"""Authorization flow orchestration.

Coordinates request building, user-agent presentation, callback
correlation and (for confidential code-grant clients) token exchange.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Mapping
from dataclasses import replace
from typing import Protocol

import httpx
from pydantic import ValidationError

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import ConfigError
from authsession.models.flow import (
    AuthorizationRequest,
    AuthorizationRequestConfig,
    AuthorizationResult,
    PresentationOutcome,
    PresentationType,
    ResponseType,
)
from authsession.models.tokens import TokenResponse
from authsession.models.user import ProviderUser
from authsession.providers.base import GENERIC, ProviderProfile
from authsession.services.flow import FlowCorrelator, FlowState
from authsession.services.request import AuthorizationRequestBuilder
from authsession.services.tokens import OAuth2TokenManager
from authsession.services.userinfo import UserInfoFetcher

logger = logging.getLogger(__name__)


class Presenter(Protocol):
    """Protocol for the user-agent step.

    Allows different strategies for browser interaction:
    - In-app browser or system browser plus redirect capture
    - Native dialog
    - Manual copy/paste of the callback URL
    """

    async def present(
        self, url: str, window_hints: Mapping[str, int]
    ) -> PresentationOutcome:
        """Show ``url`` to the user and report how the presentation ended.

        Args:
            url: Authorization URL for user to visit
            window_hints: Preferred window size, for presenters that open one

        Returns:
            The captured redirect, or dismissed / cancelled / locked
        """
        ...


class AuthSession:
    """Runs authorization flows against one provider.

    build -> present -> await callback -> (exchange) -> result.
    Each AuthorizationRequest is presented at most once; cancelling it
    from another task unblocks every waiter.
    """

    def __init__(
        self,
        presenter: Presenter,
        discovery: DiscoveryDocument | None = None,
        *,
        profile: ProviderProfile = GENERIC,
        redirect_uri: str | None = None,
        window_hints: Mapping[str, int] | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        token_manager: OAuth2TokenManager | None = None,
        user_info_fetcher: UserInfoFetcher | None = None,
    ):
        """Initialize the session.

        Args:
            presenter: External user-agent collaborator
            discovery: Provider endpoints; defaults to the profile's
            profile: Provider defaults (scopes, parameter names, window size)
            redirect_uri: Redirect URI chosen by the redirect policy, used for
                configs that do not set one
            window_hints: Overrides the profile's window size hints
            timeout: HTTP request timeout in seconds
            http_client: Shared HTTP client for token and user-info calls
            token_manager: Token endpoint service override
            user_info_fetcher: User-info service override

        Raises:
            ConfigError: If neither ``discovery`` nor the profile has endpoints
        """
        discovery = discovery or profile.discovery
        if discovery is None:
            raise ConfigError(f"No discovery document for provider {profile.name}")

        self.presenter = presenter
        self.discovery = discovery
        self.profile = profile
        self.redirect_uri = redirect_uri
        self.window_hints = dict(
            profile.window_hints if window_hints is None else window_hints
        )

        self.builder = AuthorizationRequestBuilder(profile)
        self.token_manager = token_manager or OAuth2TokenManager(
            timeout=timeout, http_client=http_client
        )
        self.user_info_fetcher = user_info_fetcher or UserInfoFetcher(
            timeout=timeout, http_client=http_client
        )
        self._correlators: weakref.WeakKeyDictionary[
            AuthorizationRequest, FlowCorrelator
        ] = weakref.WeakKeyDictionary()

    async def __aenter__(self) -> AuthSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def load_request(self, config: AuthorizationRequestConfig) -> AuthorizationRequest:
        """Build a fresh request for this provider.

        Raises:
            ConfigError: If the configuration cannot produce a valid request
        """
        return self.builder.build(config, self.discovery, redirect_uri=self.redirect_uri)

    async def prompt(
        self, request: AuthorizationRequest, *, timeout: float | None = None
    ) -> AuthorizationResult:
        """Present ``request`` and wait for the flow to resolve.

        For a code grant with a client secret, a successful callback is
        exchanged for tokens and the result carries ``authentication``.
        Implicit callbacks carrying an access token get ``authentication``
        built from their parameters. ``params`` always pass through as
        received.

        Args:
            request: Request from load_request; never presented before
            timeout: Seconds to wait before resolving as cancelled

        Returns:
            AuthorizationResult: success, error, cancel, dismiss or locked

        Raises:
            AlreadyInFlightError: If the request is being presented already
            RequestConsumedError: If the request already resolved
            TokenError: If the token exchange fails
        """
        correlator = self._correlator_for(request)
        correlator.dispatch()

        url = request.build_authorization_url()
        logger.info(
            f"Presenting authorization request for client {request.config.client_id}"
        )

        presentation = asyncio.create_task(self._present(correlator, url))
        try:
            result = await correlator.wait(timeout)
        finally:
            if not presentation.done():
                presentation.cancel()
            if correlator.state is FlowState.PENDING:
                # The awaiting task was cancelled; nothing else can resolve it
                correlator.cancel()

        return await self._complete(request, result)

    def cancel(self, request: AuthorizationRequest) -> AuthorizationResult | None:
        """Cancel ``request``; a no-op once it has resolved."""
        return self._correlator_for(request).cancel()

    def dismiss(self, request: AuthorizationRequest) -> AuthorizationResult | None:
        """Report that the user-agent closed without a callback."""
        return self._correlator_for(request).dismiss()

    async def exchange_code(
        self, code: str, request: AuthorizationRequest
    ) -> TokenResponse:
        """Exchange ``code`` for tokens using ``request``'s verifier and secret."""
        return await self.token_manager.exchange_code(code, request)

    async def fetch_user_info(self, access_token: str) -> ProviderUser:
        """Fetch the normalized user for ``access_token``."""
        return await self.user_info_fetcher.fetch(access_token, self.discovery)

    async def close(self) -> None:
        """Close all service connections."""
        await self.token_manager.close()
        await self.user_info_fetcher.close()

    def _correlator_for(self, request: AuthorizationRequest) -> FlowCorrelator:
        correlator = self._correlators.get(request)
        if correlator is None:
            correlator = FlowCorrelator(request)
            self._correlators[request] = correlator
        return correlator

    async def _present(self, correlator: FlowCorrelator, url: str) -> None:
        try:
            outcome = await self.presenter.present(url, self.window_hints)
        except Exception as e:
            logger.error(f"Presenter failed: {e}")
            correlator.fail(e)
            return

        logger.debug(f"Presentation ended: {outcome.type.value}")
        if outcome.type is PresentationType.REDIRECT:
            correlator.receive_redirect(outcome.url or "")
        elif outcome.type is PresentationType.DISMISSED:
            correlator.dismiss()
        elif outcome.type is PresentationType.LOCKED:
            correlator.lock()
        else:
            correlator.cancel()

    async def _complete(
        self, request: AuthorizationRequest, result: AuthorizationResult
    ) -> AuthorizationResult:
        if not result.is_success():
            return result

        if request.response_type is ResponseType.CODE:
            if not request.has_client_secret:
                return result
            logger.debug("Exchanging authorization code for tokens")
            authentication = await self.exchange_code(result.params["code"], request)
            return replace(result, authentication=authentication)

        if result.params.get("access_token"):
            try:
                authentication = TokenResponse.from_params(result.params)
            except ValidationError as e:
                logger.warning(f"Could not read tokens from callback: {e}")
                return result
            return replace(result, authentication=authentication)

        return result
