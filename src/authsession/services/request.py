"""Authorization request construction.

Turns caller configuration plus a provider's discovery metadata into a
single-use AuthorizationRequest with its state, PKCE and nonce material.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import ConfigError
from authsession.models.flow import (
    AuthorizationRequest,
    AuthorizationRequestConfig,
    ResponseType,
)
from authsession.primitives.pkce import PKCEManager
from authsession.primitives.security import generate_state
from authsession.providers.base import GENERIC, ProviderProfile

logger = logging.getLogger(__name__)


class AuthorizationRequestBuilder:
    """Builds authorization requests for one provider profile.

    Enforces the grant-dependent rules:
    - PKCE is only used with the authorization code grant
    - A client secret is only kept for the code grant, and only for the
      back-channel token exchange; it never appears in the URL
    - The discovery document must advertise what the grant needs
    """

    def __init__(self, profile: ProviderProfile = GENERIC):
        self.profile = profile
        self._pkce_manager = PKCEManager()

    def build(
        self,
        config: AuthorizationRequestConfig,
        discovery: DiscoveryDocument | None = None,
        *,
        redirect_uri: str | None = None,
    ) -> AuthorizationRequest:
        """Build a request ready to be presented to a user-agent.

        Args:
            config: Caller configuration
            discovery: Provider endpoints; defaults to the profile's
            redirect_uri: Redirect URI from the redirect policy, used when
                the config does not set one

        Returns:
            AuthorizationRequest: Fresh request with its own state and PKCE pair

        Raises:
            ConfigError: If the configuration cannot produce a valid request
        """
        discovery = discovery or self.profile.discovery
        if discovery is None:
            raise ConfigError(
                f"No discovery document given for provider {self.profile.name}"
            )

        response_type = ResponseType(config.response_type)
        self._validate(config, discovery, response_type, redirect_uri)

        config = self.profile.transform(
            replace(
                config,
                response_type=response_type,
                redirect_uri=config.redirect_uri or redirect_uri,
            )
        )

        extra_params = dict(config.extra_params)
        if extra_params.pop("client_secret", None) is not None:
            logger.warning("Dropped client_secret from authorization URL parameters")

        param_state = extra_params.pop("state", None)
        # Empty values count as absent
        state = config.state or param_state or None
        state_supplied = state is not None
        if state_supplied:
            logger.warning(
                "Using caller-supplied state; its unpredictability is not guaranteed"
            )
        else:
            state = generate_state()

        use_pkce = config.use_pkce
        if response_type.is_implicit:
            # PKCE is only defined for the authorization code grant
            use_pkce = False

        client_secret = config.client_secret
        if client_secret and response_type.is_implicit:
            logger.warning(
                f"Ignoring client secret for {response_type.value} response; "
                "secrets are only sent to the token endpoint"
            )
            client_secret = None

        pkce = None
        if use_pkce:
            pkce = self._pkce_manager.generate_parameters(config.code_challenge_method)

        request = AuthorizationRequest(
            config=replace(
                config,
                client_secret=None,
                use_pkce=use_pkce,
                extra_params=extra_params,
                state=None,
            ),
            discovery=discovery,
            state=state,
            pkce=pkce,
            client_secret=client_secret,
            state_supplied=state_supplied,
        )

        logger.debug(
            f"Built {response_type.value} authorization request for client "
            f"{config.client_id} (pkce={use_pkce})"
        )
        return request

    def _validate(
        self,
        config: AuthorizationRequestConfig,
        discovery: DiscoveryDocument,
        response_type: ResponseType,
        redirect_uri: str | None,
    ) -> None:
        if not config.client_id:
            raise ConfigError(
                f"client_id must be defined to use {self.profile.name} auth"
            )
        if not discovery.authorization_endpoint:
            raise ConfigError("Discovery document has no authorization_endpoint")
        if response_type is ResponseType.CODE and not discovery.token_endpoint:
            raise ConfigError(
                "Authorization code grant requires a token_endpoint in discovery"
            )
        if not (config.redirect_uri or redirect_uri):
            raise ConfigError("redirect_uri is not configured and was not derived")
