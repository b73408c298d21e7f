"""OpenID Connect UserInfo fetch service."""

from __future__ import annotations

import logging

import httpx

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import UserInfoError
from authsession.models.user import ProviderUser

logger = logging.getLogger(__name__)


class UserInfoFetcher:
    """Maps a bearer access token to a normalized ProviderUser.

    One authenticated GET per call; nothing is cached.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def fetch(
        self, access_token: str, discovery: DiscoveryDocument
    ) -> ProviderUser:
        """Fetch the user behind ``access_token``.

        Raises:
            UserInfoError: If the endpoint is missing, unreachable, returns a
                non-2xx status, or returns something other than a JSON object
        """
        endpoint = discovery.user_info_endpoint
        if not endpoint:
            raise UserInfoError("Discovery document has no user_info_endpoint")

        logger.debug(f"Fetching user info from {endpoint}")
        try:
            response = await self._http_client.get(
                endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise UserInfoError(f"HTTP error during user info fetch: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"User info request failed with {response.status_code}")
            raise UserInfoError(
                f"User info request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UserInfoError(
                f"Invalid user info response format: {e}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise UserInfoError(
                "Invalid user info response format: expected a JSON object",
                status_code=response.status_code,
            )

        return ProviderUser.from_user_info(data)

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
