"""Provider discovery service.

Implements OpenID Connect Discovery 1.0 and RFC 8414 (Authorization Server
Metadata) to find a provider's endpoints from its issuer URL.
"""

from __future__ import annotations

import logging
from urllib.parse import urljoin, urlparse

import httpx

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import DiscoveryError

logger = logging.getLogger(__name__)


class OAuth2Discovery:
    """Resolves a DiscoveryDocument from an issuer URL.

    Tries the well-known locations in order and returns the first valid
    metadata document.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize discovery.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Shared client to use instead of creating one
        """
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self, issuer: str) -> DiscoveryDocument:
        """Fetch the discovery document for ``issuer``.

        Args:
            issuer: Provider issuer URL, e.g. ``https://accounts.google.com``

        Returns:
            DiscoveryDocument built from the provider's metadata

        Raises:
            DiscoveryError: If no location yields valid metadata
        """
        discovery_urls = self._build_discovery_urls(issuer)

        for url in discovery_urls:
            try:
                logger.debug(f"Trying provider metadata discovery: {url}")
                response = await self._http_client.get(
                    url, headers={"Accept": "application/json"}
                )
            except httpx.RequestError:
                # Network error - try next URL
                continue

            if response.status_code == 200:
                try:
                    metadata = response.json()
                except ValueError:
                    # Invalid metadata - try next URL
                    continue
                if isinstance(metadata, dict) and metadata.get(
                    "authorization_endpoint"
                ):
                    logger.debug(f"Discovered provider metadata from: {url}")
                    return DiscoveryDocument.from_metadata(metadata)
            elif response.status_code >= 500:
                # Server error - don't try other URLs
                break

        raise DiscoveryError(
            f"Failed to discover provider metadata for {issuer}. "
            f"Tried URLs: {discovery_urls}"
        )

    def _build_discovery_urls(self, issuer: str) -> list[str]:
        """Build ordered list of discovery URLs to try.

        OpenID Connect Discovery appends the well-known suffix to the full
        issuer; RFC 8414 inserts it between host and path.
        """
        parsed = urlparse(issuer)
        base_url = f"{parsed.scheme}://{parsed.netloc}"
        path = parsed.path.rstrip("/")

        urls = [f"{base_url}{path}/.well-known/openid-configuration"]

        if path:
            urls.append(urljoin(base_url, f"/.well-known/openid-configuration{path}"))
            urls.append(
                urljoin(base_url, f"/.well-known/oauth-authorization-server{path}")
            )

        urls.append(urljoin(base_url, "/.well-known/oauth-authorization-server"))

        return urls

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self._http_client.aclose()
