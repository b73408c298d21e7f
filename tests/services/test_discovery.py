"""Tests for provider metadata discovery.

Covers well-known URL construction and metadata fallback behavior.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from authsession.models.errors import DiscoveryError
from authsession.services.discovery import OAuth2Discovery

METADATA = {
    "issuer": "https://accounts.example.com",
    "authorization_endpoint": "https://accounts.example.com/authorize",
    "token_endpoint": "https://accounts.example.com/token",
    "revocation_endpoint": "https://accounts.example.com/revoke",
    "userinfo_endpoint": "https://accounts.example.com/userinfo",
    "end_session_endpoint": "https://accounts.example.com/logout",
}


def response(status_code: int, body=None) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = body
    return mock_response


class TestDiscoveryUrls:
    def setup_method(self):
        self.discovery = OAuth2Discovery(http_client=AsyncMock())

    def test_root_issuer(self):
        urls = self.discovery._build_discovery_urls("https://accounts.example.com")

        assert urls == [
            "https://accounts.example.com/.well-known/openid-configuration",
            "https://accounts.example.com/.well-known/oauth-authorization-server",
        ]

    def test_issuer_with_path(self):
        urls = self.discovery._build_discovery_urls("https://example.com/tenant/")

        assert urls == [
            "https://example.com/tenant/.well-known/openid-configuration",
            "https://example.com/.well-known/openid-configuration/tenant",
            "https://example.com/.well-known/oauth-authorization-server/tenant",
            "https://example.com/.well-known/oauth-authorization-server",
        ]


class TestDiscoveryFetch:
    def setup_method(self):
        self.http_client = AsyncMock()
        self.discovery = OAuth2Discovery(http_client=self.http_client)

    async def test_fetch_maps_oidc_metadata(self):
        # Arrange
        self.http_client.get.return_value = response(200, METADATA)

        # Act
        document = await self.discovery.fetch("https://accounts.example.com")

        # Assert
        assert document.authorization_endpoint == METADATA["authorization_endpoint"]
        assert document.token_endpoint == METADATA["token_endpoint"]
        assert document.revocation_endpoint == METADATA["revocation_endpoint"]
        assert document.user_info_endpoint == METADATA["userinfo_endpoint"]
        assert document.end_session_endpoint == METADATA["end_session_endpoint"]
        assert document.discovery_document == METADATA

    async def test_falls_back_after_not_found(self):
        # Arrange
        self.http_client.get.side_effect = [response(404), response(200, METADATA)]

        # Act
        document = await self.discovery.fetch("https://accounts.example.com")

        # Assert
        assert document.issuer == "https://accounts.example.com"
        assert self.http_client.get.await_count == 2

    async def test_network_errors_try_next_url(self):
        self.http_client.get.side_effect = [
            httpx.ConnectError("Connection failed"),
            response(200, METADATA),
        ]

        document = await self.discovery.fetch("https://accounts.example.com")

        assert document.token_endpoint == METADATA["token_endpoint"]

    async def test_server_error_stops_discovery(self):
        self.http_client.get.return_value = response(503)

        with pytest.raises(DiscoveryError):
            await self.discovery.fetch("https://accounts.example.com")

        assert self.http_client.get.await_count == 1

    async def test_metadata_without_authorization_endpoint_is_skipped(self):
        self.http_client.get.return_value = response(200, {"issuer": "x"})

        with pytest.raises(DiscoveryError):
            await self.discovery.fetch("https://accounts.example.com")
