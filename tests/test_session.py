"""Tests for end-to-end authorization flow orchestration.

High-impact tests covering the complete flow:
- Build, present, correlate and exchange for code + PKCE clients
- Confidential clients exchanging automatically with the client secret
- Cancellation, dismissal, re-entrancy and presenter failures
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import (
    AlreadyInFlightError,
    ConfigError,
    RequestConsumedError,
)
from authsession.models.flow import (
    AuthorizationRequestConfig,
    PresentationOutcome,
    ResponseType,
    ResultType,
)
from authsession.providers.base import ProviderProfile
from authsession.services.flow import FlowState
from authsession.session import AuthSession

DISCOVERY = DiscoveryDocument(
    authorization_endpoint="https://auth.example.com/authorize",
    token_endpoint="https://auth.example.com/token",
    revocation_endpoint="https://auth.example.com/revoke",
    user_info_endpoint="https://auth.example.com/userinfo",
)

PROFILE = ProviderProfile(
    name="example",
    minimum_scopes=("openid", "profile"),
    window_hints={"width": 500, "height": 600},
)


def state_of(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


class RedirectingPresenter:
    """Presenter that immediately 'redirects' back with a callback."""

    def __init__(self, callback=None):
        self.calls: list[tuple[str, dict]] = []
        self.callback = callback or (
            lambda url: f"https://myapp.com/callback?code=XYZ&state={state_of(url)}"
        )

    async def present(self, url, window_hints):
        self.calls.append((url, dict(window_hints)))
        return PresentationOutcome.redirect(self.callback(url))


class FixedPresenter:
    def __init__(self, outcome: PresentationOutcome):
        self.outcome = outcome

    async def present(self, url, window_hints):
        return self.outcome


class BlockingPresenter:
    """Presenter whose user never comes back."""

    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def present(self, url, window_hints):
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class FailingPresenter:
    async def present(self, url, window_hints):
        raise RuntimeError("browser unavailable")


def token_response(body: dict) -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = body
    return response


def make_session(presenter, **kwargs) -> tuple[AuthSession, AsyncMock]:
    http_client = AsyncMock()
    session = AuthSession(
        presenter,
        DISCOVERY,
        profile=PROFILE,
        redirect_uri="https://myapp.com/callback",
        http_client=http_client,
        **kwargs,
    )
    return session, http_client


class TestCodeFlow:
    async def test_public_client_pkce_flow_end_to_end(self):
        # Arrange
        presenter = RedirectingPresenter()
        session, http_client = make_session(presenter)
        request = session.load_request(
            AuthorizationRequestConfig(
                client_id="abc", scopes=["openid"], use_pkce=True
            )
        )
        code_verifier = request.code_verifier

        # Act
        result = await session.prompt(request)

        # Assert - correlation
        assert result.type is ResultType.SUCCESS
        assert result.params["code"] == "XYZ"
        assert result.authentication is None  # public client: caller exchanges
        http_client.post.assert_not_called()

        # Assert - presented URL
        url, window_hints = presenter.calls[0]
        assert "client_id=abc" in url
        assert "response_type=code" in url
        assert "scope=openid%20profile" in url
        assert "code_challenge_method=S256" in url
        assert window_hints == {"width": 500, "height": 600}

        # Act - exchange the code
        http_client.post.return_value = token_response(
            {"access_token": "access-token-xyz", "token_type": "Bearer"}
        )
        token = await session.exchange_code(result.params["code"], request)

        # Assert - exchange
        assert token.access_token == "access-token-xyz"
        form_data = http_client.post.call_args[1]["data"]
        assert form_data["code"] == "XYZ"
        assert form_data["code_verifier"] == code_verifier

    async def test_confidential_client_exchanges_automatically(self):
        # Arrange
        presenter = RedirectingPresenter()
        session, http_client = make_session(presenter)
        http_client.post.return_value = token_response(
            {"access_token": "access-token-xyz", "expires_in": 3600}
        )
        request = session.load_request(
            AuthorizationRequestConfig(client_id="abc", client_secret="s3cr3t")
        )

        # Act
        result = await session.prompt(request)

        # Assert
        assert result.is_success()
        assert result.params["code"] == "XYZ"
        assert result.authentication.access_token == "access-token-xyz"

        url, _ = presenter.calls[0]
        assert "s3cr3t" not in url
        form_data = http_client.post.call_args[1]["data"]
        assert form_data["client_secret"] == "s3cr3t"
        assert form_data["redirect_uri"] == "https://myapp.com/callback"

    async def test_state_mismatch_is_error_and_skips_exchange(self):
        # Arrange
        presenter = RedirectingPresenter(
            lambda url: "https://myapp.com/callback?code=XYZ&state=forged"
        )
        session, http_client = make_session(presenter)
        request = session.load_request(
            AuthorizationRequestConfig(client_id="abc", client_secret="s3cr3t")
        )

        # Act
        result = await session.prompt(request)

        # Assert
        assert result.is_error()
        assert result.is_state_mismatch()
        assert not result.is_user_cancelled()
        assert result.authentication is None
        http_client.post.assert_not_called()


class TestImplicitFlow:
    async def test_token_response_builds_authentication(self):
        # Arrange
        presenter = RedirectingPresenter(
            lambda url: (
                "https://myapp.com/callback#access_token=tok&token_type=bearer"
                f"&expires_in=3600&state={state_of(url)}"
            )
        )
        session, _ = make_session(presenter)
        request = session.load_request(
            AuthorizationRequestConfig(
                client_id="abc",
                response_type=ResponseType.TOKEN,
                client_secret="s3cr3t",
            )
        )

        # Act
        result = await session.prompt(request)

        # Assert
        assert result.is_success()
        assert result.params["access_token"] == "tok"
        assert result.authentication.access_token == "tok"
        assert result.authentication.expires_in == 3600
        assert "s3cr3t" not in presenter.calls[0][0]
        assert "code_challenge" not in presenter.calls[0][0]


class TestUserEndings:
    @pytest.mark.parametrize(
        "outcome, expected",
        [
            (PresentationOutcome.dismissed(), ResultType.DISMISS),
            (PresentationOutcome.cancelled(), ResultType.CANCEL),
            (PresentationOutcome.locked(), ResultType.LOCKED),
        ],
    )
    async def test_presenter_outcomes(self, outcome, expected):
        session, _ = make_session(FixedPresenter(outcome))
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))

        result = await session.prompt(request)

        assert result.type is expected
        assert not result.is_error()

    async def test_external_cancel_unblocks_prompt(self):
        # Arrange
        presenter = BlockingPresenter()
        session, _ = make_session(presenter)
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))
        prompt = asyncio.create_task(session.prompt(request))
        await presenter.started.wait()

        # Act
        session.cancel(request)
        result = await prompt

        # Assert
        assert result.type is ResultType.CANCEL
        assert result.is_user_cancelled()
        await asyncio.sleep(0)
        assert presenter.cancelled

    async def test_second_cancel_is_noop(self):
        presenter = BlockingPresenter()
        session, _ = make_session(presenter)
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))
        prompt = asyncio.create_task(session.prompt(request))
        await presenter.started.wait()

        first = session.cancel(request)
        second = session.dismiss(request)

        assert second is first
        assert (await prompt) is first

    async def test_timeout_resolves_as_cancel(self):
        session, _ = make_session(BlockingPresenter())
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))

        result = await session.prompt(request, timeout=0.01)

        assert result.type is ResultType.CANCEL
        assert result.error == "timeout"


class TestSingleUse:
    async def test_concurrent_prompt_is_rejected(self):
        # Arrange
        presenter = BlockingPresenter()
        session, _ = make_session(presenter)
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))
        first = asyncio.create_task(session.prompt(request))
        await presenter.started.wait()

        # Act & Assert
        with pytest.raises(AlreadyInFlightError):
            await session.prompt(request)

        session.cancel(request)
        await first

    async def test_resolved_request_cannot_be_prompted_again(self):
        session, _ = make_session(RedirectingPresenter())
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))
        await session.prompt(request)

        with pytest.raises(RequestConsumedError):
            await session.prompt(request)

    async def test_cancelled_prompt_task_resolves_the_request(self):
        # Arrange
        presenter = BlockingPresenter()
        session, _ = make_session(presenter)
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))
        prompt = asyncio.create_task(session.prompt(request))
        await presenter.started.wait()
        correlator = session._correlator_for(request)
        other_waiter = asyncio.create_task(correlator.wait())
        await asyncio.sleep(0)

        # Act
        prompt.cancel()
        with pytest.raises(asyncio.CancelledError):
            await prompt

        # Assert
        assert correlator.state is FlowState.RESOLVED
        assert (await other_waiter).type is ResultType.CANCEL
        with pytest.raises(RequestConsumedError):
            await session.prompt(request)

    async def test_presenter_failure_propagates(self):
        session, _ = make_session(FailingPresenter())
        request = session.load_request(AuthorizationRequestConfig(client_id="abc"))

        with pytest.raises(RuntimeError, match="browser unavailable"):
            await session.prompt(request)


class TestSessionServices:
    async def test_missing_token_endpoint_fails_before_network(self):
        http_client = AsyncMock()
        session = AuthSession(
            RedirectingPresenter(),
            DiscoveryDocument(authorization_endpoint="https://auth.example.com/a"),
            redirect_uri="https://myapp.com/callback",
            http_client=http_client,
        )

        with pytest.raises(ConfigError):
            session.load_request(AuthorizationRequestConfig(client_id="abc"))

        http_client.post.assert_not_called()
        http_client.get.assert_not_called()

    async def test_fetch_user_info_uses_discovery(self):
        # Arrange
        session, http_client = make_session(RedirectingPresenter())
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = {"sub": "1", "email": "ada@example.com"}
        http_client.get.return_value = response

        # Act
        user = await session.fetch_user_info("access-token-xyz")

        # Assert
        assert user.id == "1"
        assert http_client.get.call_args[0][0] == "https://auth.example.com/userinfo"

    async def test_session_requires_discovery(self):
        with pytest.raises(ConfigError):
            AuthSession(RedirectingPresenter(), http_client=AsyncMock())

    async def test_context_manager_leaves_shared_client_open(self):
        http_client = AsyncMock()

        async with AuthSession(
            RedirectingPresenter(), DISCOVERY, http_client=http_client
        ):
            pass

        http_client.aclose.assert_not_called()
