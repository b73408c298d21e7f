"""Authorization flow models for OAuth 2.0 and OpenID Connect.

Contains the caller configuration, the per-attempt authorization request,
the presenter's outcome, and the result of correlating a callback.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

from authsession.models.discovery import DiscoveryDocument
from authsession.models.errors import AuthorizationError, StateMismatchError
from authsession.models.security import CodeChallengeMethod, PKCEParameters
from authsession.primitives.security import generate_nonce

if TYPE_CHECKING:
    from authsession.models.tokens import TokenResponse


class ResponseType(str, Enum):
    """Grant selector sent as ``response_type``."""

    CODE = "code"
    TOKEN = "token"
    ID_TOKEN = "id_token"

    @property
    def is_implicit(self) -> bool:
        return self is not ResponseType.CODE


class Prompt(str, Enum):
    """OpenID Connect ``prompt`` values."""

    NONE = "none"
    LOGIN = "login"
    CONSENT = "consent"
    SELECT_ACCOUNT = "select_account"


@dataclass(frozen=True)
class AuthorizationRequestConfig:
    """Caller-supplied configuration for one authorization request.

    ``language``, ``login_hint``, ``select_account`` and ``prompt`` are
    convenience fields a provider profile maps into ``extra_params``.
    """

    client_id: str | None = None
    redirect_uri: str | None = None
    scopes: Sequence[str] = ()
    response_type: ResponseType = ResponseType.CODE
    client_secret: str | None = field(default=None, repr=False)
    use_pkce: bool = True
    code_challenge_method: CodeChallengeMethod = CodeChallengeMethod.S256
    extra_params: Mapping[str, str] = field(default_factory=dict)
    state: str | None = None

    prompt: Prompt | None = None
    language: str | None = None
    login_hint: str | None = None
    select_account: bool = False


class AuthorizationRequest:
    """One authorization attempt: configuration plus its security material.

    Single-use. The state, nonce and PKCE verifier belong to this instance
    and must never be presented to a user-agent twice.
    """

    def __init__(
        self,
        config: AuthorizationRequestConfig,
        discovery: DiscoveryDocument,
        state: str,
        pkce: PKCEParameters | None = None,
        *,
        client_secret: str | None = None,
        state_supplied: bool = False,
    ):
        self.config = config
        self.discovery = discovery
        self.state = state
        # The challenge stays public after the verifier is handed over
        self.code_challenge = pkce.code_challenge if pkce else None
        self.code_challenge_method = pkce.code_challenge_method if pkce else None
        self.state_supplied = state_supplied
        self.created_at = time.time()
        self._code_verifier = pkce.code_verifier if pkce else None
        self._client_secret = client_secret
        self._nonce: str | None = None

    def __repr__(self) -> str:
        return (
            f"AuthorizationRequest(client_id={self.config.client_id!r}, "
            f"response_type={self.response_type.value!r}, "
            f"pkce={self.code_challenge is not None})"
        )

    @property
    def response_type(self) -> ResponseType:
        return self.config.response_type

    @property
    def redirect_uri(self) -> str:
        return self.config.redirect_uri or ""

    @property
    def nonce(self) -> str | None:
        """The nonce sent with this request, if any."""
        return self.effective_config().extra_params.get("nonce")

    @property
    def has_client_secret(self) -> bool:
        return self._client_secret is not None

    @property
    def code_verifier(self) -> str | None:
        return self._code_verifier

    def effective_config(self) -> AuthorizationRequestConfig:
        """Return the configuration as it is sent to the provider.

        For ``id_token`` responses without a caller nonce, a nonce is
        generated on first call and reused on every later call.
        """
        extra_params = dict(self.config.extra_params)
        if (
            self.config.response_type is ResponseType.ID_TOKEN
            and not extra_params.get("nonce")
        ):
            if self._nonce is None:
                self._nonce = generate_nonce()
            extra_params["nonce"] = self._nonce
        return replace(self.config, extra_params=extra_params)

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL.

        Keys are sorted and values percent-encoded (spaces as ``%20``).
        Empty values are omitted. Protocol parameters always take
        precedence over ``extra_params`` of the same name.
        """
        config = self.effective_config()
        params = dict(config.extra_params)
        params.update(
            {
                "response_type": config.response_type.value,
                "client_id": config.client_id or "",
                "redirect_uri": config.redirect_uri or "",
                "scope": " ".join(config.scopes),
                "state": self.state,
            }
        )

        if self.code_challenge:
            params["code_challenge"] = self.code_challenge
            params["code_challenge_method"] = self.code_challenge_method.value

        query = urlencode(
            sorted((key, value) for key, value in params.items() if value),
            quote_via=quote,
        )
        endpoint = self.discovery.authorization_endpoint or ""
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{query}"

    def take_exchange_credentials(self) -> tuple[str | None, str | None]:
        """Hand over the PKCE verifier and client secret exactly once.

        The request forgets both afterwards so they do not outlive the
        token exchange that needs them.

        Returns:
            Tuple of (code_verifier, client_secret)
        """
        verifier = self.code_verifier
        secret = self._client_secret
        self._code_verifier = None
        self._client_secret = None
        return verifier, secret


class PresentationType(str, Enum):
    """How the external user-agent presentation ended."""

    REDIRECT = "redirect"
    DISMISSED = "dismissed"
    CANCELLED = "cancelled"
    LOCKED = "locked"


@dataclass(frozen=True)
class PresentationOutcome:
    """Outcome reported by a presenter for one presentation."""

    type: PresentationType
    url: str | None = None

    @classmethod
    def redirect(cls, url: str) -> PresentationOutcome:
        return cls(PresentationType.REDIRECT, url)

    @classmethod
    def dismissed(cls) -> PresentationOutcome:
        return cls(PresentationType.DISMISSED)

    @classmethod
    def cancelled(cls) -> PresentationOutcome:
        return cls(PresentationType.CANCELLED)

    @classmethod
    def locked(cls) -> PresentationOutcome:
        return cls(PresentationType.LOCKED)


class ResultType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    CANCEL = "cancel"
    DISMISS = "dismiss"
    LOCKED = "locked"


STATE_MISMATCH = "state_mismatch"
INVALID_RESPONSE = "invalid_response"


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of matching a callback (or its absence) against a request."""

    type: ResultType
    params: Mapping[str, str] = field(default_factory=dict)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None
    url: str | None = None
    authentication: TokenResponse | None = None

    @classmethod
    def success(
        cls, params: Mapping[str, str], url: str | None = None
    ) -> AuthorizationResult:
        return cls(ResultType.SUCCESS, params=params, url=url)

    @classmethod
    def failure(
        cls,
        error: str,
        error_description: str | None = None,
        *,
        error_uri: str | None = None,
        params: Mapping[str, str] | None = None,
        url: str | None = None,
    ) -> AuthorizationResult:
        return cls(
            ResultType.ERROR,
            params=params or {},
            error=error,
            error_description=error_description,
            error_uri=error_uri,
            url=url,
        )

    def is_success(self) -> bool:
        return self.type is ResultType.SUCCESS

    def is_error(self) -> bool:
        return self.type is ResultType.ERROR

    def is_user_cancelled(self) -> bool:
        """Cancel and dismiss are normal endings a UI can ignore silently."""
        return self.type in (ResultType.CANCEL, ResultType.DISMISS)

    def is_state_mismatch(self) -> bool:
        return self.is_error() and self.error == STATE_MISMATCH

    def raise_for_error(self) -> None:
        """Raise the typed failure for an error result; no-op otherwise.

        Raises:
            StateMismatchError: If the callback did not match the request
            AuthorizationError: If the provider reported an error
        """
        if not self.is_error():
            return
        if self.is_state_mismatch():
            raise StateMismatchError()
        raise AuthorizationError(
            f"Authorization failed: {self.error} "
            f"({self.error_description or ''}) "
            f"{'See: ' + self.error_uri if self.error_uri else ''}".rstrip(),
            error=self.error,
            error_description=self.error_description,
            error_uri=self.error_uri,
        )
