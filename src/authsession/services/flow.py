"""Authorization callback correlation.

Tracks the single outstanding presentation of an authorization request
and matches whatever comes back (a redirect, a dismissal, a cancellation)
against it, resolving exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from urllib.parse import parse_qs, urlparse

from authsession.models.errors import (
    AlreadyInFlightError,
    FlowError,
    RequestConsumedError,
)
from authsession.models.flow import (
    INVALID_RESPONSE,
    STATE_MISMATCH,
    AuthorizationRequest,
    AuthorizationResult,
    ResponseType,
    ResultType,
)
from authsession.primitives.security import states_match

logger = logging.getLogger(__name__)

# Parameter whose presence marks a successful callback, per response type
EXPECTED_PARAMS = {
    ResponseType.CODE: "code",
    ResponseType.TOKEN: "access_token",
    ResponseType.ID_TOKEN: "id_token",
}


class FlowState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RESOLVED = "resolved"


class FlowCorrelator:
    """Three-state tracker for one authorization request.

    ``idle -> pending`` on dispatch, ``pending -> resolved`` on the first
    of: a callback, a dismissal, a cancellation, a timeout. Everything
    after resolution is a no-op, and every waiter sees the same result.
    """

    def __init__(self, request: AuthorizationRequest):
        self.request = request
        self._state = FlowState.IDLE
        self._future: asyncio.Future[AuthorizationResult] | None = None
        self._result: AuthorizationResult | None = None

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def result(self) -> AuthorizationResult | None:
        return self._result

    def dispatch(self) -> None:
        """Mark the request as presented to a user-agent.

        Raises:
            AlreadyInFlightError: If a presentation is already pending
            RequestConsumedError: If the request already resolved
        """
        if self._state is FlowState.PENDING:
            raise AlreadyInFlightError()
        if self._state is FlowState.RESOLVED:
            raise RequestConsumedError()

        self._future = asyncio.get_running_loop().create_future()
        self._state = FlowState.PENDING
        logger.debug(f"Dispatched {self.request!r}")

    def receive_redirect(self, callback_url: str) -> AuthorizationResult | None:
        """Correlate a callback URL with the pending request.

        Args:
            callback_url: Full redirect URL captured from the user-agent

        Returns:
            The resolved result; for an already resolved request, the
            earlier result (None if the flow failed with an exception)

        Raises:
            FlowError: If the request was never dispatched
        """
        if self._state is FlowState.IDLE:
            raise FlowError(
                "Received a callback for a request that was not dispatched",
                reason="not_in_flight",
            )
        if self._state is FlowState.RESOLVED:
            logger.debug("Ignoring callback for an already resolved request")
            return self._result

        return self._resolve(self._correlate(callback_url))

    def dismiss(self) -> AuthorizationResult | None:
        """The user-agent closed without producing a callback."""
        return self._resolve(AuthorizationResult(ResultType.DISMISS))

    def cancel(self) -> AuthorizationResult | None:
        """Cancel the flow. Cancelling an idle request consumes it."""
        return self._resolve(AuthorizationResult(ResultType.CANCEL))

    def lock(self) -> AuthorizationResult | None:
        """The user-agent refused because another session holds it."""
        return self._resolve(AuthorizationResult(ResultType.LOCKED))

    def fail(self, exc: BaseException) -> None:
        """Resolve with an exception that every waiter will see."""
        if self._state is FlowState.RESOLVED:
            return
        self._state = FlowState.RESOLVED
        if self._future is not None and not self._future.done():
            self._future.set_exception(exc)

    async def wait(self, timeout: float | None = None) -> AuthorizationResult:
        """Wait for resolution.

        Cancelling one waiter does not resolve the flow for the others.
        On timeout the flow resolves as ``cancel`` with ``error="timeout"``.

        Raises:
            FlowError: If the request was never dispatched
        """
        if self._state is FlowState.IDLE:
            raise FlowError(
                "Cannot wait on a request that was not dispatched",
                reason="not_in_flight",
            )
        if self._future is None:
            # Cancelled before it was ever dispatched
            return self._result

        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout)
        except asyncio.TimeoutError:
            if self._state is not FlowState.RESOLVED:
                logger.info(f"Authorization timed out after {timeout}s")
                self._resolve(AuthorizationResult(ResultType.CANCEL, error="timeout"))
            return self._future.result()

    def _resolve(self, result: AuthorizationResult) -> AuthorizationResult | None:
        if self._state is FlowState.RESOLVED:
            return self._result

        self._result = result
        self._state = FlowState.RESOLVED
        if self._future is not None and not self._future.done():
            self._future.set_result(result)

        logger.debug(f"Resolved {self.request!r} as {result.type.value}")
        return result

    def _correlate(self, callback_url: str) -> AuthorizationResult:
        try:
            params = self._parse_callback_url(callback_url)
        except ValueError as e:
            logger.warning(f"Malformed authorization callback: {e}")
            return AuthorizationResult.failure(
                INVALID_RESPONSE, f"Malformed callback URL: {e}", url=callback_url
            )

        # State first: nothing from a mismatched callback is trusted
        if not states_match(self.request.state, params.get("state")):
            logger.warning("State parameter mismatch - possible CSRF attack")
            return AuthorizationResult.failure(
                STATE_MISMATCH,
                "Cross-site request verification failed",
                url=callback_url,
            )

        error = params.get("error")
        if error:
            logger.warning(
                f"Authorization callback contained error: {error} - "
                f"{params.get('error_description')}"
            )
            return AuthorizationResult.failure(
                error,
                params.get("error_description"),
                error_uri=params.get("error_uri"),
                params=params,
                url=callback_url,
            )

        expected = EXPECTED_PARAMS[self.request.response_type]
        if not params.get(expected):
            logger.warning(f"Authorization callback missing {expected}")
            return AuthorizationResult.failure(
                INVALID_RESPONSE,
                f"Callback is missing {expected}",
                params=params,
                url=callback_url,
            )

        logger.info(f"Authorization callback successful - received {expected}")
        return AuthorizationResult.success(params, url=callback_url)

    def _parse_callback_url(self, callback_url: str) -> dict[str, str]:
        """Parse query and fragment parameters from a callback URL.

        Implicit grants return their parameters in the fragment, which wins
        over the query when both carry the same key.
        """
        parsed = urlparse(callback_url)
        params: dict[str, str] = {}
        for component in (parsed.query, parsed.fragment):
            for key, values in parse_qs(component).items():
                # Extract single values from query parameter lists
                params[key] = values[0]
        return params
