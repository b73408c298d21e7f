"""PKCE (Proof Key for Code Exchange) generation for authorization code flows.

Implements RFC 7636 parameter generation to prevent authorization code
interception attacks.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import string

from authsession.models.errors import PKCEError
from authsession.models.security import CodeChallengeMethod, PKCEParameters

logger = logging.getLogger(__name__)

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


class PKCEManager:
    """Generates PKCE parameters for authorization code flows.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url) unless ``plain``
      is asked for explicitly
    - Generates cryptographically secure code verifiers
    """

    def generate_parameters(
        self,
        method: CodeChallengeMethod = CodeChallengeMethod.S256,
        length: int = MAX_VERIFIER_LENGTH,
    ) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Args:
            method: Code challenge method; ``plain`` sends the verifier itself
            length: Code verifier length, 43-128 characters

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            PKCEError: If parameter generation fails
        """
        if not (MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH):
            raise PKCEError(
                f"code_verifier length must be {MIN_VERIFIER_LENGTH}-"
                f"{MAX_VERIFIER_LENGTH}, got {length}"
            )

        method = CodeChallengeMethod(method)
        if method is CodeChallengeMethod.PLAIN:
            logger.warning(
                "Using the plain PKCE method; the challenge equals the verifier"
            )

        try:
            code_verifier = self._generate_code_verifier(length)
            if method is CodeChallengeMethod.S256:
                code_challenge = self._generate_code_challenge(code_verifier)
            else:
                code_challenge = code_verifier

            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                code_challenge_method=method,
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    def _generate_code_verifier(self, length: int) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: code verifier must be 43-128 characters long
        and use only unreserved characters:
            [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"
        """
        alphabet = string.ascii_letters + string.digits + "-._~"
        return "".join(secrets.choice(alphabet) for _ in range(length))

    def _generate_code_challenge(self, code_verifier: str) -> str:
        """Generate code challenge from code verifier using S256 method.

        RFC 7636 Section 4.2: For S256, the code challenge is:
        BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
        """
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()

        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
