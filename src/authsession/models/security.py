"""Security-related models for OAuth 2.0 authorization flows.

Contains PKCE parameters and the code challenge methods they may use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CodeChallengeMethod(str, Enum):
    """PKCE code challenge methods (RFC 7636 Section 4.2)."""

    S256 = "S256"
    PLAIN = "plain"


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters (RFC 7636).

    Generated once per authorization request and held only in memory.
    The verifier is kept out of ``repr`` so it never reaches logs.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: CodeChallengeMethod = field(
        default=CodeChallengeMethod.S256
    )

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
