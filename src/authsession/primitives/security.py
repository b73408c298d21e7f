"""Security utilities for authorization flows.

Provides cryptographically secure state and nonce generation and
constant-time state comparison.
"""

from __future__ import annotations

import secrets
import string

STATE_LENGTH = 32


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches the original authorization request.

    Returns:
        Cryptographically secure random state string (32 characters,
        roughly 190 bits of entropy)
    """
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(STATE_LENGTH))


def generate_nonce(size: int = 16) -> str:
    """Generate an OpenID Connect nonce as a hex string of ``size`` random bytes."""
    return secrets.token_hex(size)


def states_match(expected: str, actual: str | None) -> bool:
    """Compare state parameters exactly, case-sensitively, in constant time."""
    if actual is None:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))
