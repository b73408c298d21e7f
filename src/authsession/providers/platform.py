"""Redirect URI and client id selection policies.

Both are decided once from explicit inputs (the platform and whether the
redirect goes through an indirection proxy) and then passed to the flow as
plain values. Nothing here inspects the running environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from authsession.models.errors import ConfigError


class Platform(str, Enum):
    WEB = "web"
    IOS = "ios"
    ANDROID = "android"


@dataclass(frozen=True)
class ClientIds:
    """Client identifiers registered for each platform."""

    web: str | None = None
    ios: str | None = None
    android: str | None = None
    proxy: str | None = None  # Used when redirecting through a proxy


def select_client_id(
    client_ids: ClientIds,
    platform: Platform,
    *,
    use_proxy: bool = False,
    fallback: str | None = None,
) -> str:
    """Pick the client id that applies to ``platform``.

    Raises:
        ConfigError: If neither the platform's id nor ``fallback`` is set
    """
    property_name = "proxy" if use_proxy else Platform(platform).value
    client_id = getattr(client_ids, property_name) or fallback
    if not client_id:
        raise ConfigError(
            f"Client id property `{property_name}` must be defined to "
            f"authenticate on this platform"
        )
    return client_id


@dataclass(frozen=True)
class RedirectUriOptions:
    """Inputs for deriving a redirect URI.

    Precedence: proxy (when ``use_proxy``), then ``native``, then a custom
    ``scheme``, then a loopback ``host``.
    """

    native: str | None = None
    use_proxy: bool = False
    proxy_base: str | None = None
    scheme: str | None = None
    host: str | None = None
    port: int | None = None
    path: str | None = None


def make_redirect_uri(options: RedirectUriOptions) -> str:
    """Derive the redirect URI the authorization request will carry.

    Raises:
        ConfigError: If the options do not describe any redirect target
    """
    path = (options.path or "").lstrip("/")

    if options.use_proxy:
        if not options.proxy_base:
            raise ConfigError("use_proxy requires proxy_base")
        base = options.proxy_base.rstrip("/")
        return f"{base}/{path}" if path else base

    if options.native:
        return options.native

    if options.scheme:
        return f"{options.scheme}://{path}"

    if options.host:
        netloc = f"{options.host}:{options.port}" if options.port else options.host
        return f"http://{netloc}/{path}"

    raise ConfigError("Cannot derive a redirect URI from the given options")
