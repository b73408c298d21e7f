"""Provider profiles: per-provider configuration as plain values.

A profile never subclasses the request. It carries the provider's
defaults (minimum scopes, parameter names, window size) and a pure
transform that applies them to a caller's configuration.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from authsession.models.discovery import DiscoveryDocument
from authsession.models.flow import AuthorizationRequestConfig, Prompt


def apply_required_scopes(
    scopes: Iterable[str], minimum_scopes: Iterable[str]
) -> tuple[str, ...]:
    """Combined caller + required scopes (deduplicated, order-preserving)."""
    return tuple(dict.fromkeys([*scopes, *minimum_scopes]))


@dataclass(frozen=True)
class ProviderProfile:
    """Provider defaults applied to every request built for that provider.

    Subclass-free: two providers differ only in the values held here.
    """

    name: str
    discovery: DiscoveryDocument | None = None
    minimum_scopes: tuple[str, ...] = ()
    language_param: str = "ui_locales"
    login_hint_param: str = "login_hint"
    window_hints: Mapping[str, int] = field(default_factory=dict)

    def transform(self, config: AuthorizationRequestConfig) -> AuthorizationRequestConfig:
        """Apply this provider's defaults to a caller configuration.

        Minimum scopes are merged in, and the convenience fields are moved
        into ``extra_params``. Values the caller put in ``extra_params``
        directly always win over the convenience fields.
        """
        extra_params: dict[str, str] = {}
        if config.language:
            extra_params[self.language_param] = config.language
        if config.login_hint:
            extra_params[self.login_hint_param] = config.login_hint
        if config.prompt:
            extra_params["prompt"] = Prompt(config.prompt).value
        elif config.select_account:
            extra_params["prompt"] = Prompt.SELECT_ACCOUNT.value
        extra_params.update(config.extra_params)

        return replace(
            config,
            scopes=apply_required_scopes(config.scopes, self.minimum_scopes),
            extra_params=extra_params,
            prompt=None,
            language=None,
            login_hint=None,
            select_account=False,
        )


GENERIC = ProviderProfile(name="generic")
