from __future__ import annotations

from typing import Protocol

from idp.services._shared.errors import ExchangeFailed, ProfileFetchFailed
from idp.services.identity.dto import ExternalIdentity


class IdentityProvider(Protocol):
    """
    Port for the external OAuth 2.0 identity provider.

    Implementations perform one outbound call per method, bounded by a
    timeout, and map every transport or protocol failure to the documented
    error kind.
    """

    def authorization_url(self, state: str) -> str:
        """Return the consent URL that carries ``state``."""

    def exchange_code(self, code: str) -> str:
        """
        Exchange an authorization code for a provider access token.

        :raises ExchangeFailed: On rejection, transport error or timeout.
        """

    def fetch_profile(self, provider_token: str) -> ExternalIdentity:
        """
        Fetch the user's profile with the provider access token.

        :raises ProfileFetchFailed: On rejection, transport error, timeout or
            a payload missing the subject or email.
        """


class StubIdentityProvider(IdentityProvider):
    """
    Deterministic provider used in unit tests.

    ``identities`` maps authorization codes to the profile they resolve to;
    unknown codes fail the exchange.
    """

    def __init__(
        self,
        identities: dict[str, ExternalIdentity] | None = None,
        *,
        fail_profile: bool = False,
    ) -> None:
        self.identities: dict[str, ExternalIdentity] = dict(identities or {})
        self.fail_profile = fail_profile
        self.exchanged: list[str] = []

    def authorization_url(self, state: str) -> str:
        return f"https://idp.test/authorize?state={state}"

    def exchange_code(self, code: str) -> str:
        if code not in self.identities:
            raise ExchangeFailed(f"unknown code {code!r}")
        self.exchanged.append(code)
        return f"provider-token:{code}"

    def fetch_profile(self, provider_token: str) -> ExternalIdentity:
        if self.fail_profile:
            raise ProfileFetchFailed("profile endpoint unavailable")
        code = provider_token.removeprefix("provider-token:")
        return self.identities[code]
