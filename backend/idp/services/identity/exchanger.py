"""OAuth login legs: state binding and authorization code exchange."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Sequence
from datetime import timedelta

from idp.services._shared.errors import InvalidRedirect, InvalidState
from idp.services._shared.ports.identity_provider import IdentityProvider
from idp.services._shared.ports.state_store import OAuthStateStore
from idp.services.identity.dto import ExternalIdentity, LoginStart

log = logging.getLogger(__name__)

DEFAULT_STATE_TTL = timedelta(minutes=10)


def _new_state() -> str:
    return secrets.token_urlsafe(24)


class IdentityExchanger:
    """
    Drive the authorization-code flow against an :class:`IdentityProvider`.

    ``begin`` binds a fresh random ``state`` to the post-login redirect
    target; ``exchange`` consumes it exactly once before talking to the
    provider, so a replayed or forged callback never reaches the network.

    :param provider: Identity provider adapter.
    :param state_store: Single-use state storage.
    :param allowed_origins: Frontend origins accepted as redirect targets
        (exact match, or a path below ``origin + "/"``).
    :param state_ttl: State lifetime.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        state_store: OAuthStateStore,
        *,
        allowed_origins: Sequence[str],
        state_ttl: timedelta = DEFAULT_STATE_TTL,
        state_factory: Callable[[], str] = _new_state,
    ) -> None:
        self.provider = provider
        self.state_store = state_store
        self.allowed_origins = [o.rstrip("/") for o in allowed_origins if o]
        self.state_ttl = state_ttl
        self._state_factory = state_factory

    def is_allowed_redirect(self, target: str) -> bool:
        return any(
            target == origin or target.startswith(origin + "/") for origin in self.allowed_origins
        )

    def resolve_redirect(self, target: str | None) -> str:
        """
        Validate a redirect target, defaulting to the first allowed origin.

        :raises InvalidRedirect: If ``target`` is not under an allowed origin.
        """
        if not target:
            if not self.allowed_origins:
                raise InvalidRedirect("no allowed origins configured")
            return self.allowed_origins[0]
        if not self.is_allowed_redirect(target):
            raise InvalidRedirect()
        return target

    def begin(self, redirect_target: str | None) -> LoginStart:
        """
        Start a login.

        :raises InvalidRedirect: If the redirect target is not allowed.
        """
        target = self.resolve_redirect(redirect_target)
        state = self._state_factory()
        self.state_store.put(state, target, self.state_ttl)
        return LoginStart(
            authorization_url=self.provider.authorization_url(state),
            state=state,
            redirect_target=target,
        )

    def exchange(self, code: str, state: str, redirect_target: str) -> ExternalIdentity:
        """
        Finish a login: consume ``state``, exchange ``code``, fetch the profile.

        :raises InvalidState: Unknown, expired or already used state, or a
            state bound to a different redirect target.
        :raises ExchangeFailed: Code exchange failed or timed out.
        :raises ProfileFetchFailed: Profile fetch failed or timed out.
        """
        if not state:
            raise InvalidState()
        bound_target = self.state_store.consume(state)
        if bound_target is None:
            log.warning("oauth state rejected", extra={"reason": "unknown_or_used"})
            raise InvalidState()
        if bound_target != redirect_target:
            log.warning("oauth state rejected", extra={"reason": "redirect_mismatch"})
            raise InvalidState("state is bound to a different redirect target")

        provider_token = self.provider.exchange_code(code)
        return self.provider.fetch_profile(provider_token)
