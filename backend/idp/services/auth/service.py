"""Authentication facade composing the token lifecycle components."""

from __future__ import annotations

import logging
from typing import Any

from idp.services._shared.errors import PersistenceFailed
from idp.services._shared.ports.audit_sink import AuditAction, AuditEvent, AuditSink
from idp.services.auth.dto import ClientInfo
from idp.services.identity.directory import UserDirectory
from idp.services.identity.dto import LoginStart
from idp.services.identity.exchanger import IdentityExchanger
from idp.services.tokens.dto import AccessTokenClaims, TokenPair
from idp.services.tokens.issuer import TokenIssuer
from idp.services.tokens.keys import KeyMaterial
from idp.services.tokens.rotator import TokenRotator
from idp.services.tokens.validator import AccessValidator

log = logging.getLogger(__name__)


class AuthService:
    """
    Entry point used by the HTTP layer.

    Control flow:

    - login: exchanger → directory → issuer, then a ``LOGIN`` audit event;
    - refresh: rotator (→ issuer), then ``TOKEN_REFRESH``;
    - logout: rotator revoke, then ``LOGOUT``;
    - validate: validator only, no I/O.

    Audit events are recorded after the state change has committed; a sink
    that raises :class:`PersistenceFailed` is logged and the operation still
    returns its result.
    """

    def __init__(
        self,
        *,
        keys: KeyMaterial,
        exchanger: IdentityExchanger,
        directory: UserDirectory,
        issuer: TokenIssuer,
        rotator: TokenRotator,
        validator: AccessValidator,
        audit_sink: AuditSink,
    ) -> None:
        self.keys = keys
        self.exchanger = exchanger
        self.directory = directory
        self.issuer = issuer
        self.rotator = rotator
        self.validator = validator
        self.audit_sink = audit_sink

    # ------------------------------ Login -----------------------------------

    def begin_login(self, redirect_target: str | None) -> LoginStart:
        """
        :raises InvalidRedirect: Redirect target not on the allow-list.
        """
        return self.exchanger.begin(redirect_target)

    def complete_login(
        self,
        code: str,
        state: str,
        redirect_target: str,
        client: ClientInfo,
    ) -> TokenPair:
        """
        Finish the OAuth flow and issue a token pair.

        :raises InvalidState: State unknown, reused or bound elsewhere.
        :raises ExchangeFailed: Provider rejected the code or timed out.
        :raises ProfileFetchFailed: Profile fetch failed or timed out.
        :raises UserInactive: The account may not log in; nothing is issued.
        :raises SigningFailed: Signing key unusable.
        :raises PersistenceFailed: Storage failed.
        """
        identity = self.exchanger.exchange(code, state, redirect_target)
        user = self.directory.reconcile(identity)
        pair = self.issuer.issue(user)
        self._audit(AuditAction.LOGIN, user.id, client)
        log.info("login completed", extra={"user_id": str(user.id), "action": "login"})
        return pair

    # ------------------------------ Tokens ----------------------------------

    def refresh(self, raw: str, client: ClientInfo) -> TokenPair:
        """
        :raises InvalidRefreshToken: Token unusable for any reason.
        :raises PersistenceFailed: Storage failed.
        """
        pair = self.rotator.rotate(raw)
        self._audit(AuditAction.TOKEN_REFRESH, pair.user_id, client)
        return pair

    def logout(self, raw: str | None, client: ClientInfo) -> None:
        """Revoke the refresh token if it is still valid. Never fails on unknown tokens."""
        user_id = self.rotator.revoke(raw) if raw else None
        self._audit(AuditAction.LOGOUT, user_id, client)

    def validate(self, token: str) -> AccessTokenClaims:
        """
        :raises InvalidToken: Also raised as :class:`Expired` or
            :class:`MalformedToken`.
        """
        return self.validator.validate(token)

    def public_signing_key(self) -> str:
        """PEM-encoded public key for offline verification."""
        return self.keys.public_pem()

    def jwks(self) -> dict[str, Any]:
        return self.keys.jwks()

    # ------------------------------ Audit -----------------------------------

    def _audit(self, action: AuditAction, user_id, client: ClientInfo) -> None:
        event = AuditEvent(
            user_id=user_id,
            action=action,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            occurred_at=self.issuer.now(),
        )
        try:
            self.audit_sink.record(event)
        except PersistenceFailed:
            log.warning(
                "audit event dropped",
                extra={
                    "user_id": str(user_id) if user_id else None,
                    "action": action.value,
                    "reason": "audit_write_failed",
                },
                exc_info=True,
            )
