"""Refresh token redemption (rotate) and revocation (logout)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from uuid import UUID

from werkzeug.security import check_password_hash

from idp.models.refresh_token import RefreshToken
from idp.services._shared.base import BaseService
from idp.services._shared.errors import InvalidRefreshToken
from idp.services.identity.dto import UserView
from idp.services.tokens import refresh
from idp.services.tokens.dto import TokenPair
from idp.services.tokens.issuer import TokenIssuer
from idp.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


class TokenRotator(BaseService):
    """
    Redeem a refresh token for a new pair, or revoke it.

    Rotation runs in one transaction:

    1. find the valid record whose hash matches the presented secret;
    2. revoke it with a conditional update (``WHERE revoked_at IS NULL``);
    3. re-read the owner, who must still be active and not deleted;
    4. issue the successor pair.

    Two concurrent rotations of the same token both find the record, but
    only one sees a row count of one in step 2; the other fails with
    :class:`InvalidRefreshToken` and nothing is issued for it.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        *,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(uow_factory=uow_factory, clock=clock or issuer.now)
        self.issuer = issuer

    # ------------------------------ Lookup ----------------------------------

    def _candidates(
        self, uow: SQLAlchemyUnitOfWork, token_id: UUID | None, now: datetime
    ) -> Sequence[RefreshToken]:
        if token_id is None:
            return uow.refresh_tokens.list_valid(now=now)
        record = uow.refresh_tokens.get_valid(token_id, now=now)
        return [record] if record is not None else []

    def _match(self, uow: SQLAlchemyUnitOfWork, raw: str, now: datetime) -> RefreshToken | None:
        """Return the valid record whose stored hash matches ``raw``."""
        token_id, secret = refresh.split(raw)
        for record in self._candidates(uow, token_id, now):
            if check_password_hash(record.token_hash, secret):
                return record
        return None

    # ------------------------------ Commands --------------------------------

    def rotate(self, raw: str) -> TokenPair:
        """
        Exchange a valid refresh token for a new pair; the old one is revoked.

        :raises InvalidRefreshToken: Unknown, revoked, expired, already
            rotated, lost a concurrent race, or the owner can no longer log in.
        :raises PersistenceFailed: Storage failed; nothing changes.
        """
        if not raw:
            raise InvalidRefreshToken()

        now = self.now()
        with self.persistence("refresh token rotation"), self.rw_uow() as uow:
            record = self._match(uow, raw, now)
            if record is None:
                raise InvalidRefreshToken()

            if not uow.refresh_tokens.revoke_if_valid(record.id, now=now):
                log.warning(
                    "refresh token already revoked",
                    extra={"token_id": str(record.id), "reason": "concurrent_rotation"},
                )
                raise InvalidRefreshToken()

            user = uow.users.get_active(record.user_id)
            if user is None:
                log.info(
                    "refresh refused for inactive user",
                    extra={"user_id": str(record.user_id), "reason": "user_inactive"},
                )
                raise InvalidRefreshToken()

            return self.issuer.issue_within(uow, UserView.from_model(user))

    def revoke(self, raw: str) -> UUID | None:
        """
        Revoke the matching valid token.

        Unknown, expired or already revoked tokens are not an error.

        :returns: Owner id of the revoked token, or ``None`` when nothing
            matched.
        :raises PersistenceFailed: Storage failed.
        """
        if not raw:
            return None

        now = self.now()
        with self.persistence("refresh token revocation"), self.rw_uow() as uow:
            record = self._match(uow, raw, now)
            if record is None:
                return None
            uow.refresh_tokens.revoke_if_valid(record.id, now=now)
            log.info("refresh token revoked", extra={"token_id": str(record.id)})
            return record.user_id
