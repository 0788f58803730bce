"""Access + refresh token issuance."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import uuid4

import jwt
from werkzeug.security import generate_password_hash

from idp.models.refresh_token import RefreshToken
from idp.services._shared.base import BaseService
from idp.services._shared.errors import SigningFailed
from idp.services.identity.dto import UserView
from idp.services.tokens import refresh
from idp.services.tokens.dto import TokenPair
from idp.services.tokens.keys import ALGORITHM, KeyMaterial
from idp.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_ISSUER = "auth-service"
DEFAULT_ACCESS_TTL = timedelta(minutes=15)
DEFAULT_REFRESH_TTL = timedelta(days=7)


class TokenIssuer(BaseService):
    """
    Mint an access token and a persisted refresh token for a user.

    The access token is signed with :class:`KeyMaterial` and never stored.
    The refresh token is returned once; only a salted adaptive hash of its
    secret is written, together with ``expires_at = now + refresh_ttl``.

    :param keys: Signing key pair.
    :param issuer: ``iss`` claim.
    :param access_ttl: Access token lifetime.
    :param refresh_ttl: Refresh token lifetime.
    :param hash_method: ``werkzeug.security`` method string (``scrypt`` by
        default; tests use a cheap PBKDF2 setting).
    """

    def __init__(
        self,
        keys: KeyMaterial,
        *,
        issuer: str = DEFAULT_ISSUER,
        access_ttl: timedelta = DEFAULT_ACCESS_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
        hash_method: str = "scrypt",
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(uow_factory=uow_factory, clock=clock)
        self.keys = keys
        self.issuer = issuer
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.hash_method = hash_method

    # ------------------------------ Access ----------------------------------

    def sign_access_token(self, user: UserView, *, now: datetime) -> tuple[str, datetime]:
        """
        Sign an RS256 access token for ``user``.

        :returns: ``(token, expires_at)``.
        :raises SigningFailed: If the signing key is unusable.
        """
        expires_at = now + self.access_ttl
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "iss": self.issuer,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        try:
            token = jwt.encode(
                claims,
                self.keys.private_key,
                algorithm=ALGORITHM,
                headers={"kid": self.keys.kid},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise SigningFailed(f"cannot sign access token: {exc}") from exc
        return token, expires_at

    # ------------------------------ Pair ------------------------------------

    def issue(self, user: UserView) -> TokenPair:
        """
        Issue a token pair in its own unit of work.

        :raises SigningFailed: Signing key unusable; nothing is persisted.
        :raises PersistenceFailed: Storage failed; no token is returned.
        """
        with self.persistence("refresh token issue"), self.rw_uow() as uow:
            return self.issue_within(uow, user)

    def issue_within(self, uow: SQLAlchemyUnitOfWork, user: UserView) -> TokenPair:
        """
        Issue a token pair inside the caller's unit of work.

        The access token is signed before anything is written so that a
        signing failure leaves storage untouched.
        """
        now = self.now()
        access_token, access_expires_at = self.sign_access_token(user, now=now)

        token_id = uuid4()
        secret = refresh.new_secret()
        record = RefreshToken(
            id=token_id,
            user_id=user.id,
            token_hash=generate_password_hash(secret, method=self.hash_method),
            created_at=now,
            expires_at=now + self.refresh_ttl,
        )
        uow.refresh_tokens.add(record)
        log.info(
            "token pair issued",
            extra={"user_id": str(user.id), "token_id": str(token_id)},
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh.compose(token_id, secret),
            user_id=user.id,
            access_expires_at=access_expires_at,
            refresh_expires_at=record.expires_at,
        )
