# comments in English; reST docstrings strict
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Credentials handed to the client after login or refresh.

    :param access_token: RS256-signed JWT.
    :type access_token: str
    :param refresh_token: Opaque ``<record-id>.<secret>`` value. Shown once;
        only its hash is stored.
    :type refresh_token: str
    :param user_id: Owner of both tokens.
    :type user_id: uuid.UUID
    :param access_expires_at: ``exp`` of the access token.
    :type access_expires_at: datetime
    :param refresh_expires_at: Expiry of the refresh token record.
    :type refresh_expires_at: datetime
    :param token_type: Always ``"Bearer"``.
    :type token_type: str
    """

    access_token: str
    refresh_token: str
    user_id: UUID
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "Bearer"

    def expires_in(self, now: datetime) -> int:
        """Seconds until the access token expires, never negative."""
        return max(0, int((self.access_expires_at - now).total_seconds()))


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """
    Verified content of an access token.

    :param sub: User id as a string.
    :param email: User email at issuance.
    :param name: Display name at issuance.
    :param role: ``"user"`` or ``"admin"``.
    :param iss: Issuer.
    :param iat: Issued-at (UTC).
    :param exp: Expiry (UTC).
    """

    sub: str
    email: str
    name: str
    role: str
    iss: str
    iat: datetime
    exp: datetime

    @property
    def user_id(self) -> UUID:
        return UUID(self.sub)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
