"""Offline access token validation."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from idp.services._shared.errors import Expired, InvalidToken, MalformedToken
from idp.services.tokens.dto import AccessTokenClaims
from idp.services.tokens.keys import ALGORITHM, KeyMaterial

REQUIRED_CLAIMS = ("sub", "email", "name", "role", "iss", "iat", "exp")
ROLES = frozenset({"user", "admin"})


class AccessValidator:
    """
    Verify access tokens with the public key only.

    Pure: no storage or network access, so any process holding the public
    key reaches the same verdict. A token stays valid until ``exp`` even if
    its user is deactivated afterwards.

    :param keys: Key pair whose public half verifies signatures.
    :param issuer: Required ``iss`` value.
    :param leeway: Clock skew tolerance (zero by default).
    """

    def __init__(
        self,
        keys: KeyMaterial,
        *,
        issuer: str,
        leeway: timedelta = timedelta(0),
    ) -> None:
        self.keys = keys
        self.issuer = issuer
        self.leeway = leeway

    def validate(self, token: str) -> AccessTokenClaims:
        """
        Verify ``token`` and return its claims.

        :raises MalformedToken: Not a JWT, or a required claim is missing or
            has the wrong type.
        :raises Expired: Signature valid but ``exp`` has passed.
        :raises InvalidToken: Bad signature, wrong issuer or algorithm.
        """
        if not isinstance(token, str) or token.count(".") != 2:
            raise MalformedToken()

        try:
            header = jwt.get_unverified_header(token)
        except jwt.DecodeError as exc:
            raise MalformedToken() from exc
        if header.get("alg") != ALGORITHM:
            raise InvalidToken("unexpected signing algorithm")

        try:
            payload = jwt.decode(
                token,
                self.keys.public_key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": list(REQUIRED_CLAIMS)},
            )
        except jwt.ExpiredSignatureError as exc:
            raise Expired() from exc
        except jwt.MissingRequiredClaimError as exc:
            raise MalformedToken(f"missing claim: {exc.claim}") from exc
        except jwt.InvalidSignatureError as exc:
            raise InvalidToken("signature verification failed") from exc
        except jwt.InvalidIssuerError as exc:
            raise InvalidToken("unexpected issuer") from exc
        except jwt.DecodeError as exc:
            raise MalformedToken() from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        return self._claims(payload)

    @staticmethod
    def _claims(payload: dict) -> AccessTokenClaims:
        sub = payload["sub"]
        email = payload["email"]
        name = payload["name"]
        role = payload["role"]
        if not all(isinstance(v, str) for v in (sub, email, name, role)):
            raise MalformedToken("claim has the wrong type")
        if role not in ROLES:
            raise MalformedToken("unknown role")
        try:
            UUID(sub)
        except ValueError as exc:
            raise MalformedToken("subject is not a user id") from exc
        return AccessTokenClaims(
            sub=sub,
            email=email,
            name=name,
            role=role,
            iss=payload["iss"],
            iat=datetime.fromtimestamp(payload["iat"], UTC),
            exp=datetime.fromtimestamp(payload["exp"], UTC),
        )
