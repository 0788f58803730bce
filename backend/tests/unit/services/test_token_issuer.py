"""Unit tests for :class:`idp.services.tokens.issuer.TokenIssuer`."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from sqlalchemy import func, select
from werkzeug.security import check_password_hash

from idp.models.base import as_utc
from idp.models.refresh_token import RefreshToken
from idp.services._shared.errors import SigningFailed
from idp.services.identity.dto import UserView
from idp.services.tokens import refresh
from idp.services.tokens.issuer import TokenIssuer
from tests.factories.refresh_token import TEST_HASH_METHOD
from tests.factories.user import AdminFactory, UserFactory

NOW = datetime(2026, 5, 4, 10, 30, tzinfo=UTC)


@pytest.fixture()
def issuer(keys) -> TokenIssuer:
    return TokenIssuer(keys, hash_method=TEST_HASH_METHOD, clock=lambda: NOW)


def _rows_for(session, user_id) -> int:
    stmt = select(func.count()).select_from(RefreshToken).where(RefreshToken.user_id == user_id)
    return session.execute(stmt).scalar_one()


def test_issue_signs_access_token_with_expected_claims(issuer, keys, session):
    user = UserView.from_model(UserFactory(email="claims@example.com", name="Claire"))

    pair = issuer.issue(user)

    header = jwt.get_unverified_header(pair.access_token)
    assert header["alg"] == "RS256"
    assert header["kid"] == keys.kid
    claims = jwt.decode(
        pair.access_token,
        keys.public_key,
        algorithms=["RS256"],
        options={"verify_exp": False},
        issuer="auth-service",
    )
    assert claims == {
        "sub": str(user.id),
        "email": "claims@example.com",
        "name": "Claire",
        "role": "user",
        "iss": "auth-service",
        "iat": int(NOW.timestamp()),
        "exp": int((NOW + timedelta(minutes=15)).timestamp()),
    }
    assert pair.access_expires_at == NOW + timedelta(minutes=15)
    assert pair.token_type == "Bearer"
    assert pair.expires_in(NOW) == 900


def test_admin_role_is_carried_in_the_token(issuer, keys, session):
    admin = UserView.from_model(AdminFactory())

    pair = issuer.issue(admin)

    claims = jwt.decode(
        pair.access_token, keys.public_key, algorithms=["RS256"], options={"verify_exp": False}
    )
    assert claims["role"] == "admin"


def test_refresh_token_is_stored_hashed(issuer, session):
    user = UserView.from_model(UserFactory())

    pair = issuer.issue(user)

    token_id, secret = refresh.split(pair.refresh_token)
    assert token_id is not None
    row = session.get(RefreshToken, token_id)
    assert row is not None
    assert row.user_id == user.id
    assert secret not in row.token_hash
    assert pair.refresh_token not in row.token_hash
    assert check_password_hash(row.token_hash, secret)
    assert row.revoked_at is None
    assert as_utc(row.expires_at) == NOW + timedelta(days=7)
    assert pair.refresh_expires_at == NOW + timedelta(days=7)


def test_each_issue_creates_an_independent_pair(issuer, session):
    user = UserView.from_model(UserFactory())

    first = issuer.issue(user)
    second = issuer.issue(user)

    assert first.refresh_token != second.refresh_token
    assert _rows_for(session, user.id) == 2


def test_signing_failure_persists_nothing(issuer, session, monkeypatch):
    user = UserView.from_model(UserFactory())

    def _boom(*args, **kwargs):
        raise ValueError("key unusable")

    monkeypatch.setattr(jwt, "encode", _boom)

    with pytest.raises(SigningFailed):
        issuer.issue(user)
    assert _rows_for(session, user.id) == 0


def test_custom_lifetimes_and_issuer(keys, session):
    issuer = TokenIssuer(
        keys,
        issuer="other-issuer",
        access_ttl=timedelta(minutes=5),
        refresh_ttl=timedelta(hours=1),
        hash_method=TEST_HASH_METHOD,
        clock=lambda: NOW,
    )
    user = UserView.from_model(UserFactory())

    pair = issuer.issue(user)

    assert pair.access_expires_at == NOW + timedelta(minutes=5)
    assert pair.refresh_expires_at == NOW + timedelta(hours=1)
    claims = jwt.decode(
        pair.access_token, keys.public_key, algorithms=["RS256"], options={"verify_exp": False}
    )
    assert claims["iss"] == "other-issuer"
