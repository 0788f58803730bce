"""Unit tests for :class:`idp.services.tokens.rotator.TokenRotator`."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from idp.models.refresh_token import RefreshToken
from idp.services._shared.errors import InvalidRefreshToken
from idp.services.identity.dto import UserView
from idp.services.tokens import refresh
from idp.services.tokens.issuer import TokenIssuer
from idp.services.tokens.rotator import TokenRotator
from tests.factories.refresh_token import TEST_HASH_METHOD, RefreshTokenFactory
from tests.factories.user import UserFactory
from tests.helpers.utils import revoked_at


@pytest.fixture()
def issuer(keys) -> TokenIssuer:
    return TokenIssuer(keys, hash_method=TEST_HASH_METHOD)


@pytest.fixture()
def rotator(issuer) -> TokenRotator:
    return TokenRotator(issuer)


def _valid_count(session, user_id) -> int:
    stmt = (
        select(func.count())
        .select_from(RefreshToken)
        .where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None),
        )
    )
    return session.execute(stmt).scalar_one()


def test_rotate_revokes_old_and_issues_successor(issuer, rotator, session):
    user = UserView.from_model(UserFactory())
    first = issuer.issue(user)
    old_id, _ = refresh.split(first.refresh_token)

    second = rotator.rotate(first.refresh_token)

    assert second.user_id == user.id
    assert second.refresh_token != first.refresh_token
    assert revoked_at(session, old_id) is not None
    new_id, _ = refresh.split(second.refresh_token)
    assert revoked_at(session, new_id) is None
    assert _valid_count(session, user.id) == 1


def test_rotated_token_cannot_be_redeemed_again(issuer, rotator, session):
    user = UserView.from_model(UserFactory())
    first = issuer.issue(user)
    second = rotator.rotate(first.refresh_token)

    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(first.refresh_token)

    # The successor is untouched by the failed replay
    third = rotator.rotate(second.refresh_token)
    assert third.user_id == user.id


def test_concurrent_rotation_has_a_single_winner(issuer, rotator, session, monkeypatch):
    user = UserView.from_model(UserFactory())
    pair = issuer.issue(user)
    token_id, _ = refresh.split(pair.refresh_token)
    stale = session.get(RefreshToken, token_id)

    rotator.rotate(pair.refresh_token)

    # The loser matched the same row before the winner revoked it
    monkeypatch.setattr(rotator, "_candidates", lambda uow, token_id, now: [stale])
    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(pair.refresh_token)

    assert _valid_count(session, user.id) == 1


def test_expired_token_is_rejected(rotator, session):
    now = datetime.now(UTC)
    token = RefreshTokenFactory(
        secret="expired-secret",
        created_at=now - timedelta(days=8),
        expires_at=now - timedelta(seconds=1),
    )

    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(refresh.compose(token.id, "expired-secret"))


def test_revoked_token_is_rejected(rotator, session):
    token = RefreshTokenFactory(secret="revoked-secret", revoked_at=datetime.now(UTC))

    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(refresh.compose(token.id, "revoked-secret"))


def test_wrong_secret_for_known_id_is_rejected(rotator, session):
    token = RefreshTokenFactory(secret="right-secret")

    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(refresh.compose(token.id, "wrong-secret"))
    assert revoked_at(session, token.id) is None


@pytest.mark.parametrize("raw", ["", "garbage", "a" * 32 + ".nope"])
def test_unknown_values_are_rejected(rotator, session, raw):
    RefreshTokenFactory()

    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(raw)


def test_token_without_id_prefix_is_matched_by_scanning(rotator, session):
    RefreshTokenFactory(secret="decoy-secret")
    token = RefreshTokenFactory(secret="legacy-secret")

    pair = rotator.rotate("legacy-secret")

    assert pair.user_id == token.user_id
    assert revoked_at(session, token.id) is not None


@pytest.mark.parametrize("state", [{"is_active": False}, {"deleted_at": datetime.now(UTC)}])
def test_inactive_owner_cannot_refresh_and_nothing_changes(rotator, session, state):
    owner = UserFactory(**state)
    token = RefreshTokenFactory(user=owner, secret="owner-secret")

    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(refresh.compose(token.id, "owner-secret"))

    assert revoked_at(session, token.id) is None
    assert _valid_count(session, owner.id) == 1


def test_revoke_returns_owner_once(issuer, rotator, session):
    user = UserView.from_model(UserFactory())
    pair = issuer.issue(user)

    assert rotator.revoke(pair.refresh_token) == user.id
    assert rotator.revoke(pair.refresh_token) is None
    with pytest.raises(InvalidRefreshToken):
        rotator.rotate(pair.refresh_token)


def test_revoke_of_unknown_token_is_not_an_error(rotator, session):
    assert rotator.revoke("never-issued") is None
    assert rotator.revoke("") is None
