"""End-to-end behaviour of :class:`idp.services.auth.service.AuthService`."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from idp.models.refresh_token import RefreshToken
from idp.models.user import User
from idp.services._shared.ports import AuditAction
from idp.services._shared.errors import (
    ExchangeFailed,
    InvalidRefreshToken,
    InvalidState,
    PersistenceFailed,
    UserInactive,
)
from idp.services.auth.dto import ClientInfo
from tests.factories.user import UserFactory

CLIENT = ClientInfo(ip_address="203.0.113.7", user_agent="pytest/1.0")


def _login(service, code: str = "code-alice", redirect: str | None = None):
    start = service.begin_login(redirect)
    return service.complete_login(code, start.state, start.redirect_target, CLIENT)


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def test_login_issues_a_verifiable_pair(auth_service, audit_sink, session):
    pair = _login(auth_service)

    claims = auth_service.validate(pair.access_token)
    assert claims.email == "alice@example.com"
    assert claims.role == "user"
    assert claims.user_id == pair.user_id

    assert audit_sink.actions() == [AuditAction.LOGIN]
    event = audit_sink.events[0]
    assert event.user_id == pair.user_id
    assert event.ip_address == "203.0.113.7"
    assert event.user_agent == "pytest/1.0"


def test_admin_allow_list_applies_on_first_login(auth_service, session):
    pair = _login(auth_service, "code-boss")
    assert auth_service.validate(pair.access_token).is_admin is True


def test_repeat_login_reuses_the_user(auth_service, session):
    first = _login(auth_service)
    second = _login(auth_service)

    assert first.user_id == second.user_id
    assert _count(session, User) == 1
    assert _count(session, RefreshToken) == 2


def test_refresh_rotates_and_audits(auth_service, audit_sink, session):
    pair = _login(auth_service)

    rotated = auth_service.refresh(pair.refresh_token, CLIENT)

    assert rotated.user_id == pair.user_id
    assert audit_sink.actions() == [AuditAction.LOGIN, AuditAction.TOKEN_REFRESH]
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(pair.refresh_token, CLIENT)
    # failed refreshes are not audited
    assert audit_sink.actions()[-1] is AuditAction.TOKEN_REFRESH


def test_logout_revokes_and_audits(auth_service, audit_sink, session):
    pair = _login(auth_service)

    auth_service.logout(pair.refresh_token, CLIENT)

    assert audit_sink.events[-1].action is AuditAction.LOGOUT
    assert audit_sink.events[-1].user_id == pair.user_id
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(pair.refresh_token, CLIENT)


@pytest.mark.parametrize("raw", [None, "", "unknown-token"])
def test_logout_without_a_match_still_succeeds(auth_service, audit_sink, session, raw):
    auth_service.logout(raw, CLIENT)

    assert audit_sink.actions() == [AuditAction.LOGOUT]
    assert audit_sink.events[0].user_id is None


def test_deactivated_user_cannot_log_in_but_keeps_access_token(auth_service, audit_sink, session):
    pair = _login(auth_service)
    auth_service.directory.deactivate(pair.user_id)

    with pytest.raises(UserInactive):
        _login(auth_service)
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(pair.refresh_token, CLIENT)

    # Access tokens stay valid until they expire
    assert auth_service.validate(pair.access_token).user_id == pair.user_id
    assert audit_sink.actions() == [AuditAction.LOGIN]


def test_inactive_user_gets_nothing_issued(auth_service, session):
    UserFactory(external_subject_id="google-alice", email="alice@example.com", is_active=False)

    with pytest.raises(UserInactive):
        _login(auth_service)
    assert _count(session, RefreshToken) == 0


def test_failed_exchange_creates_no_user(auth_service, audit_sink, session):
    with pytest.raises(ExchangeFailed):
        _login(auth_service, "unknown-code")

    assert _count(session, User) == 0
    assert audit_sink.events == []


def test_replayed_state_is_rejected(auth_service, session):
    start = auth_service.begin_login(None)
    auth_service.complete_login("code-alice", start.state, start.redirect_target, CLIENT)

    with pytest.raises(InvalidState):
        auth_service.complete_login("code-alice", start.state, start.redirect_target, CLIENT)


def test_public_key_material(auth_service, keys):
    assert auth_service.public_signing_key() == keys.public_pem()
    assert auth_service.jwks()["keys"][0]["kid"] == keys.kid


class _BrokenAuditSink:
    def __init__(self) -> None:
        self.calls = 0

    def record(self, event) -> None:
        self.calls += 1
        raise PersistenceFailed("audit log write failed")


def test_audit_failure_does_not_lose_the_rotated_pair(auth_service, session):
    pair = _login(auth_service)
    auth_service.audit_sink = _BrokenAuditSink()

    rotated = auth_service.refresh(pair.refresh_token, CLIENT)

    assert auth_service.audit_sink.calls == 1
    assert auth_service.validate(rotated.access_token).user_id == pair.user_id
    # the successor is usable, the original is spent
    assert auth_service.refresh(rotated.refresh_token, CLIENT).user_id == pair.user_id
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(pair.refresh_token, CLIENT)


def test_audit_failure_does_not_block_login_or_logout(auth_service, session):
    auth_service.audit_sink = _BrokenAuditSink()

    pair = _login(auth_service)
    auth_service.logout(pair.refresh_token, CLIENT)

    assert auth_service.audit_sink.calls == 2
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(pair.refresh_token, CLIENT)
