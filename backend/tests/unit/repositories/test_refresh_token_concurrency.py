"""Two real transactions racing to revoke the same refresh token.

Runs against a file-backed SQLite database with one connection per thread;
``BEGIN IMMEDIATE`` serializes the writers the way a row lock would.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool
from werkzeug.security import generate_password_hash

from idp.core.extensions import db
from idp.models.refresh_token import RefreshToken
from idp.models.user import User, UserRole
from idp.repositories.refresh_token import RefreshTokenRepository
from tests.factories.refresh_token import TEST_HASH_METHOD


@pytest.fixture()
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 10},
    )

    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    db.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


def _seed_token(engine) -> RefreshToken:
    now = datetime.now(UTC)
    with Session(engine, expire_on_commit=False) as s, s.begin():
        user = User(
            email="race@example.com",
            external_subject_id="google-race",
            name="Race",
            role=UserRole.USER,
            is_active=True,
        )
        s.add(user)
        s.flush()
        token = RefreshToken(
            id=uuid4(),
            user_id=user.id,
            token_hash=generate_password_hash("secret", method=TEST_HASH_METHOD),
            created_at=now,
            expires_at=now + timedelta(days=7),
        )
        s.add(token)
    return token


def test_only_one_transaction_wins_the_revocation(file_engine):
    token = _seed_token(file_engine)
    barrier = threading.Barrier(2)
    results: list[bool] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def contender():
        try:
            barrier.wait()
            with Session(file_engine) as s, s.begin():
                won = RefreshTokenRepository(session=s).revoke_if_valid(
                    token.id, now=datetime.now(UTC)
                )
            with lock:
                results.append(won)
        except BaseException as exc:  # surfaced by the assertion below
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=contender) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert sorted(results) == [False, True]
    with Session(file_engine) as s:
        revoked = s.execute(
            select(RefreshToken.revoked_at).where(RefreshToken.id == token.id)
        ).scalar_one()
    assert revoked is not None
