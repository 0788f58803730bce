"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside an outer transaction on an in-memory SQLite database.
Application commits only release SAVEPOINTs, so data changes never leak
between cases.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from idp.core.config import TestingConfig
from idp.core.extensions import db as _db  # Flask-SQLAlchemy instance
from idp.factory import create_app  # application factory under test
from idp.services._shared.ports import InMemoryAuditSink, StubIdentityProvider
from idp.services.identity.dto import ExternalIdentity

FRONTEND = "http://localhost:3000"


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Generates a throwaway RS256 key pair.
    - Avoids hitting external services (Google, Redis).
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ALLOWED_ORIGINS = [FRONTEND, "http://localhost:5173"]
    ADMIN_EMAILS = ["boss@example.com"]
    USE_PROXYFIX = False


def _enable_sqlite_savepoints(engine) -> None:
    """Let pysqlite emit BEGIN/SAVEPOINT itself instead of its own autocommit logic."""

    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # pragma: no cover
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _enable_sqlite_savepoints(_db.engine)
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(app, db, connection):
    """Provide a SQLAlchemy session joined to a per-test outer transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Scoped session installed as ``db.session`` for the duration of the
        test. ``commit()`` inside application code releases a SAVEPOINT; the
        outer transaction is rolled back afterwards.

    Notes
    -----
    ``expire_on_commit`` is disabled so objects built by factories stay
    readable after request teardown closes the session.
    """
    outer = connection.begin()
    factory = sessionmaker(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
        autoflush=False,
    )
    scoped = scoped_session(factory)

    original_session = db.session
    db.session = scoped
    ctx = app.app_context()
    ctx.push()
    try:
        yield scoped
    finally:
        ctx.pop()
        scoped.remove()
        db.session = original_session
        outer.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield
    SQLAlchemySession.set(None)


# -- Application service doubles ----------------------------------------------
@pytest.fixture()
def identities() -> dict[str, ExternalIdentity]:
    """Authorization codes understood by the stub provider."""
    return {
        "code-alice": ExternalIdentity(
            subject_id="google-alice",
            email="alice@example.com",
            email_verified=True,
            name="Alice",
            avatar_url="https://img.example.com/alice.png",
        ),
        "code-boss": ExternalIdentity(
            subject_id="google-boss",
            email="Boss@Example.com",
            email_verified=True,
            name="Boss",
        ),
    }


@pytest.fixture()
def provider(identities) -> StubIdentityProvider:
    return StubIdentityProvider(identities)


@pytest.fixture()
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture()
def auth_service(app, provider, audit_sink):
    """Return the wired :class:`AuthService` with stubbed provider and audit sink."""
    service = app.extensions["auth_service"]
    original = (service.exchanger.provider, service.audit_sink)
    service.exchanger.provider = provider
    service.audit_sink = audit_sink
    try:
        yield service
    finally:
        service.exchanger.provider, service.audit_sink = original


@pytest.fixture()
def client(app, auth_service):
    """Flask test client talking to the stubbed service."""
    return app.test_client()


# -- Signing keys ---------------------------------------------------------------
@pytest.fixture(scope="session")
def keys(app):
    """Key pair the application signs with."""
    return app.extensions["auth_service"].keys


@pytest.fixture(scope="session")
def foreign_keys():
    """An unrelated key pair, for signature mismatch cases."""
    from idp.services.tokens.keys import KeyMaterial

    return KeyMaterial.generate()
