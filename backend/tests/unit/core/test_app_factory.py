"""Application factory wiring and startup checks."""

from __future__ import annotations

import pytest

from idp.core.config import TestingConfig
from idp.factory import create_app
from idp.infra.audit.logging_sink import LoggingAuditSink
from idp.infra.audit.sqlalchemy_sink import SQLAlchemyAuditSink
from idp.services._shared.errors import SigningFailed
from idp.services._shared.ports import InMemoryOAuthStateStore


def _config(**overrides) -> type:
    return type("FactoryTestConfig", (TestingConfig,), overrides)


def test_default_wiring(app):
    service = app.extensions["auth_service"]

    assert isinstance(service.exchanger.state_store, InMemoryOAuthStateStore)
    assert service.issuer.hash_method == "pbkdf2:sha256:1000"
    assert service.issuer.access_ttl.total_seconds() == 900
    assert service.validator.issuer == service.issuer.issuer == "auth-service"
    assert service.rotator.issuer is service.issuer
    assert service.issuer.keys is service.validator.keys is service.keys


def test_default_audit_sink_is_the_sql_table():
    app = create_app(_config())
    assert isinstance(app.extensions["auth_service"].audit_sink, SQLAlchemyAuditSink)


def test_log_audit_backend():
    app = create_app(_config(AUDIT_BACKEND="log"))
    assert isinstance(app.extensions["auth_service"].audit_sink, LoggingAuditSink)


def test_unknown_audit_backend_blocks_startup():
    with pytest.raises(RuntimeError, match="AUDIT_BACKEND"):
        create_app(_config(AUDIT_BACKEND="kafka"))


def test_signing_keys_are_loaded_from_files(tmp_path, keys):
    private_path = tmp_path / "private_key.pem"
    private_path.write_bytes(keys.private_pem())

    app = create_app(
        _config(JWT_EPHEMERAL_KEYS=False, JWT_PRIVATE_KEY_PATH=str(private_path))
    )

    assert app.extensions["auth_service"].keys.kid == keys.kid


def test_unreadable_key_blocks_startup(tmp_path):
    with pytest.raises(SigningFailed):
        create_app(
            _config(JWT_EPHEMERAL_KEYS=False, JWT_PRIVATE_KEY_PATH=str(tmp_path / "none.pem"))
        )


def test_missing_oauth_credentials_block_startup():
    with pytest.raises(RuntimeError, match="GOOGLE_CLIENT_ID"):
        create_app(_config(TESTING=False, GOOGLE_CLIENT_ID=""))


def test_missing_origins_block_startup():
    with pytest.raises(RuntimeError, match="ALLOWED_ORIGINS"):
        create_app(_config(TESTING=False, ALLOWED_ORIGINS=[]))


def test_shared_state_store_is_required_when_configured():
    with pytest.raises(RuntimeError, match="REDIS_URL"):
        create_app(_config(TESTING=False, REQUIRE_REDIS=True, REDIS_URL=None))


def test_production_requires_redis_by_default():
    from idp.core.config import ProductionConfig

    assert ProductionConfig.REQUIRE_REDIS is True
