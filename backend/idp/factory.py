"""Application factory wiring Flask extensions, services and blueprints."""

from __future__ import annotations

import logging

from flask import Flask

from idp.core.config import BaseConfig, get_config
from idp.core.logger import configure_logging, init_app as init_logging
from idp.services._shared.errors import SigningFailed
from idp.services.tokens.keys import KeyMaterial

log = logging.getLogger(__name__)


def load_key_material(app: Flask) -> KeyMaterial:
    """Load (or, when configured, generate) the signing key pair.

    :raises SigningFailed: When key files are missing, unreadable or do not
        form a working RS256 pair. Startup must abort in that case.
    """
    if app.config.get("JWT_EPHEMERAL_KEYS"):
        log.warning("using an ephemeral signing key; tokens will not survive a restart")
        material = KeyMaterial.generate()
    else:
        material = KeyMaterial.from_pem_files(
            app.config["JWT_PRIVATE_KEY_PATH"],
            app.config.get("JWT_PUBLIC_KEY_PATH"),
        )
    material.self_check()
    return material


def _check_startup_config(app: Flask) -> None:
    if app.config.get("TESTING"):
        return
    missing = [k for k in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET") if not app.config.get(k)]
    if missing:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")
    if not app.config.get("ALLOWED_ORIGINS"):
        raise RuntimeError("ALLOWED_ORIGINS must list at least one origin")
    if app.config.get("REQUIRE_REDIS") and not app.config.get("REDIS_URL"):
        raise RuntimeError("REDIS_URL is required to share OAuth state between workers")


def init_services(app: Flask, keys: KeyMaterial) -> None:
    """Build the token lifecycle components and expose the auth facade.

    Adapters are chosen from configuration: Redis for OAuth state when
    ``REDIS_URL`` is set (in-memory otherwise), and the audit sink named by
    ``AUDIT_BACKEND``.
    """
    from idp.core import extensions
    from idp.infra.audit.logging_sink import LoggingAuditSink
    from idp.infra.audit.sqlalchemy_sink import SQLAlchemyAuditSink
    from idp.infra.oauth.google_provider import GoogleIdentityProvider
    from idp.infra.redis.redis_state_store import RedisOAuthStateStore
    from idp.services._shared.ports.state_store import InMemoryOAuthStateStore
    from idp.services.auth.service import AuthService
    from idp.services.identity.directory import UserDirectory
    from idp.services.identity.exchanger import IdentityExchanger
    from idp.services.tokens.issuer import TokenIssuer
    from idp.services.tokens.rotator import TokenRotator
    from idp.services.tokens.validator import AccessValidator

    cfg = app.config

    if extensions.redis_client is not None:
        state_store = RedisOAuthStateStore(extensions.redis_client)
    else:
        state_store = InMemoryOAuthStateStore()

    provider = cfg.get("IDENTITY_PROVIDER") or GoogleIdentityProvider(
        client_id=cfg["GOOGLE_CLIENT_ID"],
        client_secret=cfg["GOOGLE_CLIENT_SECRET"],
        redirect_url=cfg["GOOGLE_REDIRECT_URL"],
        timeout=tuple(cfg["OAUTH_HTTP_TIMEOUT"]),
    )

    issuer = TokenIssuer(
        keys,
        issuer=cfg["JWT_ISSUER"],
        access_ttl=cfg["JWT_ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=cfg["JWT_REFRESH_TOKEN_EXPIRES"],
        hash_method=cfg.get("REFRESH_TOKEN_HASH_METHOD", "scrypt"),
    )

    audit_sink = cfg.get("AUDIT_SINK")
    if audit_sink is None:
        backend = cfg.get("AUDIT_BACKEND", "db")
        if backend == "log":
            audit_sink = LoggingAuditSink()
        elif backend == "db":
            audit_sink = SQLAlchemyAuditSink()
        else:
            raise RuntimeError(f"Unknown AUDIT_BACKEND {backend!r} (expected 'db' or 'log')")

    app.extensions["auth_service"] = AuthService(
        keys=keys,
        exchanger=IdentityExchanger(
            provider,
            state_store,
            allowed_origins=cfg["ALLOWED_ORIGINS"],
            state_ttl=cfg["OAUTH_STATE_TTL"],
        ),
        directory=UserDirectory(admin_emails=cfg["ADMIN_EMAILS"]),
        issuer=issuer,
        rotator=TokenRotator(issuer),
        validator=AccessValidator(keys, issuer=cfg["JWT_ISSUER"]),
        audit_sink=audit_sink,
    )


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :raises SigningFailed: If the signing key pair is unusable.
    :raises RuntimeError: If required OAuth or state store settings are missing.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    _check_startup_config(app)

    try:
        keys = load_key_material(app)
    except SigningFailed:
        log.critical("signing key unusable; refusing to start")
        raise

    from idp.core import proxy

    proxy.init_app(app)

    from idp.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from idp.core import cors

    cors.init_app(app)

    init_services(app, keys)

    from idp.api import init_app as init_api

    init_api(app)

    from idp.core import errors

    errors.init_app(app)

    from idp import cli as app_cli

    app_cli.init_app(app)

    log.info("application ready", extra={"kid": keys.kid})
    return app
