"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env in development (no-op when absent)
load_dotenv()

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS: Final[Mapping[str, str]] = {
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_csv(raw: str | None) -> list[str]:
    """Split a comma-separated value into trimmed, non-empty items."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_duration(raw: str) -> timedelta:
    """Parse a compact duration such as ``"15m"``, ``"168h"`` or ``"1h30m"``.

    Parameters
    ----------
    raw: str
        Concatenation of ``<number><unit>`` groups with units ``ms``, ``s``,
        ``m``, ``h`` or ``d``. A bare integer is read as seconds.

    Returns
    -------
    datetime.timedelta
        Parsed duration.

    Raises
    ------
    ValueError
        If the value is empty or contains unknown segments.
    """
    value = (raw or "").strip().lower()
    if not value:
        raise ValueError("Duration must not be empty.")
    if value.isdigit():
        return timedelta(seconds=int(value))

    consumed = 0
    total = timedelta()
    for match in _DURATION_PART.finditer(value):
        if match.start() != consumed:
            break
        amount, unit = match.groups()
        total += timedelta(**{_DURATION_UNITS[unit]: float(amount)})
        consumed = match.end()
    if consumed != len(value):
        raise ValueError(f"Invalid duration: {raw!r}")
    return total


def env_duration(name: str, default: str) -> timedelta:
    """Read a duration environment variable, raising on malformed values."""
    raw = os.getenv(name, default)
    try:
        return parse_duration(raw)
    except ValueError as exc:
        raise ValueError(f"invalid {name}: {exc}") from exc


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. The service itself keeps no cookie-backed sessions.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    SQLALCHEMY_ENGINE_OPTIONS: dict
        Pool settings; ``pool_timeout`` bounds how long a request waits for a
        connection.
    REDIS_URL: str | None
        Backing store for OAuth ``state`` values. In-memory when unset.
    REQUIRE_REDIS: bool
        Refuse to start without ``REDIS_URL`` (on in production).
    GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET / GOOGLE_REDIRECT_URL: str
        OAuth client registration.
    OAUTH_HTTP_TIMEOUT: tuple[float, float]
        ``(connect, read)`` timeout for calls to the identity provider.
    OAUTH_STATE_TTL: timedelta
        Lifetime of a login ``state`` value.
    JWT_PRIVATE_KEY_PATH / JWT_PUBLIC_KEY_PATH: str
        PEM files with the RS256 signing key pair.
    JWT_EPHEMERAL_KEYS: bool
        Generate a throwaway key pair at startup instead of reading files.
    JWT_ISSUER: str
        ``iss`` claim written to and required from access tokens.
    JWT_ACCESS_TOKEN_EXPIRES / JWT_REFRESH_TOKEN_EXPIRES: timedelta
        Token lifetimes (``15m`` and ``168h`` by default).
    REFRESH_TOKEN_HASH_METHOD: str
        werkzeug hashing method for stored refresh token secrets.
    AUDIT_BACKEND: str
        ``db`` writes audit events to ``auth_audit_log``; ``log`` emits them
        as structured log records only.
    ALLOWED_ORIGINS: list[str]
        Frontend origins accepted as post-login redirect targets and for CORS.
    ADMIN_EMAILS: list[str]
        Emails promoted to the ``admin`` role on login.
    SECURE_COOKIES: bool
        Sets the ``Secure`` flag on auth cookies.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_timeout": float(os.getenv("DB_POOL_TIMEOUT", "5")),
    }

    # Redis (OAuth state)
    REDIS_URL = os.getenv("REDIS_URL") or None
    REQUIRE_REDIS = False

    # Google OAuth
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REDIRECT_URL = os.getenv(
        "GOOGLE_REDIRECT_URL", "http://localhost:8080/api/v1/auth/google/callback"
    )
    OAUTH_HTTP_TIMEOUT = (
        float(os.getenv("OAUTH_CONNECT_TIMEOUT", "5")),
        float(os.getenv("OAUTH_READ_TIMEOUT", "15")),
    )
    OAUTH_STATE_TTL = env_duration("OAUTH_STATE_TTL", "10m")

    # JWT
    JWT_PRIVATE_KEY_PATH = os.getenv("JWT_PRIVATE_KEY_PATH", "./keys/private_key.pem")
    JWT_PUBLIC_KEY_PATH = os.getenv("JWT_PUBLIC_KEY_PATH", "./keys/public_key.pem")
    JWT_EPHEMERAL_KEYS = env_bool("JWT_EPHEMERAL_KEYS", False)
    JWT_ISSUER = os.getenv("JWT_ISSUER", "auth-service")
    JWT_ACCESS_TOKEN_EXPIRES = env_duration("JWT_ACCESS_TOKEN_EXPIRY", "15m")
    JWT_REFRESH_TOKEN_EXPIRES = env_duration("JWT_REFRESH_TOKEN_EXPIRY", "168h")
    REFRESH_TOKEN_HASH_METHOD = os.getenv("REFRESH_TOKEN_HASH_METHOD", "scrypt")
    AUDIT_BACKEND = os.getenv("AUDIT_BACKEND", "db").strip().lower()

    # Origins & roles
    ALLOWED_ORIGINS = parse_csv(
        os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173")
    )
    ADMIN_EMAILS = parse_csv(os.getenv("ADMIN_EMAILS", ""))

    # Cookies
    SECURE_COOKIES = env_bool("SECURE_COOKIES", False)

    # Reverse proxy
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXYFIX_HOPS = int(os.getenv("PROXYFIX_HOPS", "1"))
    CORS_MAX_AGE = int(os.getenv("CORS_MAX_AGE", "600"))

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    APP_VERSION = os.getenv("APP_VERSION", "dev")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and falls back to an ephemeral key pair so
    the service boots without generated PEM files.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    JWT_EPHEMERAL_KEYS = env_bool("JWT_EPHEMERAL_KEYS", True)
    CORS_MAX_AGE = 300


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Signs with an ephemeral key pair and never talks to Redis.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}
    REDIS_URL = None
    JWT_EPHEMERAL_KEYS = True
    GOOGLE_CLIENT_ID = "test-client-id"
    GOOGLE_CLIENT_SECRET = "test-client-secret"
    ALLOWED_ORIGINS = ["http://localhost:3000"]
    ADMIN_EMAILS: list[str] = []
    SECURE_COOKIES = False
    # Low work factor for test runs
    REFRESH_TOKEN_HASH_METHOD = "pbkdf2:sha256:1000"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug disabled, requires key files and secure cookies, and bounds
    every PostgreSQL statement with ``statement_timeout``.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    JWT_EPHEMERAL_KEYS = False
    SECURE_COOKIES = env_bool("SECURE_COOKIES", True)
    REQUIRE_REDIS = env_bool("REQUIRE_REDIS", True)
    SQLALCHEMY_ENGINE_OPTIONS = {
        **BaseConfig.SQLALCHEMY_ENGINE_OPTIONS,
        "connect_args": (
            {"options": f"-c statement_timeout={int(os.getenv('DB_STATEMENT_TIMEOUT_MS', '5000'))}"}
            if BaseConfig.SQLALCHEMY_DATABASE_URI.startswith("postgresql")
            else {}
        ),
    }


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
