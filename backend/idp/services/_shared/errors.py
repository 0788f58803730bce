"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic**: they never import Flask or
HTTP concepts. They are the stable contract between the token lifecycle
core and its callers.

The translation to HTTP responses (RFC 7807) is handled by
``idp/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str, *, column: str | None = None) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite only reports the
    offending columns (``UNIQUE constraint failed: users.email``), so the
    ``table.column`` form is matched as well when given.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_email').
    column : str, optional
        Qualified column (e.g., 'users.email') checked against SQLite's
        ``UNIQUE constraint failed`` message.

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    if constraint_name.lower() in message:
        return True
    if column is None:
        return False
    prefix = "unique constraint failed:"
    if prefix not in message:
        return False
    failed = message.split(prefix, 1)[1]
    return column.lower() in {part.strip() for part in failed.split(",")}


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to ``APIError`` through
      ``BaseService.translate_exceptions``.
    """

    default_message = "Service error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


# --------------------------------------------------------------------------- #
# Login (OAuth exchange)
# --------------------------------------------------------------------------- #


class ExchangeFailed(ServiceError):
    """The provider refused the authorization code, or the call failed/timed out."""

    default_message = "Failed to exchange authorization code"


class ProfileFetchFailed(ServiceError):
    """The provider's profile endpoint failed, timed out or returned garbage."""

    default_message = "Failed to fetch user profile"


class InvalidState(ServiceError):
    """The ``state`` value is unknown, expired, already used or bound elsewhere."""

    default_message = "Invalid OAuth state"


class InvalidRedirect(ServiceError):
    """The post-login redirect target is not on the allowed origin list."""

    default_message = "Redirect target is not allowed"


class UserInactive(ServiceError):
    """The account is deactivated or soft-deleted."""

    default_message = "User account is not active"


# --------------------------------------------------------------------------- #
# Tokens
# --------------------------------------------------------------------------- #


class InvalidRefreshToken(ServiceError):
    """
    The refresh token is unknown, revoked, expired, already rotated, or its
    owner can no longer log in.

    A single error kind for all of those so that callers cannot probe which
    case applied.
    """

    default_message = "Invalid refresh token"


class InvalidToken(ServiceError):
    """Access token failed verification (signature, issuer or algorithm)."""

    default_message = "Invalid token"


class Expired(InvalidToken):
    """Access token is past its ``exp``."""

    default_message = "Token has expired"


class MalformedToken(InvalidToken):
    """Input is not a JWT, or required claims are missing or mistyped."""

    default_message = "Malformed token"


class SigningFailed(ServiceError):
    """The signing key is unusable (unreadable, mismatched pair, wrong type)."""

    default_message = "Token signing failed"


class PersistenceFailed(ServiceError):
    """Storage was unreachable, timed out or rejected the statement."""

    default_message = "Storage operation failed"
