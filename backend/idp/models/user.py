"""User model: a person known to the identity provider."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, String, UniqueConstraint, true
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, validates

from idp.core.extensions import db

from .base import ReprMixin, TimestampMixin, UUIDPKMixin


class UserRole(str, Enum):
    """Roles carried in the ``role`` claim of access tokens."""

    USER = "user"
    ADMIN = "admin"


class User(UUIDPKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Identity record reconciled from the external provider.

    Users are never hard-deleted: ``is_active = False`` blocks new logins and
    refreshes, ``deleted_at`` marks a soft delete with the same effect.

    Fields
    ------
    email : str
        Stored normalized (lowercase, trimmed). Unique.
    external_subject_id : str | None
        Stable subject (``sub``) from the identity provider. Unique when set;
        ``None`` for accounts created before their first external login.
    name : str
        Display name copied from the provider profile.
    avatar_url : str | None
        Profile picture URL copied from the provider profile.
    role : UserRole
        ``user`` or ``admin``.
    is_active : bool
        ``False`` once an administrator deactivates the account.
    deleted_at : datetime | None
        Soft-delete marker.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    external_subject_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(
            UserRole,
            name="user_role",
            native_enum=False,
            create_constraint=True,
            length=16,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=UserRole.USER,
        server_default=UserRole.USER.value,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("external_subject_id", name="uq_users_external_subject_id"),
        Index("ix_users_active", "is_active", "deleted_at"),
    )

    @property
    def is_usable(self) -> bool:
        """``True`` when the account may log in and refresh tokens."""
        return bool(self.is_active) and self.deleted_at is None

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :param key: Field name (``email``).
        :type key: str
        :param value: Email to normalize.
        :type value: str
        :returns: Normalized email (lowercased/trimmed).
        :rtype: str
        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = normalize_email(value)
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v


def normalize_email(value: str) -> str:
    """Return the canonical (trimmed, lowercase) form of an email address."""
    return value.strip().lower()


__all__ = ["User", "UserRole", "normalize_email"]
