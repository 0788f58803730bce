"""Refresh token model: one hashed, single-use credential per row."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from idp.core.extensions import db

from .base import ReprMixin, UUIDPKMixin, as_utc

if TYPE_CHECKING:
    from .user import User


class RefreshToken(UUIDPKMixin, ReprMixin, db.Model):
    """
    Persisted refresh token.

    Only a salted adaptive hash of the secret part is stored. A row is valid
    while ``revoked_at IS NULL AND expires_at > now``; rows are never deleted,
    so revoked and expired rows remain as an audit trail.
    """

    __tablename__ = "refresh_tokens"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    def is_valid_at(self, now: datetime) -> bool:
        """Return ``True`` when not revoked and not yet expired at ``now``."""
        expires_at = as_utc(self.expires_at)
        return self.revoked_at is None and expires_at is not None and expires_at > now
