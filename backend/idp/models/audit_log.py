"""Authentication audit trail (``auth_audit_log``)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from idp.core.extensions import db

from .base import ReprMixin, UUIDPKMixin


class AuthAuditLog(UUIDPKMixin, ReprMixin, db.Model):
    """One row per LOGIN, LOGOUT or TOKEN_REFRESH event."""

    __tablename__ = "auth_audit_log"

    user_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_auth_audit_log_user_id", "user_id"),
        Index("ix_auth_audit_log_created_at", "created_at"),
    )
