"""Audit log repository (append-only)."""

from __future__ import annotations

from idp.models.audit_log import AuthAuditLog
from idp.repositories.base import BaseRepository


class AuthAuditLogRepository(BaseRepository[AuthAuditLog]):
    """Append-only access to :class:`AuthAuditLog`; rows are only ever added."""

    model = AuthAuditLog
