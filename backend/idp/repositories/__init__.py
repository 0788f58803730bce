"""Repository package exposing persistence-layer access for identity models."""

from __future__ import annotations

from idp.repositories.audit_log import AuthAuditLogRepository
from idp.repositories.base import BaseRepository
from idp.repositories.refresh_token import RefreshTokenRepository
from idp.repositories.user import UserRepository

__all__ = [
    "AuthAuditLogRepository",
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
