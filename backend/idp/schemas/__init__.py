"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import CallbackQuerySchema, LoginQuerySchema, RefreshSchema, TokenResponseSchema
from .user import UserSchema

__all__ = [
    "CallbackQuerySchema",
    "LoginQuerySchema",
    "RefreshSchema",
    "TokenResponseSchema",
    "UserSchema",
]
