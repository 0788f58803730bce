from idp.models.audit_log import AuthAuditLog
from idp.models.refresh_token import RefreshToken
from idp.models.user import User, UserRole

__all__ = [
    "AuthAuditLog",
    "RefreshToken",
    "User",
    "UserRole",
]
