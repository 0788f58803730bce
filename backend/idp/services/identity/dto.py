# comments in English; reST docstrings strict
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from idp.models.user import User, UserRole


@dataclass(frozen=True, slots=True)
class ExternalIdentity:
    """
    Profile returned by the identity provider after a successful exchange.

    :param subject_id: Stable provider subject (``sub`` / Google ``id``).
    :type subject_id: str
    :param email: Email as reported by the provider.
    :type email: str
    :param email_verified: Whether the provider vouches for the email.
    :type email_verified: bool
    :param name: Display name (may be empty).
    :type name: str
    :param avatar_url: Picture URL, if any.
    :type avatar_url: str | None
    """

    subject_id: str
    email: str
    email_verified: bool = False
    name: str = ""
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class LoginStart:
    """
    First leg of the login: where to send the browser and the bound state.

    :param authorization_url: Provider consent URL including ``state``.
    :type authorization_url: str
    :param state: Opaque single-use value bound to ``redirect_target``.
    :type state: str
    :param redirect_target: Validated post-login destination.
    :type redirect_target: str
    """

    authorization_url: str
    state: str
    redirect_target: str


@dataclass(frozen=True, slots=True)
class UserView:
    """
    Read-model of a user, detached from the ORM session.

    :param id: User identifier.
    :param email: Normalized email.
    :param name: Display name.
    :param avatar_url: Picture URL, if any.
    :param role: ``"user"`` or ``"admin"``.
    :param is_active: ``False`` once deactivated.
    """

    id: UUID
    email: str
    name: str
    avatar_url: str | None
    role: str
    is_active: bool

    @classmethod
    def from_model(cls, user: User) -> UserView:
        return cls(
            id=user.id,
            email=user.email,
            name=user.name or "",
            avatar_url=user.avatar_url,
            role=UserRole(user.role).value,
            is_active=user.is_usable,
        )
