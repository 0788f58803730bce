"""User repository: lookups by id, external subject and email."""

from __future__ import annotations

from typing import cast
from uuid import UUID

from sqlalchemy import select

from idp.models.user import User, normalize_email
from idp.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Lookups by subject and email deliberately include inactive and
    soft-deleted rows: callers must see them to refuse the login instead of
    creating a duplicate account.
    """

    model = User

    def get_by_subject(self, subject_id: str) -> User | None:
        """Fetch a user by the identity provider's stable subject."""
        stmt = select(User).where(User.external_subject_id == subject_id)
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.email == normalize_email(email))
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def get_active(self, user_id: UUID) -> User | None:
        """Return the user only when active and not soft-deleted."""
        stmt = select(User).where(
            User.id == user_id,
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
        return cast(User | None, self.session.execute(stmt).scalars().first())
