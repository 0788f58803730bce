"""Refresh token repository: validity-filtered lookups and atomic revocation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import cast
from uuid import UUID

from sqlalchemy import select, update

from idp.models.refresh_token import RefreshToken
from idp.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Validity (``revoked_at IS NULL AND expires_at > now``) is evaluated in
    SQL so that revoked or expired rows are never candidates for matching.
    """

    model = RefreshToken

    def get_valid(self, token_id: UUID, *, now: datetime) -> RefreshToken | None:
        """Return the row with ``token_id`` if it is still valid at ``now``."""
        stmt = select(RefreshToken).where(
            RefreshToken.id == token_id,
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > now,
        )
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def list_valid(self, *, now: datetime) -> Sequence[RefreshToken]:
        """Return every valid row, newest first.

        Used for tokens that carry no record-id prefix; each candidate still
        has to be confirmed against its stored hash by the caller.
        """
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.revoked_at.is_(None), RefreshToken.expires_at > now)
            .order_by(RefreshToken.created_at.desc())
        )
        return self.session.execute(stmt).scalars().all()

    def revoke_if_valid(self, token_id: UUID, *, now: datetime) -> bool:
        """Atomically mark the row revoked when it is still unrevoked.

        Issues ``UPDATE ... SET revoked_at = :now WHERE id = :id AND
        revoked_at IS NULL``. Exactly one of two concurrent callers sees a
        row count of one; the loser gets ``False``.

        :param token_id: Primary key of the row to revoke.
        :param now: Revocation timestamp.
        :returns: ``True`` if this call performed the revocation.
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return bool(result.rowcount == 1)

    def count_valid_for_user(self, user_id: UUID, *, now: datetime) -> int:
        stmt = select(RefreshToken.id).where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > now,
        )
        return len(self.session.execute(stmt).all())
