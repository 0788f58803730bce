"""Tiny helpers shared across test modules."""

from __future__ import annotations

from contextlib import contextmanager
from urllib.parse import parse_qs, urlsplit

from sqlalchemy import select

from idp.models.refresh_token import RefreshToken


@contextmanager
def not_raises(exception: type[BaseException]):
    """Context manager asserting that an exception is *not* raised.

    Parameters
    ----------
    exception: type[BaseException]
        Exception type that should not be raised within the context.
    """
    try:
        yield
    except exception as exc:  # pragma: no cover
        raise AssertionError(f"Did raise {exception}: {exc}") from exc


def query_param(url: str, name: str) -> str | None:
    """Return the first value of ``name`` in the query string of ``url``."""
    values = parse_qs(urlsplit(url).query).get(name)
    return values[0] if values else None


def revoked_at(session, token_id):
    """Read ``revoked_at`` straight from the database, bypassing the identity map."""
    stmt = select(RefreshToken.revoked_at).where(RefreshToken.id == token_id)
    return session.execute(stmt).scalar_one()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
