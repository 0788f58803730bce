"""Raw refresh token format: ``<record-id hex>.<secret>``.

The record id is not secret; it only lets the rotator fetch one row instead
of checking the presented secret against every valid hash. Values without
the prefix are still accepted and matched by scanning.
"""

from __future__ import annotations

import secrets
from uuid import UUID

SECRET_BYTES = 32  # 256 bits of entropy
_SEPARATOR = "."


def new_secret() -> str:
    """Return a fresh URL-safe secret (never contains ``.``)."""
    return secrets.token_urlsafe(SECRET_BYTES)


def compose(token_id: UUID, secret: str) -> str:
    return f"{token_id.hex}{_SEPARATOR}{secret}"


def split(raw: str) -> tuple[UUID | None, str]:
    """
    Split a presented token into ``(record_id, secret)``.

    :returns: ``(None, raw)`` when there is no well-formed id prefix.
    """
    prefix, sep, secret = raw.partition(_SEPARATOR)
    if not sep or len(prefix) != 32 or not secret:
        return None, raw
    try:
        return UUID(hex=prefix), secret
    except ValueError:
        return None, raw
