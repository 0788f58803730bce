from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol


class OAuthStateStore(Protocol):
    """
    Short-lived storage of login ``state`` values.

    ``consume`` MUST be atomic: of two concurrent callers presenting the same
    state, at most one receives the bound redirect target.
    """

    def put(self, state: str, redirect_target: str, ttl: timedelta) -> None:
        """Bind ``state`` to ``redirect_target`` for ``ttl``."""

    def consume(self, state: str) -> str | None:
        """Remove ``state`` and return its redirect target, or ``None``."""


class InMemoryOAuthStateStore(OAuthStateStore):
    """
    Process-local state store.

    .. note::
       Uses a threading lock to make ``consume`` atomic and drops expired
       entries on every ``put``. Suitable for tests and single-process
       development only.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))

    def put(self, state: str, redirect_target: str, ttl: timedelta) -> None:
        now = self._clock()
        with self._lock:
            self._purge_expired(now)
            self._entries[state] = (redirect_target, now + ttl)

    def consume(self, state: str) -> str | None:
        with self._lock:
            entry = self._entries.pop(state, None)
        if entry is None:
            return None
        redirect_target, expires_at = entry
        if expires_at <= self._clock():
            return None
        return redirect_target

    def __len__(self) -> int:
        return len(self._entries)

    def _purge_expired(self, now: datetime) -> None:
        # Caller holds the lock
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
