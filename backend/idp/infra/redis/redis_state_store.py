from __future__ import annotations

from datetime import timedelta
from typing import cast

import redis  # type: ignore[import-untyped]

from idp.services._shared.ports.state_store import OAuthStateStore


class RedisOAuthStateStore(OAuthStateStore):
    """
    OAuth ``state`` storage shared by all workers.

    ``consume`` uses ``GETDEL`` so that read-and-delete is a single atomic
    command; a second callback with the same state finds nothing.
    """

    def __init__(self, r: redis.Redis, *, prefix: str = "oauth:state:"):
        self.r = r
        self.prefix = prefix

    def _k(self, state: str) -> str:
        return f"{self.prefix}{state}"

    def put(self, state: str, redirect_target: str, ttl: timedelta) -> None:
        seconds = max(1, int(ttl.total_seconds()))
        # NX: never overwrite a live state
        self.r.set(self._k(state), redirect_target, ex=seconds, nx=True)

    def consume(self, state: str) -> str | None:
        value = self.r.getdel(self._k(state))
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return cast(str, value)
