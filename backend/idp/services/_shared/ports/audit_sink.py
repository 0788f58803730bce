from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol
from uuid import UUID


class AuditAction(str, Enum):
    """Security-relevant events recorded by the auth service."""

    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    TOKEN_REFRESH = "TOKEN_REFRESH"


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """
    One audit record.

    :ivar user_id: Affected user, when known (``None`` for unmatched logouts).
    :ivar action: What happened.
    :ivar ip_address: Client address.
    :ivar user_agent: Client ``User-Agent``.
    :ivar occurred_at: Event time (UTC).
    """

    user_id: UUID | None
    action: AuditAction
    ip_address: str | None = None
    user_agent: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class AuditSink(Protocol):
    """Port receiving audit events. Write failures raise :class:`PersistenceFailed`."""

    def record(self, event: AuditEvent) -> None: ...


class InMemoryAuditSink(AuditSink):
    """Collects events in a list; used by unit tests."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []
        self._lock = threading.Lock()

    def record(self, event: AuditEvent) -> None:
        with self._lock:
            self.events.append(event)

    def actions(self) -> list[AuditAction]:
        return [e.action for e in self.events]
