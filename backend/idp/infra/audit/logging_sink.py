from __future__ import annotations

import logging

from idp.services._shared.ports.audit_sink import AuditEvent, AuditSink


class LoggingAuditSink(AuditSink):
    """Write audit events to the structured log (``idp.audit`` logger)."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.log = logger or logging.getLogger("idp.audit")

    def record(self, event: AuditEvent) -> None:
        self.log.info(
            "auth event %s",
            event.action.value,
            extra={
                "action": event.action.value,
                "user_id": str(event.user_id) if event.user_id else None,
            },
        )
