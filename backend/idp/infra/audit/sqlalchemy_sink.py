from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError

from idp.models.audit_log import AuthAuditLog
from idp.services._shared.errors import PersistenceFailed
from idp.services._shared.ports.audit_sink import AuditEvent, AuditSink
from idp.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork


class SQLAlchemyAuditSink(AuditSink):
    """
    Persist audit events to ``auth_audit_log`` in their own unit of work.

    :raises PersistenceFailed: When the insert fails.
    """

    def __init__(self, uow_factory: Callable[[], SQLAlchemyUnitOfWork] | None = None) -> None:
        self._uow_factory = uow_factory or SQLAlchemyUnitOfWork

    def record(self, event: AuditEvent) -> None:
        try:
            with self._uow_factory() as uow:
                uow.audit_logs.add(
                    AuthAuditLog(
                        user_id=event.user_id,
                        action=event.action.value,
                        ip_address=event.ip_address[:45] if event.ip_address else None,
                        user_agent=event.user_agent,
                        created_at=event.occurred_at,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceFailed("audit log write failed") from exc
