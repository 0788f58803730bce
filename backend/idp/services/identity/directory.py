"""User reconciliation and account status management."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from idp.models.user import User, UserRole, normalize_email
from idp.services._shared.base import BaseService
from idp.services._shared.errors import ConflictError, NotFoundError, UserInactive, violates
from idp.services.identity.dto import ExternalIdentity, UserView
from idp.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


class ReconcileAction(Enum):
    """What reconciliation does with the stored record."""

    CREATE = auto()
    LINK = auto()  # existing email without a subject: attach it
    UPDATE = auto()
    REJECT_INACTIVE = auto()
    CONFLICT = auto()  # same email, different subject


@dataclass(frozen=True, slots=True)
class ReconciliationPlan:
    """
    Outcome of :func:`plan_reconciliation`.

    :ivar action: Decision.
    :ivar role: Role the user ends up with (meaningful for CREATE/LINK/UPDATE).
    """

    action: ReconcileAction
    role: UserRole


def plan_reconciliation(
    identity: ExternalIdentity,
    existing: User | None,
    admin_emails: Iterable[str],
) -> ReconciliationPlan:
    """
    Decide how an external identity maps onto the stored user.

    Pure: only reads ``existing``. Admin status is granted when the email
    is on ``admin_emails``; it is never revoked here,
    so removing an address from the list does not demote anyone.

    :param identity: Profile returned by the provider.
    :param existing: User found by subject, else by email, else ``None``.
    :param admin_emails: Normalized admin allow-list.
    :returns: The plan to apply.
    """
    admins = {normalize_email(e) for e in admin_emails}

    if existing is None:
        promote = normalize_email(identity.email) in admins
        return ReconciliationPlan(
            ReconcileAction.CREATE, UserRole.ADMIN if promote else UserRole.USER
        )

    current_role = UserRole(existing.role)
    if not existing.is_usable:
        return ReconciliationPlan(ReconcileAction.REJECT_INACTIVE, current_role)

    if existing.external_subject_id is None:
        action = ReconcileAction.LINK
    elif existing.external_subject_id != identity.subject_id:
        return ReconciliationPlan(ReconcileAction.CONFLICT, current_role)
    else:
        action = ReconcileAction.UPDATE

    # Stored email is authoritative for the allow-list check
    promote = normalize_email(existing.email) in admins
    role = UserRole.ADMIN if promote or current_role is UserRole.ADMIN else UserRole.USER
    return ReconciliationPlan(action, role)


class UserDirectory(BaseService):
    """
    Create or refresh users from external identities; toggle activation.

    :param admin_emails: Emails promoted to ``admin`` on login.
    """

    def __init__(
        self,
        *,
        admin_emails: Iterable[str] = (),
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(uow_factory=uow_factory, clock=clock)
        self.admin_emails = frozenset(normalize_email(e) for e in admin_emails)

    def reconcile(self, identity: ExternalIdentity) -> UserView:
        """
        Map ``identity`` to a stored user, creating or updating it.

        :raises UserInactive: The account is deactivated or soft-deleted;
            nothing is modified.
        :raises ConflictError: The email belongs to a different subject.
        :raises PersistenceFailed: Storage failed.
        """
        with self.persistence("user reconciliation"), self.rw_uow() as uow:
            existing = uow.users.get_by_subject(identity.subject_id)
            if existing is None:
                existing = uow.users.get_by_email(identity.email)

            plan = plan_reconciliation(identity, existing, self.admin_emails)

            if plan.action is ReconcileAction.REJECT_INACTIVE:
                raise UserInactive()
            if plan.action is ReconcileAction.CONFLICT:
                raise ConflictError("User", "email is linked to another account")

            if plan.action is ReconcileAction.CREATE:
                user = User(
                    email=identity.email,
                    external_subject_id=identity.subject_id,
                    name=identity.name or "",
                    avatar_url=identity.avatar_url,
                    role=plan.role,
                    is_active=True,
                )
                try:
                    uow.users.add(user)
                except IntegrityError as exc:
                    if violates(exc, "uq_users_email", column="users.email") or violates(
                        exc, "uq_users_external_subject_id", column="users.external_subject_id"
                    ):
                        raise ConflictError("User", "concurrent registration") from exc
                    raise
                log.info("user created", extra={"user_id": str(user.id), "action": "create"})
            else:
                user = existing  # type: ignore[assignment]
                if plan.action is ReconcileAction.LINK:
                    user.external_subject_id = identity.subject_id
                user.name = identity.name or user.name
                user.avatar_url = identity.avatar_url
                if plan.role is not UserRole(user.role):
                    log.info(
                        "user promoted", extra={"user_id": str(user.id), "action": "promote"}
                    )
                user.role = plan.role
                uow.users.flush()

            return UserView.from_model(user)

    def get(self, user_id: UUID) -> UserView:
        """
        :raises NotFoundError: Unknown id.
        """
        with self.persistence("user lookup"), self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            return UserView.from_model(user)

    def deactivate(self, user_id: UUID) -> UserView:
        """
        Block future logins and refreshes for ``user_id``.

        Access tokens already issued remain valid until they expire.

        :raises NotFoundError: Unknown id.
        """
        return self._set_active(user_id, False)

    def activate(self, user_id: UUID) -> UserView:
        """
        :raises NotFoundError: Unknown id.
        """
        return self._set_active(user_id, True)

    def _set_active(self, user_id: UUID, active: bool) -> UserView:
        with self.persistence("user status update"), self.rw_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            user.is_active = active
            uow.users.flush()
            log.info(
                "user status changed",
                extra={"user_id": str(user_id), "action": "activate" if active else "deactivate"},
            )
            return UserView.from_model(user)
