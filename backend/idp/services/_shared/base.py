# idp/services/_shared/base.py
from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from http import HTTPStatus

from sqlalchemy.exc import SQLAlchemyError

from idp.core import errors as api_errors
from idp.services._shared.errors import (
    ConflictError,
    ExchangeFailed,
    InvalidRedirect,
    InvalidRefreshToken,
    InvalidState,
    InvalidToken,
    NotFoundError,
    PersistenceFailed,
    ProfileFetchFailed,
    ServiceError,
    SigningFailed,
    UserInactive,
)
from idp.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


def now_utc() -> datetime:
    """Return the current aware UTC datetime."""
    return datetime.now(UTC)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Wrap storage failures into :class:`PersistenceFailed`.
    * Centralize error translation to API errors.

    Notes
    -----
    - Services never touch the global session directly; always use a Unit of Work.
    - The clock is injectable (``clock``) so expiry logic is testable.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory or SQLAlchemyUnitOfWork
        self._clock = clock or now_utc

    def now(self) -> datetime:
        return self._clock()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return self._uow_factory()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :returns: Read-only UoW instance.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork()

    @contextmanager
    def persistence(self, operation: str) -> Iterator[None]:
        """
        Translate low-level storage errors raised inside the block.

        :param operation: Short label used in the error message.
        :raises PersistenceFailed: On any :class:`SQLAlchemyError`.
        """
        try:
            yield
        except SQLAlchemyError as exc:
            raise PersistenceFailed(f"{operation} failed: {exc.__class__.__name__}") from exc

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            return api_errors.Conflict(str(exc))

        # Token failures share one client-facing message
        if isinstance(exc, InvalidRefreshToken):
            return api_errors.Unauthorized(str(exc), code="invalid_refresh_token")

        if isinstance(exc, InvalidToken):
            return api_errors.Unauthorized("Invalid or expired token", code="invalid_token")

        if isinstance(exc, UserInactive):
            return api_errors.Forbidden(str(exc), code="user_inactive")

        if isinstance(exc, InvalidState):
            return api_errors.APIError(str(exc), status_code=HTTPStatus.BAD_REQUEST, code="invalid_state")

        if isinstance(exc, InvalidRedirect):
            return api_errors.APIError(
                str(exc), status_code=HTTPStatus.BAD_REQUEST, code="invalid_redirect"
            )

        if isinstance(exc, ExchangeFailed):
            return api_errors.BadGateway(str(exc), code="exchange_failed")

        if isinstance(exc, ProfileFetchFailed):
            return api_errors.BadGateway(str(exc), code="profile_fetch_failed")

        if isinstance(exc, PersistenceFailed):
            return api_errors.ServiceUnavailable()

        if isinstance(exc, SigningFailed):
            return api_errors.APIError(
                "Token signing failed",
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
                code="signing_failed",
            )

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
