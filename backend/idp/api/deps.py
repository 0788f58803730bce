"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from idp.core.errors import Forbidden, Unauthorized
from idp.schemas import TokenResponseSchema
from idp.services._shared.errors import InvalidToken
from idp.services.auth.dto import ClientInfo
from idp.services.auth.service import AuthService
from idp.services.tokens.dto import AccessTokenClaims, TokenPair

F = TypeVar("F", bound=Callable[..., Any])

_token_response_schema = TokenResponseSchema()

REFRESH_COOKIE = "refresh_token"
STATE_COOKIE = "oauth_state"
REDIRECT_COOKIE = "oauth_redirect"


def get_auth_service() -> AuthService:
    """Return the :class:`AuthService` wired by the application factory."""

    return cast(AuthService, current_app.extensions["auth_service"])


def client_info() -> ClientInfo:
    """Describe the calling client for audit events."""

    user_agent = request.user_agent.string or None
    return ClientInfo(ip_address=request.remote_addr, user_agent=user_agent)


def bearer_token() -> str:
    """Extract the bearer token from ``Authorization``."""

    header = request.headers.get("Authorization", "")
    if not header:
        raise Unauthorized("Missing authorization header")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise Unauthorized("Invalid authorization header format")
    return token.strip()


def current_claims() -> AccessTokenClaims:
    """Return the claims verified by :func:`require_auth` for this request."""

    return cast(AccessTokenClaims, g.claims)


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token; exposes ``g.claims``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token()
        try:
            g.claims = get_auth_service().validate(token)
        except InvalidToken as exc:
            current_app.logger.info(
                "access token rejected", extra={"reason": exc.__class__.__name__}
            )
            raise Unauthorized("Invalid or expired token", code="invalid_token") from exc
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_role(required: str) -> Callable[[F], F]:
    """Ensure the verified access token carries the requested role."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        @require_auth
        def wrapper(*args: Any, **kwargs: Any):
            if current_claims().role != required:
                raise Forbidden("Admin access required" if required == "admin" else "Forbidden")
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


# ------------------------------- Cookies ------------------------------------


def _cookie_kwargs(*, same_site: str) -> dict[str, Any]:
    return {
        "httponly": True,
        "secure": bool(current_app.config.get("SECURE_COOKIES", False)),
        "samesite": same_site,
        "path": "/",
    }


def set_refresh_cookie(response: Response, pair: TokenPair) -> None:
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        expires=pair.refresh_expires_at,
        **_cookie_kwargs(same_site="Strict"),
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(REFRESH_COOKIE, **_cookie_kwargs(same_site="Strict"))


def set_login_cookies(response: Response, *, state: str, redirect_target: str) -> None:
    """Pin the login ``state`` and redirect target to this browser."""

    ttl = current_app.config["OAUTH_STATE_TTL"]
    max_age = int(ttl.total_seconds())
    for name, value in ((STATE_COOKIE, state), (REDIRECT_COOKIE, redirect_target)):
        response.set_cookie(name, value, max_age=max_age, **_cookie_kwargs(same_site="Lax"))


def clear_login_cookies(response: Response) -> None:
    for name in (STATE_COOKIE, REDIRECT_COOKIE):
        response.delete_cookie(name, **_cookie_kwargs(same_site="Lax"))


# ------------------------------- Responses ----------------------------------


def token_body(pair: TokenPair, *, now: datetime) -> dict[str, Any]:
    return _token_response_schema.dump(
        {"access_token": pair.access_token, "expires_in": pair.expires_in(now)}
    )


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
