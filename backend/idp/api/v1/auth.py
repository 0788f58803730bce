"""Authentication endpoints: Google login, refresh, logout, current user."""

from __future__ import annotations

import secrets
from http import HTTPStatus
from urllib.parse import urlencode

from flask import Blueprint, redirect, request

from idp.api.deps import (
    REDIRECT_COOKIE,
    REFRESH_COOKIE,
    STATE_COOKIE,
    clear_login_cookies,
    clear_refresh_cookie,
    client_info,
    current_claims,
    get_auth_service,
    json_response,
    require_auth,
    set_login_cookies,
    set_refresh_cookie,
    timing,
    token_body,
)
from idp.core.errors import APIError, Unauthorized
from idp.schemas import CallbackQuerySchema, LoginQuerySchema, RefreshSchema, UserSchema
from idp.services._shared.base import now_utc
from idp.services._shared.errors import InvalidState

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_query_schema = LoginQuerySchema()
callback_query_schema = CallbackQuerySchema()
refresh_schema = RefreshSchema()
user_schema = UserSchema()


def _presented_refresh_token() -> tuple[str | None, bool]:
    """Return ``(token, from_body)``; the cookie wins over the JSON body."""

    cookie = request.cookies.get(REFRESH_COOKIE)
    if cookie:
        return cookie, False
    body = refresh_schema.load(request.get_json(silent=True) or {})
    return body["refresh_token"], body["refresh_token"] is not None


@bp.get("/google/login")
@timing
def google_login():
    """Start the Google login and redirect the browser to the consent page."""

    args = login_query_schema.load(request.args)
    start = get_auth_service().begin_login(args["redirect_uri"])
    response = redirect(start.authorization_url, code=HTTPStatus.TEMPORARY_REDIRECT)
    set_login_cookies(response, state=start.state, redirect_target=start.redirect_target)
    return response


@bp.get("/google/callback")
@timing
def google_callback():
    """Finish the login and hand the access token to the frontend callback."""

    args = callback_query_schema.load(request.args)
    if args["error"]:
        raise APIError(f"OAuth error: {args['error']}", code="oauth_error")
    if not args["code"] or not args["state"]:
        raise APIError("Missing code or state", code="bad_request")

    state_cookie = request.cookies.get(STATE_COOKIE)
    if not state_cookie or not secrets.compare_digest(state_cookie, args["state"]):
        raise InvalidState("state does not match this browser")
    redirect_target = request.cookies.get(REDIRECT_COOKIE)
    if not redirect_target:
        raise InvalidState("redirect cookie not found")

    pair = get_auth_service().complete_login(
        args["code"], args["state"], redirect_target, client_info()
    )

    # Frontend extracts the token from the URL and keeps it in memory only
    target = f"{redirect_target}/auth/callback?" + urlencode({"access_token": pair.access_token})
    response = redirect(target, code=HTTPStatus.TEMPORARY_REDIRECT)
    clear_login_cookies(response)
    set_refresh_cookie(response, pair)
    return response


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the refresh token and return a new access token."""

    raw, from_body = _presented_refresh_token()
    if not raw:
        raise Unauthorized("Refresh token not found", code="invalid_refresh_token")

    pair = get_auth_service().refresh(raw, client_info())
    body = token_body(pair, now=now_utc())
    if from_body:
        body["refresh_token"] = pair.refresh_token
    response = json_response(body)
    set_refresh_cookie(response, pair)
    return response


@bp.post("/logout")
@timing
def logout():
    """Revoke the refresh token (if any) and clear the cookie."""

    raw, _ = _presented_refresh_token()
    get_auth_service().logout(raw, client_info())
    response = json_response({"message": "Logged out successfully"})
    clear_refresh_cookie(response)
    return response


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user profile."""

    user = get_auth_service().directory.get(current_claims().user_id)
    return json_response(user_schema.dump(user))
