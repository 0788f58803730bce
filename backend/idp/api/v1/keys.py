"""Public verification key endpoints."""

from __future__ import annotations

from flask import Blueprint, Response

from idp.api.deps import get_auth_service, json_response, timing

bp = Blueprint("keys", __name__)


@bp.get("/public-key")
@timing
def public_key():
    """Return the PEM-encoded RS256 verification key."""

    response = Response(get_auth_service().public_signing_key(), mimetype="text/plain")
    response.headers["Cache-Control"] = "public, max-age=300"
    return response


@bp.get("/.well-known/jwks.json")
@timing
def jwks():
    """Return the verification key as a JSON Web Key Set."""

    response = json_response(get_auth_service().jwks())
    response.headers["Cache-Control"] = "public, max-age=300"
    return response
