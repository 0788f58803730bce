"""Administrative user endpoints (activation status)."""

from __future__ import annotations

from uuid import UUID

from flask import Blueprint

from idp.api.deps import get_auth_service, json_response, require_role, timing
from idp.schemas import UserSchema

bp = Blueprint("users", __name__, url_prefix="/users")

user_schema = UserSchema()


@bp.get("/<uuid:user_id>")
@require_role("admin")
@timing
def get_user(user_id: UUID):
    """Return one user."""

    return json_response(user_schema.dump(get_auth_service().directory.get(user_id)))


@bp.post("/<uuid:user_id>/deactivate")
@require_role("admin")
@timing
def deactivate_user(user_id: UUID):
    """Block future logins and refreshes for a user."""

    user = get_auth_service().directory.deactivate(user_id)
    return json_response(user_schema.dump(user))


@bp.post("/<uuid:user_id>/activate")
@require_role("admin")
@timing
def activate_user(user_id: UUID):
    """Allow a previously deactivated user to log in again."""

    user = get_auth_service().directory.activate(user_id)
    return json_response(user_schema.dump(user))
