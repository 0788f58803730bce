"""Administrative user endpoints."""

from __future__ import annotations

from uuid import uuid4

from tests.factories.user import UserFactory
from tests.helpers.auth import login
from tests.helpers.utils import bearer


def test_admin_can_deactivate_and_activate(client) -> None:
    admin_token = login(client, "code-boss")
    target_id = UserFactory().id

    resp = client.post(f"/api/v1/users/{target_id}/deactivate", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert resp.get_json()["is_active"] is False

    resp = client.post(f"/api/v1/users/{target_id}/activate", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert resp.get_json()["is_active"] is True

    resp = client.get(f"/api/v1/users/{target_id}", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert resp.get_json()["id"] == str(target_id)


def test_deactivation_blocks_refresh_but_not_access(client, app) -> None:
    user_token = login(client, "code-alice")
    user_id = app.extensions["auth_service"].validate(user_token).user_id

    admin_client = app.test_client()
    admin_token = login(admin_client, "code-boss")
    resp = admin_client.post(f"/api/v1/users/{user_id}/deactivate", headers=bearer(admin_token))
    assert resp.status_code == 200

    assert client.post("/api/v1/auth/refresh").status_code == 401
    assert client.get("/api/v1/auth/me", headers=bearer(user_token)).status_code == 200


def test_regular_user_is_forbidden(client) -> None:
    token = login(client, "code-alice")

    resp = client.post(f"/api/v1/users/{uuid4()}/deactivate", headers=bearer(token))

    assert resp.status_code == 403
    assert resp.get_json()["detail"] == "Admin access required"


def test_unknown_user(client) -> None:
    token = login(client, "code-boss")

    resp = client.get(f"/api/v1/users/{uuid4()}", headers=bearer(token))

    assert resp.status_code == 404
