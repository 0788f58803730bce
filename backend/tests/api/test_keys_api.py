"""Public verification key endpoints."""

from __future__ import annotations


def test_public_key_is_pem(client, keys) -> None:
    resp = client.get("/api/v1/public-key")

    assert resp.status_code == 200
    assert resp.mimetype == "text/plain"
    assert resp.get_data(as_text=True) == keys.public_pem()
    assert "max-age" in resp.headers["Cache-Control"]


def test_jwks(client, keys) -> None:
    resp = client.get("/api/v1/.well-known/jwks.json")

    assert resp.status_code == 200
    (jwk,) = resp.get_json()["keys"]
    assert jwk["kid"] == keys.kid
    assert jwk["alg"] == "RS256"
    assert "d" not in jwk


def test_unknown_route_is_problem_json(client) -> None:
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    assert resp.get_json()["request_id"]
