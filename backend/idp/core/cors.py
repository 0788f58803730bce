"""CORS configuration helper for API resources."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS


def init_app(app: Flask) -> None:
    """Configure CORS for API endpoints from ``ALLOWED_ORIGINS``.

    Parameters
    ----------
    app: flask.Flask
        Application whose ``ALLOWED_ORIGINS`` and ``CORS_MAX_AGE`` settings are
        consulted. The same list bounds the post-login redirect targets, so
        credentials (the refresh cookie) are only shared with those origins.
        An empty list disables cross-origin access entirely.
    """
    origins = list(app.config.get("ALLOWED_ORIGINS") or [])
    if not origins:
        return

    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
