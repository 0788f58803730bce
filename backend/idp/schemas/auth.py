"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class LoginQuerySchema(Schema):
    """Query string of ``GET /auth/google/login``."""

    class Meta:
        unknown = EXCLUDE

    redirect_uri = fields.String(load_default=None, validate=validate.Length(max=2048))


class CallbackQuerySchema(Schema):
    """Query string sent back by the identity provider."""

    class Meta:
        unknown = EXCLUDE

    code = fields.String(load_default=None, validate=validate.Length(max=2048))
    state = fields.String(load_default=None, validate=validate.Length(max=512))
    error = fields.String(load_default=None)


class RefreshSchema(Schema):
    """Optional JSON body for refresh/logout when the cookie is unavailable."""

    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(load_default=None, validate=validate.Length(min=1, max=512))


class TokenResponseSchema(Schema):
    """Response payload containing an access token."""

    access_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")
    expires_in = fields.Integer(required=True)
