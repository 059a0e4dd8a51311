"""Authentication-related Marshmallow schemas.

Input schemas only check shape (required strings, sane lengths). Email
format and password strength are the credential store's rules and come back
as a 400 ``validation`` failure, not a 422.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.String(required=True, validate=validate.Length(min=1, max=254))
    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    first_name = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))
    last_name = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))


class LoginSchema(Schema):
    """Input payload for authenticating by email or username."""

    email_or_username = fields.String(required=True, validate=validate.Length(min=1, max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshTokenSchema(Schema):
    """Input payload carrying a refresh token (refresh and revoke)."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=512))


class TokenResponseSchema(Schema):
    """Response payload for a freshly issued session."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    expires_at = fields.AwareDateTime(required=True)
    token_type = fields.String(dump_default="Bearer")


class SessionSchema(Schema):
    """Active refresh-token session; the token value itself is never exposed."""

    created_at = fields.AwareDateTime()
    expires_at = fields.AwareDateTime()


class WhoAmISchema(Schema):
    """Response payload exposing identity details for the authenticated user."""

    id = fields.UUID(required=True)
    email = fields.String(required=True)
    username = fields.String(required=True)
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    roles = fields.List(fields.String())
