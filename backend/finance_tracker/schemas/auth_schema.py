"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, regex patterns, password policy.
  - services/auth_service.py: DUPLICATE_USERNAME / DUPLICATE_EMAIL checks
    (cross-entity: require a DB lookup — not a schema concern).

Request bodies use camelCase keys (displayName, newPassword, ...); the
loaded dicts use snake_case via data_key.

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, pre_load, validate, validates


# ── Shared password policy ─────────────────────────────────────────────────
#
# Applied to every field that sets a new password (register, reset, change).
# One message per missing rule, first failure wins.
# ──────────────────────────────────────────────────────────────────────────

_BCRYPT_MAX_BYTES = 72


def validate_password_strength(value: str) -> None:
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")
    if len(value) > 128:
        raise ValidationError("Password must be at most 128 characters long.")
    # bcrypt refuses input longer than 72 bytes.
    if len(value.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {_BCRYPT_MAX_BYTES} bytes when UTF-8 encoded."
        )
    if not any(c.isupper() for c in value):
        raise ValidationError("Password must contain at least one uppercase letter.")
    if not any(c.islower() for c in value):
        raise ValidationError("Password must contain at least one lowercase letter.")
    if not any(c.isdigit() for c in value):
        raise ValidationError("Password must contain at least one digit.")


def _strip_strings(data, keys: tuple[str, ...]):
    if not isinstance(data, dict):
        return data
    data = dict(data)
    for key in keys:
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    return data


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      username    : 3–30 chars, letters, digits and underscore only
      displayName : 1–50 chars after trimming
      email       : valid address, max 254 chars
      password    : policy above
    """

    username = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=3,
                max=30,
                error="Username must be between 3 and 30 characters.",
            ),
            validate.Regexp(
                r"^[a-zA-Z0-9_]+$",
                error="Username may only contain letters, numbers, and underscores.",
            ),
        ],
    )

    display_name = fields.Str(
        required=True,
        data_key="displayName",
        validate=validate.Length(
            min=1,
            max=50,
            error="Display name must be between 1 and 50 characters.",
        ),
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=254),
    )

    password = fields.Str(required=True, load_only=True)

    @pre_load
    def strip_whitespace(self, data, **kwargs):
        return _strip_strings(data, ("username", "displayName", "email"))

    @validates("password")
    def validate_password(self, value: str, **kwargs) -> None:
        validate_password_strength(value)


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py
    (INVALID_CREDENTIALS, 401).
    """

    username = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)

    @pre_load
    def strip_whitespace(self, data, **kwargs):
        return _strip_strings(data, ("username",))


class ForgotPasswordSchema(Schema):
    """POST /auth/forgot-password — the response never reveals whether the user exists."""

    username = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=30),
    )

    @pre_load
    def strip_whitespace(self, data, **kwargs):
        return _strip_strings(data, ("username",))


class ResetPasswordSchema(Schema):
    """
    POST /auth/reset-password

    The raw token is 64 hex chars. Anything else cannot match a stored hash,
    but the check happens in the service so every bad token gets the same
    INVALID_RESET_TOKEN response.
    """

    token = fields.Str(required=True, validate=validate.Length(min=1, max=256))
    new_password = fields.Str(
        required=True,
        load_only=True,
        data_key="newPassword",
        validate=validate_password_strength,
    )


class ChangePasswordSchema(Schema):
    """PUT /user/password"""

    current_password = fields.Str(required=True, load_only=True, data_key="currentPassword")
    new_password = fields.Str(
        required=True,
        load_only=True,
        data_key="newPassword",
        validate=validate_password_strength,
    )
