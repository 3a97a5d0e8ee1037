"""
schemas/user_schema.py — Marshmallow schema for account e-mail changes.

Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, pre_load, validate


class UpdateEmailSchema(Schema):
    """
    PUT /user/email

    The password re-check and DUPLICATE_EMAIL (409) live in user_service.py.
    """

    current_password = fields.Str(required=True, load_only=True, data_key="currentPassword")
    new_email = fields.Email(
        required=True,
        data_key="newEmail",
        validate=validate.Length(max=254),
    )

    @pre_load
    def strip_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("newEmail"), str):
            data = dict(data)
            data["newEmail"] = data["newEmail"].strip()
        return data
