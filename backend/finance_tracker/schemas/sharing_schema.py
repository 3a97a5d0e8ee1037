"""
schemas/sharing_schema.py — Marshmallow schemas for workspace sharing.

Only MEMBER and VIEWER can be granted; OWNER is assigned at registration
and never through the API. Whether the caller may grant the requested level
is checked in sharing_service.py (FORBIDDEN, 403).

Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from backend.finance_tracker.models.workspace_user import Permission


class AddMemberSchema(Schema):
    """POST /workspace/:id/members"""

    user_id = fields.Int(
        required=True,
        strict=True,
        data_key="userId",
        validate=validate.Range(min=1, error="userId must be a positive integer."),
    )
    permission = fields.Enum(
        Permission,
        required=True,
        by_value=True,
        validate=validate.OneOf(
            [Permission.MEMBER, Permission.VIEWER],
            error="Permission must be MEMBER or VIEWER.",
        ),
    )


class UserSearchSchema(Schema):
    """GET /users/search?username="""

    username = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=30, error="Username query parameter is required."),
    )
