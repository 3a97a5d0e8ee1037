"""
schemas/workspace_schema.py — Marshmallow schemas for workspace endpoints.

Amounts are accepted as JSON numbers or decimal strings and loaded as
Decimal. More than 2 decimal places is rejected with
INVALID_AMOUNT_PRECISION, never rounded.

Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from backend.finance_tracker.errors import ErrorCode


# Upper bound of a NUMERIC(12, 2) column.
MAX_AMOUNT = Decimal("9999999999.99")


def validate_precision(value: Decimal) -> None:
    """
    Rejects values with more than 2 decimal places.

    The global ValidationError handler recognises the ErrorCode constant as
    the message and responds with that code.
    """
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _workspace_id_field() -> fields.Int:
    return fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        data_key="workspaceId",
        validate=validate.Range(min=1, error="workspaceId must be a positive integer."),
    )


class UpdateBalanceSchema(Schema):
    """
    PUT /workspace/balance

    The balance may be negative (overdrawn account) but is bounded by the
    column size.
    """

    balance = fields.Decimal(
        required=True,
        allow_nan=False,
        validate=[
            validate.Range(
                min=-MAX_AMOUNT,
                max=MAX_AMOUNT,
                error="Balance is out of range.",
            ),
            validate_precision,
        ],
    )
    workspace_id = _workspace_id_field()


class ResetWorkspaceSchema(Schema):
    """POST /workspace/reset — workspaceId defaults to the caller's own workspace."""

    workspace_id = _workspace_id_field()
