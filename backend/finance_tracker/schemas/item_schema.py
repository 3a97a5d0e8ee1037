"""
schemas/item_schema.py — Marshmallow schemas for item endpoints.

Validation responsibility:
  - This file:
      - Item type enum, label length (non-empty after trim)
      - Amount strictly positive with at most 2 dp (INVALID_AMOUNT_PRECISION)
      - dayOfMonth in 1..31
      - isPaid must be a real boolean
  - services/item_service.py:
      - Edit permission (FORBIDDEN, 403) — requires DB membership lookup
      - ITEM_NOT_FOUND (404)

Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, pre_load, validate, validates_schema

from backend.finance_tracker.models.item import ItemType
from backend.finance_tracker.schemas.workspace_schema import MAX_AMOUNT, validate_precision


# ── Shared field validators ────────────────────────────────────────────────

def _validate_positive_amount(value: Decimal) -> None:
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value > MAX_AMOUNT:
        raise ValidationError("Amount is too large.")
    validate_precision(value)


def _validate_non_empty_after_trim(value: str) -> None:
    """Mirrors the DB CHECK on label; Length(min=1) alone would accept '   '."""
    if not value.strip():
        raise ValidationError("Label is required.")


def _label_field(required: bool) -> fields.Str:
    return fields.Str(
        required=required,
        validate=[
            validate.Length(max=100, error="Label must be at most 100 characters."),
            _validate_non_empty_after_trim,
        ],
    )


def _strip_label(data):
    if isinstance(data, dict) and isinstance(data.get("label"), str):
        data = dict(data)
        data["label"] = data["label"].strip()
    return data


_DAY_RANGE = validate.Range(min=1, max=31, error="dayOfMonth must be between 1 and 31.")


# ── Create item ────────────────────────────────────────────────────────────

class CreateItemSchema(Schema):
    """POST /items"""

    workspace_id = fields.Int(
        required=True,
        strict=True,
        data_key="workspaceId",
        validate=validate.Range(min=1, error="workspaceId must be a positive integer."),
    )
    type = fields.Enum(ItemType, required=True, by_value=True)
    label = _label_field(required=True)
    amount = fields.Decimal(
        required=True,
        allow_nan=False,
        validate=_validate_positive_amount,
    )
    day_of_month = fields.Int(
        required=True,
        strict=True,
        data_key="dayOfMonth",
        validate=_DAY_RANGE,
    )

    @pre_load
    def strip_label(self, data, **kwargs):
        return _strip_label(data)


# ── Update item ────────────────────────────────────────────────────────────

class UpdateItemSchema(Schema):
    """
    PUT /items/:id

    Every field is optional; only the keys present are changed. An empty
    body is rejected so a no-op PUT does not silently succeed.
    """

    type = fields.Enum(ItemType, by_value=True)
    label = _label_field(required=False)
    amount = fields.Decimal(allow_nan=False, validate=_validate_positive_amount)
    day_of_month = fields.Int(strict=True, data_key="dayOfMonth", validate=_DAY_RANGE)
    is_paid = fields.Bool(
        data_key="isPaid",
        truthy={True},
        falsy={False},
        error_messages={"invalid": "isPaid must be a boolean."},
    )

    @pre_load
    def strip_label(self, data, **kwargs):
        return _strip_label(data)

    @validates_schema
    def require_some_field(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("At least one field must be provided.")
