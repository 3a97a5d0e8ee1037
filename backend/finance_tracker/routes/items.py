"""
routes/items.py — Item route handlers.

Endpoints (url_prefix=/api/items):
  POST   /items                    → 200  created item
  PUT    /items/:id                → 200  updated item
  PATCH  /items/:id/toggle-paid    → 200  updated item, balance adjusted
  DELETE /items/:id                → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.finance_tracker.extensions import db
from backend.finance_tracker.middleware.auth_middleware import require_auth
from backend.finance_tracker.schemas.item_schema import CreateItemSchema, UpdateItemSchema
from backend.finance_tracker.services import item_service

items_bp = Blueprint("items", __name__)


@items_bp.route("", methods=["POST"])
@require_auth
def create_item():
    """POST /items — New unpaid item in a workspace the caller can edit."""
    data = CreateItemSchema().load(request.get_json(silent=True) or {})
    result = item_service.create_item(
        user_id=g.user_id,
        workspace_id=data["workspace_id"],
        item_type=data["type"],
        label=data["label"],
        amount=data["amount"],
        day_of_month=data["day_of_month"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@items_bp.route("/<int:item_id>", methods=["PUT"])
@require_auth
def update_item(item_id: int):
    """PUT /items/:id — Partial update."""
    data = UpdateItemSchema().load(request.get_json(silent=True) or {})
    result = item_service.update_item(
        user_id=g.user_id,
        item_id=item_id,
        changes=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@items_bp.route("/<int:item_id>/toggle-paid", methods=["PATCH"])
@require_auth
def toggle_paid(item_id: int):
    """PATCH /items/:id/toggle-paid"""
    result = item_service.toggle_paid(
        user_id=g.user_id,
        item_id=item_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@items_bp.route("/<int:item_id>", methods=["DELETE"])
@require_auth
def delete_item(item_id: int):
    """DELETE /items/:id"""
    item_service.delete_item(
        user_id=g.user_id,
        item_id=item_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": {"deleted": True, "id": item_id}}), 200
