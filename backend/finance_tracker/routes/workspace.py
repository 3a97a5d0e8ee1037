"""
routes/workspace.py — Workspace, balance and cycle archive route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints (url_prefix=/api/workspace):
  GET    /workspace?workspaceId=   → 200  workspace view (own workspace by default)
  PUT    /workspace/balance        → 200  updated workspace
  GET    /workspace/cycles         → 200  completed cycles, newest first
  DELETE /workspace/cycles/:id     → 200
  POST   /workspace/reset          → 200  archived cycle summary
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.extensions import db
from backend.finance_tracker.middleware.auth_middleware import require_auth
from backend.finance_tracker.schemas.workspace_schema import (
    ResetWorkspaceSchema,
    UpdateBalanceSchema,
)
from backend.finance_tracker.services import workspace_service

workspace_bp = Blueprint("workspace", __name__)


def _workspace_id_arg() -> int | None:
    """
    Strictly parses ?workspaceId=. "12abc", "1.5" and "-3" are rejected
    rather than truncated.
    """
    raw = request.args.get("workspaceId")
    if raw is None or raw == "":
        return None
    if not raw.isdigit() or int(raw) < 1:
        raise AppError(
            ErrorCode.INVALID_ID,
            "workspaceId must be a positive integer.",
            400,
            field="workspaceId",
        )
    return int(raw)


@workspace_bp.route("", methods=["GET"])
@require_auth
def get_workspace():
    """GET /workspace — Balance, items, balance cards and cycle label."""
    result = workspace_service.get_workspace(
        user_id=g.user_id,
        workspace_id=_workspace_id_arg(),
        session=db.session,
    )
    # get_workspace may persist a refreshed cycle window.
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@workspace_bp.route("/balance", methods=["PUT"])
@require_auth
def update_balance():
    """PUT /workspace/balance — Overwrite the current balance."""
    data = UpdateBalanceSchema().load(request.get_json(silent=True) or {})
    result = workspace_service.update_balance(
        user_id=g.user_id,
        balance=data["balance"],
        workspace_id=data["workspace_id"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@workspace_bp.route("/cycles", methods=["GET"])
@require_auth
def list_cycles():
    """GET /workspace/cycles — Archived cycles of the caller's own workspace."""
    result = workspace_service.list_cycles(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@workspace_bp.route("/cycles/<int:cycle_id>", methods=["DELETE"])
@require_auth
def delete_cycle(cycle_id: int):
    """DELETE /workspace/cycles/:id"""
    workspace_service.delete_cycle(
        user_id=g.user_id,
        cycle_id=cycle_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": {"deleted": True, "id": cycle_id}}), 200


@workspace_bp.route("/reset", methods=["POST"])
@require_auth
def reset_workspace():
    """POST /workspace/reset — Archive the cycle and mark every item unpaid."""
    data = ResetWorkspaceSchema().load(request.get_json(silent=True) or {})
    result = workspace_service.reset_workspace(
        user_id=g.user_id,
        workspace_id=data["workspace_id"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200
