"""
routes/sharing.py — User search and workspace membership route handlers.

sharing_bp is registered at /api (not /api/sharing) because it owns paths
under three resources: /users, /workspaces and /workspace/:id/members.

Endpoints:
  GET    /users/search?username=             → 200  user summary or null
  GET    /workspaces/shared                  → 200  workspaces shared with the caller
  GET    /workspace/:id/members              → 200  member list
  POST   /workspace/:id/members              → 200  new membership
  DELETE /workspace/:id/members/:uid         → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.finance_tracker.extensions import db
from backend.finance_tracker.middleware.auth_middleware import require_auth
from backend.finance_tracker.middleware.rate_limit import user_search_limit
from backend.finance_tracker.schemas.sharing_schema import AddMemberSchema, UserSearchSchema
from backend.finance_tracker.services import sharing_service

sharing_bp = Blueprint("sharing", __name__)


@sharing_bp.route("/users/search", methods=["GET"])
@require_auth
@user_search_limit
def search_user():
    """GET /users/search — Exact, case-insensitive username lookup."""
    data = UserSearchSchema().load({"username": request.args.get("username", "")})
    result = sharing_service.search_user(
        caller_id=g.user_id,
        username=data["username"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@sharing_bp.route("/workspaces/shared", methods=["GET"])
@require_auth
def list_shared_workspaces():
    """GET /workspaces/shared — Workspaces the caller belongs to but does not own."""
    result = sharing_service.list_shared_workspaces(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@sharing_bp.route("/workspace/<int:workspace_id>/members", methods=["GET"])
@require_auth
def list_members(workspace_id: int):
    """GET /workspace/:id/members — Any member may list."""
    result = sharing_service.list_members(
        caller_id=g.user_id,
        workspace_id=workspace_id,
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@sharing_bp.route("/workspace/<int:workspace_id>/members", methods=["POST"])
@require_auth
def add_member(workspace_id: int):
    """POST /workspace/:id/members — Grant MEMBER or VIEWER access."""
    data = AddMemberSchema().load(request.get_json(silent=True) or {})
    result = sharing_service.add_member(
        caller_id=g.user_id,
        workspace_id=workspace_id,
        target_user_id=data["user_id"],
        permission=data["permission"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@sharing_bp.route("/workspace/<int:workspace_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(workspace_id: int, target_uid: int):
    """DELETE /workspace/:id/members/:uid — Leave, or remove someone else."""
    sharing_service.remove_member(
        caller_id=g.user_id,
        workspace_id=workspace_id,
        target_user_id=target_uid,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "success": True,
        "data": {
            "removed": True,
            "workspaceId": workspace_id,
            "userId": target_uid,
        },
    }), 200
