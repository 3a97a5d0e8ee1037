"""
routes/user.py — Account settings route handlers.

Endpoints (url_prefix=/api/user):
  GET    /user/me/email   → 200  {maskedEmail}
  PUT    /user/email      → 200  {maskedEmail}
  PUT    /user/password   → 200  re-issues the caller's session cookie
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.finance_tracker.extensions import db
from backend.finance_tracker.middleware.auth_middleware import require_auth, set_session_cookie
from backend.finance_tracker.schemas.auth_schema import ChangePasswordSchema
from backend.finance_tracker.schemas.user_schema import UpdateEmailSchema
from backend.finance_tracker.services import auth_service, user_service

user_bp = Blueprint("user", __name__)


@user_bp.route("/me/email", methods=["GET"])
@require_auth
def get_email():
    """GET /user/me/email — Masked address on file."""
    result = user_service.get_masked_email(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@user_bp.route("/email", methods=["PUT"])
@require_auth
def update_email():
    """PUT /user/email — Change address after re-checking the password."""
    data = UpdateEmailSchema().load(request.get_json(silent=True) or {})
    result = user_service.update_email(
        user_id=g.user_id,
        current_password=data["current_password"],
        new_email=data["new_email"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@user_bp.route("/password", methods=["PUT"])
@require_auth
def change_password():
    """PUT /user/password — Other sessions are signed out; this one gets a new cookie."""
    data = ChangePasswordSchema().load(request.get_json(silent=True) or {})
    result = auth_service.change_password(
        user_id=g.user_id,
        current_password=data["current_password"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    response = jsonify({"success": True, "data": result["user"]})
    return set_session_cookie(response, result["token"]), 200
