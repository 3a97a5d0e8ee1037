"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"success": true, "data": ...}

The session token never appears in a response body; it travels only in the
HTTP-only session cookie written by auth_middleware.set_session_cookie.

Endpoints (url_prefix=/api/auth):
  POST   /auth/register         → 200  sets session cookie
  POST   /auth/login            → 200  sets session cookie
  POST   /auth/logout           → 200  revokes every session, clears cookie
  GET    /auth/me               → 200
  POST   /auth/forgot-password  → 200  always
  POST   /auth/reset-password   → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.finance_tracker.extensions import db
from backend.finance_tracker.middleware.auth_middleware import (
    clear_session_cookie,
    require_auth,
    set_session_cookie,
)
from backend.finance_tracker.middleware.rate_limit import (
    login_limit,
    password_reset_limit,
    register_limit,
)
from backend.finance_tracker.schemas.auth_schema import (
    ForgotPasswordSchema,
    LoginSchema,
    RegisterSchema,
    ResetPasswordSchema,
)
from backend.finance_tracker.services import auth_service

auth_bp = Blueprint("auth", __name__)

_FORGOT_PASSWORD_MESSAGE = (
    "If an account with that username exists and has an email on file, "
    "a reset link has been sent."
)


@auth_bp.route("/register", methods=["POST"])
@register_limit
def register():
    """POST /auth/register — Create account and owned workspace; sign in."""
    data = RegisterSchema().load(request.get_json(silent=True) or {})
    result = auth_service.register_user(
        username=data["username"],
        display_name=data["display_name"],
        password=data["password"],
        email=data["email"],
        session=db.session,
    )
    db.session.commit()
    response = jsonify({"success": True, "data": result["user"]})
    return set_session_cookie(response, result["token"]), 200


@auth_bp.route("/login", methods=["POST"])
@login_limit
def login():
    """POST /auth/login — Check credentials; sign in."""
    data = LoginSchema().load(request.get_json(silent=True) or {})
    result = auth_service.login_user(
        username=data["username"],
        password=data["password"],
        session=db.session,
    )
    response = jsonify({"success": True, "data": result["user"]})
    return set_session_cookie(response, result["token"]), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /auth/logout — Sign out on every device."""
    auth_service.logout_user(user_id=g.user_id, session=db.session)
    db.session.commit()
    response = jsonify({"success": True, "data": {"loggedOut": True}})
    return clear_session_cookie(response), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return the authenticated user's summary."""
    result = auth_service.get_current_user(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@auth_bp.route("/forgot-password", methods=["POST"])
@password_reset_limit
def forgot_password():
    """POST /auth/forgot-password — Same answer whether or not the user exists."""
    data = ForgotPasswordSchema().load(request.get_json(silent=True) or {})
    auth_service.request_password_reset(username=data["username"], session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": {"message": _FORGOT_PASSWORD_MESSAGE}}), 200


@auth_bp.route("/reset-password", methods=["POST"])
@password_reset_limit
def reset_password():
    """POST /auth/reset-password — Spend a reset token; signs out every session."""
    data = ResetPasswordSchema().load(request.get_json(silent=True) or {})
    auth_service.reset_password(
        raw_token=data["token"],
        new_password=data["new_password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "success": True,
        "data": {"message": "Password has been reset. Please sign in."},
    }), 200
