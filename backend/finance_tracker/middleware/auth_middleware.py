"""
middleware/auth_middleware.py — Session-cookie authentication decorator.

The @require_auth decorator:
  1. Reads the session cookie (SESSION_COOKIE_NAME, default "ft_token")
  2. Hands it to auth_service.authenticate_session, which verifies the JWT
     signature and expiry and compares its embedded token version with the
     user's current one
  3. Attaches user_id (int) and username to flask.g for the request
  4. Lets the 401 AppError propagate if any step fails

Strict responsibility boundary:
  - This middleware authenticates (401) only. Workspace permissions (403)
    are enforced in the service layer.
  - Services receive user_id as a plain integer argument, with no knowledge
    of cookies or headers.

Cookie helpers:
  set_session_cookie / clear_session_cookie are the only places the session
  cookie is written. HTTP-only, SameSite=Strict, path "/", Secure when
  SESSION_COOKIE_SECURE is set, Max-Age equal to the token lifetime.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import Response, current_app, g, request

from backend.finance_tracker.extensions import db
from backend.finance_tracker.services import auth_service


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces session authentication.

    Usage:
        @items_bp.route("/", methods=["POST"])
        @require_auth
        def create_item():
            user_id = g.user_id  # always an int when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """Sets flask.g.user_id and flask.g.username, or raises AppError(401)."""
    raw_token = request.cookies.get(current_app.config["SESSION_COOKIE_NAME"])
    identity = auth_service.authenticate_session(raw_token, db.session)
    g.user_id = identity["user_id"]
    g.username = identity["username"]


def set_session_cookie(response: Response, token: str) -> Response:
    config = current_app.config
    response.set_cookie(
        config["SESSION_COOKIE_NAME"],
        token,
        max_age=int(config["SESSION_TTL"].total_seconds()),
        path="/",
        secure=bool(config.get("SESSION_COOKIE_SECURE")),
        httponly=True,
        samesite="Strict",
    )
    return response


def clear_session_cookie(response: Response) -> Response:
    config = current_app.config
    response.delete_cookie(
        config["SESSION_COOKIE_NAME"],
        path="/",
        secure=bool(config.get("SESSION_COOKIE_SECURE")),
        httponly=True,
        samesite="Strict",
    )
    return response
