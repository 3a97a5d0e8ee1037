"""
middleware/csrf_middleware.py — Double-submit cookie CSRF protection.

A random token lives in a JavaScript-readable cookie (CSRF_COOKIE_NAME,
default "ft_csrf"). The browser client copies it into a request header
(CSRF_HEADER_NAME, default "X-CSRF-Token") on every state-changing call.
A cross-site page can make the browser send the cookie but cannot read it,
so it cannot produce the matching header.

Rules:
  - GET, HEAD and OPTIONS are never checked.
  - Only paths under /api/ are checked.
  - Header and cookie must both be present and equal (constant-time
    comparison); otherwise CSRF_INVALID (403) before any view runs, whether
    or not the caller is authenticated.
  - A request without the cookie gets a fresh token set on its response,
    including error responses.

Nothing is stored server-side.
"""

from __future__ import annotations

import secrets

from flask import Flask, Response, current_app, g, request

from backend.finance_tracker.errors import AppError, ErrorCode

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
PROTECTED_PREFIX = "/api/"


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def tokens_match(cookie_token: str | None, header_token: str | None) -> bool:
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(cookie_token, header_token)


def init_csrf(app: Flask) -> None:
    """Registers the before/after request hooks on `app`."""

    @app.before_request
    def verify_csrf_token():
        config = current_app.config
        cookie_token = request.cookies.get(config["CSRF_COOKIE_NAME"])
        if not cookie_token:
            g.new_csrf_token = generate_csrf_token()

        if request.method in SAFE_METHODS or not request.path.startswith(PROTECTED_PREFIX):
            return None

        header_token = request.headers.get(config["CSRF_HEADER_NAME"])
        if not tokens_match(cookie_token, header_token):
            raise AppError(ErrorCode.CSRF_INVALID, "Invalid CSRF token.", 403)
        return None

    @app.after_request
    def set_csrf_cookie(response: Response) -> Response:
        token = g.pop("new_csrf_token", None)
        if token:
            config = current_app.config
            response.set_cookie(
                config["CSRF_COOKIE_NAME"],
                token,
                path="/",
                secure=bool(config.get("SESSION_COOKIE_SECURE")),
                httponly=False,
                samesite="Strict",
            )
        return response
