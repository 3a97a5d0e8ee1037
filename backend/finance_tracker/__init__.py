"""
finance_tracker/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the models without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name] and validate it
  2. Initialise extensions (SQLAlchemy, Marshmallow, Limiter) via init_app()
     and trust TRUSTED_PROXY_COUNT proxies for the client address
  3. Register all route blueprints under /api
  4. Install the CSRF guard
  5. Register global error handlers (AppError, ValidationError,
     RateLimitExceeded, HTTPException, Exception → JSON envelope)
  6. Register a custom JSON provider to serialise Decimal as string
  7. CORS for ALLOWED_ORIGINS and baseline security headers

Note on model imports:
  All model modules are imported inside create_app() so that SQLAlchemy's
  metadata is populated before db.create_all() or Alembic inspect it.
"""

from __future__ import annotations

import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask_limiter import RateLimitExceeded
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from backend.config import (
    config_by_name,
    validate_production_config,
    validate_security_config,
)


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.
# Monetary amounts are serialised as strings so no precision is lost in a
# JavaScript client.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.

    Raises:
        ValueError: the configuration is unsafe (bad encryption key, or a
                    placeholder secret in production).
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    validate_security_config(app)
    if config_name == "production":
        validate_production_config(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    from backend.finance_tracker.extensions import db, limiter, ma
    db.init_app(app)
    ma.init_app(app)
    limiter.init_app(app)

    # Rate limits key on request.remote_addr, so behind a proxy it must be
    # taken from X-Forwarded-For. Only as many hops as there are proxies.
    proxy_count = app.config.get("TRUSTED_PROXY_COUNT", 0)
    if proxy_count:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxy_count)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from backend.finance_tracker.models import (  # noqa: F401
            item,
            password_reset_token,
            user,
            workspace,
            workspace_user,
        )

    _register_blueprints(app)

    from backend.finance_tracker.middleware.csrf_middleware import init_csrf
    init_csrf(app)

    _register_error_handlers(app)
    _register_response_headers(app)

    app.logger.info("Finance Tracker API created with '%s' configuration", config_name)
    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api prefix.

    sharing_bp is registered at /api because it owns /users/search,
    /workspaces/shared and /workspace/<id>/members.
    """
    from backend.finance_tracker.routes.auth import auth_bp
    from backend.finance_tracker.routes.health import health_bp
    from backend.finance_tracker.routes.items import items_bp
    from backend.finance_tracker.routes.sharing import sharing_bp
    from backend.finance_tracker.routes.user import user_bp
    from backend.finance_tracker.routes.workspace import workspace_bp

    app.register_blueprint(health_bp,    url_prefix="/api")
    app.register_blueprint(auth_bp,      url_prefix="/api/auth")
    app.register_blueprint(user_bp,      url_prefix="/api/user")
    app.register_blueprint(workspace_bp, url_prefix="/api/workspace")
    app.register_blueprint(items_bp,     url_prefix="/api/items")
    app.register_blueprint(sharing_bp,   url_prefix="/api")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → envelope with the error's code and HTTP status
      RateLimitExceeded → RATE_LIMITED (429) with the route limit's message
      ValidationError → first field error as MISSING_FIELD / INVALID_FIELD /
                        a registered code (400)
      HTTPException   → werkzeug's own status (404 for unknown routes, 405,
                        400 for malformed bodies) in the same envelope
      Exception       → INTERNAL_ERROR (500); traceback logged, never sent.
                        The exception text is echoed only when DEBUG is on.
    """
    from backend.finance_tracker.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limit(error: RateLimitExceeded):
        app.logger.info(
            "Rate limit %s exceeded for %s on %s",
            error.limit.limit, request.remote_addr, request.path,
        )
        body = AppError(ErrorCode.RATE_LIMITED, error.description, 429).to_dict()
        return jsonify(body), 429

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Marshmallow raises ValidationError with a messages dict keyed by
        field name (data_key, so camelCase). Only the FIRST error is returned.
        """
        field, raw_message = _first_validation_message(error.messages)
        known_codes = set(vars(ErrorCode).values())

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = f"{field} is required." if field else raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        return jsonify(AppError(code, message, 400, field=field).to_dict()), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = ErrorCode.NOT_FOUND if error.code == 404 else ErrorCode.INVALID_FIELD
        if error.code and error.code >= 500:
            code = ErrorCode.INTERNAL_ERROR
        return jsonify({
            "success": False,
            "error": error.description or error.name,
            "code": code,
        }), error.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        message = "An unexpected error occurred. Please try again later."
        if app.config.get("DEBUG"):
            message = str(error) or message
        return jsonify({
            "success": False,
            "error": message,
            "code": ErrorCode.INTERNAL_ERROR,
        }), 500


def _first_validation_message(messages) -> tuple[str | None, str]:
    """Returns (field, message) for the first error in a marshmallow messages structure."""
    if isinstance(messages, dict):
        for field_name, field_errors in messages.items():
            field = None if field_name == "_schema" else str(field_name)
            if isinstance(field_errors, dict):
                _, message = _first_validation_message(field_errors)
            elif isinstance(field_errors, list) and field_errors:
                message = str(field_errors[0])
            else:
                message = str(field_errors)
            return field, message
    elif isinstance(messages, list) and messages:
        return None, str(messages[0])
    return None, "Invalid input."


def _register_response_headers(app: Flask) -> None:
    """
    CORS for the configured front-end origins (credentials allowed, since the
    session travels in a cookie) and a few baseline security headers.

    In DEBUG any Origin is reflected so a dev server on another local port
    can call the API.
    """

    @app.after_request
    def add_headers(response):
        origin = request.headers.get("Origin")
        allowed = app.config.get("ALLOWED_ORIGINS") or []

        if origin and (origin in allowed or app.config.get("DEBUG")):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = (
                "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            )
            response.headers["Access-Control-Allow-Headers"] = (
                f"Content-Type, {app.config['CSRF_HEADER_NAME']}"
            )

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "same-origin")
        return response


def _code_to_message(code: str) -> str:
    """
    Human-readable message for a ValidationError whose message IS an error
    code constant (e.g. INVALID_AMOUNT_PRECISION from the amount validators).
    """
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
    }
    return _messages.get(code, "Invalid input.")
