"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy, marshmallow and the rate limiter as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in finance_tracker/__init__.py.
    3. Import `db`, `ma` or `limiter` from here wherever needed.

The `db` object is the only holder of database engines in the process. It
owns one engine (and therefore one connection pool) per application it has
been attached to; finance_tracker.database.close_all() releases them.
"""

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_sqlalchemy import SQLAlchemy
from flask_marshmallow import Marshmallow

db = SQLAlchemy()

# Marshmallow instance, initialised with the app for completeness.
#
# Schema inheritance rule:
#   Validation Schema classes in finance_tracker/schemas/ inherit from
#   marshmallow.Schema directly, NOT from ma.Schema. ma.Schema needs an
#   active Flask application context, and the schema unit tests run
#   without one.
ma = Marshmallow()

# Rate limiter keyed on the client address. Behind a reverse proxy the
# address is only meaningful once ProxyFix has rewritten REMOTE_ADDR, see
# TRUSTED_PROXY_COUNT in config.py. Storage comes from RATELIMIT_STORAGE_URI.
#
# One Limiter serves every app it is attached to: init_app() copies the
# app's RATELIMIT_ENABLED onto the limiter itself.
limiter = Limiter(key_func=get_remote_address)
