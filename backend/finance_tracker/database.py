"""
database.py — Connection lifecycle and health probing.

The Flask-SQLAlchemy extension in extensions.py opens its engine when
db.init_app(app) runs inside create_app(). This module provides the other
half of the lifecycle plus the health probe used by GET /api/health.
"""

from __future__ import annotations

from flask import Flask
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.finance_tracker.extensions import db


def check_health(session: Session) -> bool:
    """Returns True if the database answers a trivial query."""
    try:
        session.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        session.rollback()
        return False


def close_all(app: Flask) -> None:
    """
    Disposes every engine the extension holds for `app`, closing all pooled
    connections. Safe to call more than once; a later request re-opens the
    pool on demand.
    """
    with app.app_context():
        db.session.remove()
        for engine in db.engines.values():
            engine.dispose()
