"""
routes/health.py — Liveness/readiness probe.

GET /api/health → 200 {"success": true, "status": "ok"}
                  503 {"success": false, "status": "unavailable"} when the
                  database does not answer.
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from backend.finance_tracker.database import check_health
from backend.finance_tracker.extensions import db

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    if check_health(db.session):
        return jsonify({"success": True, "status": "ok"}), 200
    return jsonify({"success": False, "status": "unavailable"}), 503
