"""
Integration tests for GET /api/health and the shared response envelope.
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from backend.finance_tracker.extensions import db


def test_health_ok(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "status": "ok"}


def test_health_unavailable(client, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db.session, "execute", broken)

    resp = client.get("/api/health")

    assert resp.status_code == 503
    assert resp.get_json() == {"success": False, "status": "unavailable"}


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/does-not-exist")

    body = resp.get_json()
    assert resp.status_code == 404
    assert body["success"] is False
    assert body["code"] == "NOT_FOUND"


def test_security_headers(client):
    resp = client.get("/api/health")

    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
