"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite by default, or against the database
    in TEST_DATABASE_URL (e.g. a throwaway PostgreSQL) when set.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Every state-changing request needs the double-submit CSRF header. The first
GET a test client makes picks up the ft_csrf cookie; csrf_headers() does that
GET when needed and returns the matching header.

Helper functions (not fixtures) are provided for common operations:
  - csrf_headers(client)        → {"X-CSRF-Token": "<cookie value>"}
  - register(client, ...)       → user summary; the client is signed in
  - login(client, ...)          → user summary; the client is signed in
  - get_workspace(client, ...)  → workspace view
  - make_item(client, ...)      → item dict

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from backend.finance_tracker import create_app
from backend.finance_tracker.database import close_all
from backend.finance_tracker.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.

    Steps:
      1. Create app with TestingConfig.
      2. Run db.create_all() to create all tables.
      3. Yield the app for the test session.
      4. Drop all tables and release pooled connections at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()
    close_all(flask_app)


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests in FK-safe order.

    Children first: cycles and items reference workspaces, memberships and
    reset tokens reference users.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM completed_cycles"))
            conn.execute(text("DELETE FROM items"))
            conn.execute(text("DELETE FROM workspace_users"))
            conn.execute(text("DELETE FROM password_reset_tokens"))
            conn.execute(text("DELETE FROM workspaces"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


@pytest.fixture
def make_client(app):
    """Factory for extra clients, one per signed-in user in sharing tests."""
    return app.test_client


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def csrf_headers(client) -> dict:
    """Returns the CSRF header matching the client's ft_csrf cookie."""
    cookie = client.get_cookie("ft_csrf")
    if cookie is None:
        client.get("/api/health")
        cookie = client.get_cookie("ft_csrf")
    return {"X-CSRF-Token": cookie.value}


def register(
    client,
    username: str = "alice",
    password: str = "Password123",
    email: str | None = None,
    display_name: str | None = None,
) -> dict:
    """
    Registers a new user and returns the user summary.
    The client keeps the session cookie, so later calls are authenticated.
    """
    if email is None:
        email = f"{username}@test.com"
    resp = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "displayName": display_name or username.title(),
            "email": email,
            "password": password,
        },
        headers=csrf_headers(client),
    )
    assert resp.status_code == 200, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, username: str, password: str = "Password123") -> dict:
    """Logs in a user and returns the user summary."""
    resp = client.post(
        "/api/auth/login",
        json={"username": username, "password": password},
        headers=csrf_headers(client),
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def get_workspace(client, workspace_id: int | None = None) -> dict:
    """Returns the workspace view (own workspace unless an id is given)."""
    query = {} if workspace_id is None else {"workspaceId": workspace_id}
    resp = client.get("/api/workspace", query_string=query)
    assert resp.status_code == 200, f"get_workspace failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_item(
    client,
    workspace_id: int,
    item_type: str = "RENT",
    label: str = "Rent",
    amount: str = "500.00",
    day_of_month: int = 1,
) -> dict:
    """Creates an item and returns the item dict."""
    resp = client.post(
        "/api/items",
        json={
            "workspaceId": workspace_id,
            "type": item_type,
            "label": label,
            "amount": amount,
            "dayOfMonth": day_of_month,
        },
        headers=csrf_headers(client),
    )
    assert resp.status_code == 200, f"make_item failed: {resp.get_json()}"
    return resp.get_json()["data"]
