"""
Integration tests for authentication endpoints.

Covers:
  - Registration: success, duplicate username/email, validation errors
  - Login: success, wrong password, unknown user (same error)
  - Session cookie: attributes, /me, logout revokes every session
  - Password change: old sessions revoked, caller stays signed in
  - Password reset: full forgot → reset → login round, token reuse rejected
"""

from __future__ import annotations

import pytest

from backend.finance_tracker.services import email_service
from .conftest import csrf_headers, login, register


def _post(client, path: str, body: dict):
    return client.post(path, json=body, headers=csrf_headers(client))


# ═══════════════════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════════════════

class TestRegister:

    def test_register_returns_summary_and_signs_in(self, client):
        user = register(client, "alice", display_name="Alice A")

        assert user["username"] == "alice"
        assert user["displayName"] == "Alice A"
        assert "password" not in user
        assert "email" not in user

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.get_json()["data"]["id"] == user["id"]

    def test_session_cookie_attributes(self, client):
        resp = _post(client, "/api/auth/register", {
            "username": "alice", "displayName": "Alice",
            "email": "alice@test.com", "password": "Password123",
        })

        set_cookie = [h for h in resp.headers.getlist("Set-Cookie") if h.startswith("ft_token=")]
        assert len(set_cookie) == 1
        assert "HttpOnly" in set_cookie[0]
        assert "SameSite=Strict" in set_cookie[0]
        assert "Max-Age=86400" in set_cookie[0]
        assert "ft_token" not in resp.get_data(as_text=True)

    def test_register_creates_owned_workspace(self, client):
        register(client, "alice")

        resp = client.get("/api/workspace")

        data = resp.get_json()["data"]
        assert data["permission"] == "OWNER"
        assert data["workspace"]["balance"] == "0.00"
        assert data["items"] == []
        assert data["cycleLabel"]

    def test_duplicate_username(self, client, make_client):
        register(client, "alice")

        resp = _post(make_client(), "/api/auth/register", {
            "username": "alice", "displayName": "Other",
            "email": "other@test.com", "password": "Password123",
        })

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_USERNAME"

    def test_duplicate_email_is_case_insensitive(self, client, make_client):
        register(client, "alice", email="alice@test.com")

        resp = _post(make_client(), "/api/auth/register", {
            "username": "bob", "displayName": "Bob",
            "email": "  ALICE@Test.com ", "password": "Password123",
        })

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_EMAIL"

    def test_missing_field(self, client):
        resp = _post(client, "/api/auth/register", {
            "username": "alice", "email": "alice@test.com", "password": "Password123",
        })

        body = resp.get_json()
        assert resp.status_code == 400
        assert body["success"] is False
        assert body["code"] == "MISSING_FIELD"
        assert body["field"] == "displayName"

    def test_weak_password(self, client):
        resp = _post(client, "/api/auth/register", {
            "username": "alice", "displayName": "Alice",
            "email": "alice@test.com", "password": "password",
        })

        assert resp.status_code == 400
        assert resp.get_json()["field"] == "password"

    def test_password_longer_than_72_bytes_rejected(self, client):
        resp = _post(client, "/api/auth/register", {
            "username": "alice", "displayName": "Alice",
            "email": "alice@test.com", "password": "Aa1" + "x" * 77,
        })

        body = resp.get_json()
        assert resp.status_code == 400
        assert body["code"] == "INVALID_FIELD"
        assert body["field"] == "password"


# ═══════════════════════════════════════════════════════════════════════════
# Login / logout / me
# ═══════════════════════════════════════════════════════════════════════════

class TestLogin:

    def test_login_success(self, client, make_client):
        user = register(client, "alice")

        other = make_client()
        data = login(other, "alice")

        assert data == user
        assert other.get("/api/auth/me").status_code == 200

    @pytest.mark.parametrize("username, password", [
        ("alice", "WrongPass1"),
        ("nobody", "Password123"),
    ])
    def test_bad_credentials_share_one_answer(self, client, make_client, username, password):
        register(client, "alice")

        resp = _post(make_client(), "/api/auth/login", {"username": username, "password": password})

        body = resp.get_json()
        assert resp.status_code == 401
        assert body["code"] == "INVALID_CREDENTIALS"
        assert body["error"] == "Invalid username or password."

    def test_me_without_cookie(self, client):
        resp = client.get("/api/auth/me")

        assert resp.status_code == 401
        assert resp.get_json()["code"] == "NOT_AUTHENTICATED"

    def test_logout_revokes_every_session(self, client, make_client):
        register(client, "alice")
        second_device = make_client()
        login(second_device, "alice")

        resp = _post(client, "/api/auth/logout", {})

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"loggedOut": True}
        assert client.get("/api/auth/me").status_code == 401
        assert second_device.get("/api/auth/me").status_code == 401

    def test_logout_requires_auth(self, client):
        resp = _post(client, "/api/auth/logout", {})
        assert resp.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════
# Password change
# ═══════════════════════════════════════════════════════════════════════════

class TestChangePassword:

    def test_change_password_keeps_caller_signed_in(self, client, make_client):
        register(client, "alice")
        other_device = make_client()
        login(other_device, "alice")

        resp = client.put(
            "/api/user/password",
            json={"currentPassword": "Password123", "newPassword": "NewPassword456"},
            headers=csrf_headers(client),
        )

        assert resp.status_code == 200
        assert client.get("/api/auth/me").status_code == 200
        assert other_device.get("/api/auth/me").status_code == 401
        login(make_client(), "alice", "NewPassword456")

    def test_wrong_current_password(self, client):
        register(client, "alice")

        resp = client.put(
            "/api/user/password",
            json={"currentPassword": "Nope12345", "newPassword": "NewPassword456"},
            headers=csrf_headers(client),
        )

        assert resp.status_code == 401
        assert resp.get_json()["field"] == "currentPassword"
        assert client.get("/api/auth/me").status_code == 200


# ═══════════════════════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(
        email_service,
        "send_password_reset_email",
        lambda to, url: sent.append((to, url)),
    )
    return sent


def _token_from(url: str) -> str:
    return url.split("token=", 1)[1]


class TestPasswordReset:

    def test_full_reset_flow(self, client, make_client, outbox):
        register(client, "alice", email="alice@test.com")
        anonymous = make_client()

        resp = _post(anonymous, "/api/auth/forgot-password", {"username": "alice"})

        assert resp.status_code == 200
        assert len(outbox) == 1
        to, url = outbox[0]
        assert to == "alice@test.com"
        assert "/reset-password?token=" in url

        resp = _post(anonymous, "/api/auth/reset-password", {
            "token": _token_from(url), "newPassword": "BrandNew789",
        })

        assert resp.status_code == 200
        assert client.get("/api/auth/me").status_code == 401
        login(make_client(), "alice", "BrandNew789")
        assert _post(make_client(), "/api/auth/login", {
            "username": "alice", "password": "Password123",
        }).status_code == 401

        reuse = _post(anonymous, "/api/auth/reset-password", {
            "token": _token_from(url), "newPassword": "Another1234",
        })
        assert reuse.status_code == 400
        assert reuse.get_json()["code"] == "INVALID_RESET_TOKEN"

    def test_unknown_user_gets_same_answer(self, client, outbox):
        register(client, "alice")

        known = _post(client, "/api/auth/forgot-password", {"username": "alice"})
        unknown = _post(client, "/api/auth/forgot-password", {"username": "nobody"})

        assert known.status_code == unknown.status_code == 200
        assert known.get_json() == unknown.get_json()
        assert len(outbox) == 1

    def test_bogus_token(self, client):
        resp = _post(client, "/api/auth/reset-password", {
            "token": "f" * 64, "newPassword": "BrandNew789",
        })

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_RESET_TOKEN"
