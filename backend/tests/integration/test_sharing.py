"""
Integration tests for user search and workspace membership endpoints.

Covers:
  - Exact, case-insensitive username search that never returns the caller
  - Granting access: owner grants MEMBER/VIEWER, member grants VIEWER only
  - Listing members and shared workspaces
  - Leaving a workspace and removing others; the owner can never be removed
"""

from __future__ import annotations

import pytest

from .conftest import csrf_headers, get_workspace, register


def _add(client, workspace_id: int, user_id: int, permission: str):
    return client.post(
        f"/api/workspace/{workspace_id}/members",
        json={"userId": user_id, "permission": permission},
        headers=csrf_headers(client),
    )


def _remove(client, workspace_id: int, user_id: int):
    return client.delete(
        f"/api/workspace/{workspace_id}/members/{user_id}",
        headers=csrf_headers(client),
    )


@pytest.fixture
def team(client, make_client):
    """alice owns a workspace; bob and carol are registered but not members."""
    alice = register(client, "alice", display_name="Alice")
    bob_client, carol_client = make_client(), make_client()
    bob = register(bob_client, "bob", display_name="Bob")
    carol = register(carol_client, "carol", display_name="Carol")
    return {
        "workspace_id": get_workspace(client)["workspace"]["id"],
        "alice": (client, alice),
        "bob": (bob_client, bob),
        "carol": (carol_client, carol),
    }


# ═══════════════════════════════════════════════════════════════════════════
# Search
# ═══════════════════════════════════════════════════════════════════════════

class TestSearch:

    def test_case_insensitive_exact_match(self, team):
        client, _ = team["alice"]
        _, bob = team["bob"]

        resp = client.get("/api/users/search", query_string={"username": "BOB"})

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {
            "id": bob["id"], "username": "bob", "displayName": "Bob",
        }

    def test_prefix_does_not_match(self, team):
        client, _ = team["alice"]

        resp = client.get("/api/users/search", query_string={"username": "bo"})

        assert resp.get_json()["data"] is None

    def test_caller_is_never_returned(self, team):
        client, _ = team["alice"]

        resp = client.get("/api/users/search", query_string={"username": "alice"})

        assert resp.get_json()["data"] is None

    def test_empty_username(self, team):
        client, _ = team["alice"]

        resp = client.get("/api/users/search")

        assert resp.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Add / list
# ═══════════════════════════════════════════════════════════════════════════

class TestAddMember:

    def test_owner_adds_member_and_both_see_it(self, team):
        ws = team["workspace_id"]
        alice_client, alice = team["alice"]
        bob_client, bob = team["bob"]

        resp = _add(alice_client, ws, bob["id"], "MEMBER")

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {
            "userId": bob["id"], "workspaceId": ws, "permission": "MEMBER",
        }

        members = alice_client.get(f"/api/workspace/{ws}/members").get_json()["data"]
        assert {(m["username"], m["permission"]) for m in members} == {
            ("alice", "OWNER"), ("bob", "MEMBER"),
        }

        shared = bob_client.get("/api/workspaces/shared").get_json()["data"]
        assert shared == [{"workspaceId": ws, "ownerDisplayName": "Alice", "permission": "MEMBER"}]
        assert alice_client.get("/api/workspaces/shared").get_json()["data"] == []

    def test_member_may_only_grant_viewer(self, team):
        ws = team["workspace_id"]
        alice_client, _ = team["alice"]
        bob_client, bob = team["bob"]
        _, carol = team["carol"]
        _add(alice_client, ws, bob["id"], "MEMBER")

        assert _add(bob_client, ws, carol["id"], "MEMBER").status_code == 403
        assert _add(bob_client, ws, carol["id"], "VIEWER").status_code == 200

    def test_viewer_cannot_add(self, team):
        ws = team["workspace_id"]
        alice_client, _ = team["alice"]
        bob_client, bob = team["bob"]
        _, carol = team["carol"]
        _add(alice_client, ws, bob["id"], "VIEWER")

        assert _add(bob_client, ws, carol["id"], "VIEWER").status_code == 403

    def test_owner_permission_cannot_be_granted(self, team):
        alice_client, _ = team["alice"]
        _, bob = team["bob"]

        resp = _add(alice_client, team["workspace_id"], bob["id"], "OWNER")

        assert resp.status_code == 400
        assert resp.get_json()["field"] == "permission"

    def test_duplicate_membership(self, team):
        ws = team["workspace_id"]
        alice_client, _ = team["alice"]
        _, bob = team["bob"]
        _add(alice_client, ws, bob["id"], "VIEWER")

        resp = _add(alice_client, ws, bob["id"], "MEMBER")

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ALREADY_MEMBER"

    def test_unknown_user(self, team):
        alice_client, _ = team["alice"]

        resp = _add(alice_client, team["workspace_id"], 999999, "VIEWER")

        assert resp.status_code == 404
        assert resp.get_json()["code"] == "USER_NOT_FOUND"

    def test_outsider_cannot_list_members(self, team):
        carol_client, _ = team["carol"]

        resp = carol_client.get(f"/api/workspace/{team['workspace_id']}/members")

        assert resp.status_code == 403


# ═══════════════════════════════════════════════════════════════════════════
# Remove / leave
# ═══════════════════════════════════════════════════════════════════════════

class TestRemoveMember:

    def test_member_leaves(self, team):
        ws = team["workspace_id"]
        alice_client, _ = team["alice"]
        bob_client, bob = team["bob"]
        _add(alice_client, ws, bob["id"], "MEMBER")

        resp = _remove(bob_client, ws, bob["id"])

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"removed": True, "workspaceId": ws, "userId": bob["id"]}
        assert bob_client.get("/api/workspace", query_string={"workspaceId": ws}).status_code == 403

    def test_owner_removes_viewer(self, team):
        ws = team["workspace_id"]
        alice_client, _ = team["alice"]
        _, bob = team["bob"]
        _add(alice_client, ws, bob["id"], "VIEWER")

        assert _remove(alice_client, ws, bob["id"]).status_code == 200

    def test_owner_cannot_leave(self, team):
        alice_client, alice = team["alice"]

        resp = _remove(alice_client, team["workspace_id"], alice["id"])

        assert resp.status_code == 403

    def test_member_cannot_remove_owner(self, team):
        ws = team["workspace_id"]
        alice_client, alice = team["alice"]
        bob_client, bob = team["bob"]
        _add(alice_client, ws, bob["id"], "MEMBER")

        assert _remove(bob_client, ws, alice["id"]).status_code == 403

    def test_viewer_cannot_remove_others(self, team):
        ws = team["workspace_id"]
        alice_client, _ = team["alice"]
        bob_client, bob = team["bob"]
        _, carol = team["carol"]
        _add(alice_client, ws, bob["id"], "VIEWER")
        _add(alice_client, ws, carol["id"], "VIEWER")

        assert _remove(bob_client, ws, carol["id"]).status_code == 403

    def test_remove_non_member(self, team):
        alice_client, _ = team["alice"]
        _, carol = team["carol"]

        resp = _remove(alice_client, team["workspace_id"], carol["id"])

        assert resp.status_code == 404
        assert resp.get_json()["code"] == "MEMBER_NOT_FOUND"
