"""
services/sharing_service.py — Workspace sharing and user lookup.

Authorization rules (capability table in models/workspace_user.py):
  - Any member may list a workspace's members.
  - OWNER may grant MEMBER or VIEWER; MEMBER may grant VIEWER only;
    VIEWER may grant nothing.
  - Anyone may remove themselves, except the OWNER.
  - OWNER and MEMBER may remove others; nobody may remove the OWNER.

Layer rules:
  - No Flask imports. Commits are the route's responsibility.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.models.user import User
from backend.finance_tracker.models.workspace_user import (
    Permission,
    WorkspaceUser,
    capabilities_for,
)
from backend.finance_tracker.services.workspace_service import (
    get_membership,
    require_membership,
)


def _forbidden(message: str) -> AppError:
    return AppError(ErrorCode.FORBIDDEN, message, 403)


def search_user(caller_id: int, username: str, session: Session) -> dict | None:
    """
    Case-insensitive exact match on username, excluding the caller.
    Returns None when there is no such user.
    """
    user = session.execute(
        select(User).where(
            User.id != caller_id,
            func.lower(User.username) == username.strip().lower(),
        )
    ).scalars().first()

    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "displayName": user.display_name,
    }


def list_shared_workspaces(user_id: int, session: Session) -> list[dict]:
    """Workspaces the user belongs to without owning them, with the owner's display name."""
    memberships = session.execute(
        select(WorkspaceUser)
        .where(
            WorkspaceUser.user_id == user_id,
            WorkspaceUser.permission != Permission.OWNER,
        )
        .order_by(WorkspaceUser.workspace_id.asc())
    ).scalars().all()

    result = []
    for membership in memberships:
        owner_name = session.execute(
            select(User.display_name)
            .join(WorkspaceUser, WorkspaceUser.user_id == User.id)
            .where(
                WorkspaceUser.workspace_id == membership.workspace_id,
                WorkspaceUser.permission == Permission.OWNER,
            )
        ).scalars().first()
        result.append({
            "workspaceId": membership.workspace_id,
            "ownerDisplayName": owner_name or "Unknown",
            "permission": Permission(membership.permission).value,
        })
    return result


def list_members(caller_id: int, workspace_id: int, session: Session) -> list[dict]:
    require_membership(caller_id, workspace_id, session)

    rows = session.execute(
        select(WorkspaceUser, User)
        .join(User, User.id == WorkspaceUser.user_id)
        .where(WorkspaceUser.workspace_id == workspace_id)
        .order_by(WorkspaceUser.id.asc())
    ).all()

    return [
        {
            "userId": user.id,
            "username": user.username,
            "displayName": user.display_name,
            "permission": Permission(membership.permission).value,
        }
        for membership, user in rows
    ]


def add_member(
        caller_id: int,
        workspace_id: int,
        target_user_id: int,
        permission: Permission,
        session: Session,
) -> dict:
    """
    Raises:
      AppError(FORBIDDEN, 403)       — caller not a member, or may not grant `permission`
      AppError(USER_NOT_FOUND, 404)  — target user does not exist
      AppError(ALREADY_MEMBER, 409)  — target already belongs to the workspace
    """
    permission = Permission(permission)
    caller = get_membership(caller_id, workspace_id, session)
    if caller is None:
        raise _forbidden("Access denied.")

    if permission not in capabilities_for(caller.permission).grantable:
        if Permission(caller.permission) is Permission.VIEWER:
            raise _forbidden("Viewers cannot add members.")
        raise _forbidden("Members can only add viewers.")

    if session.get(User, target_user_id) is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "User not found.",
            404,
        )

    if get_membership(target_user_id, workspace_id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            "User is already a member of this workspace.",
            409,
        )

    membership = WorkspaceUser(
        user_id=target_user_id,
        workspace_id=workspace_id,
        permission=permission,
    )
    session.add(membership)
    session.flush()

    return {
        "userId": membership.user_id,
        "workspaceId": membership.workspace_id,
        "permission": permission.value,
    }


def remove_member(
        caller_id: int,
        workspace_id: int,
        target_user_id: int,
        session: Session,
) -> None:
    """
    Raises:
      AppError(FORBIDDEN, 403)         — not allowed by the rules above
      AppError(MEMBER_NOT_FOUND, 404)  — target is not in the workspace
    """
    caller = get_membership(caller_id, workspace_id, session)
    if caller is None:
        raise _forbidden("Access denied.")

    target = get_membership(target_user_id, workspace_id, session)
    if target is None:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            "Member not found.",
            404,
        )

    target_is_owner = Permission(target.permission) is Permission.OWNER

    if caller_id == target_user_id:
        if target_is_owner:
            raise _forbidden("Owner cannot leave their workspace.")
    else:
        if not capabilities_for(caller.permission).can_remove_others:
            raise _forbidden("Viewers cannot remove members.")
        if target_is_owner:
            raise _forbidden("Cannot remove the workspace owner.")

    session.delete(target)
    session.flush()
