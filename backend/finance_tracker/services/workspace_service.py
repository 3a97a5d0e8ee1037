"""
services/workspace_service.py — Workspace access, balance, and cycle archive.

Authorization rules (capability table in models/workspace_user.py):
  - Reading a workspace: any member (OWNER, MEMBER, VIEWER).
  - Changing balance, items, or resetting: OWNER or MEMBER.
  - Completed cycles are listed and deleted through the caller's own
    (OWNER) workspace only.
  - Non-members receive 403, not 404.

When no workspace id is supplied the caller's OWNER workspace is used. Every
user gets exactly one at registration.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.models.item import Item, ItemType
from backend.finance_tracker.models.workspace import CompletedCycle, Workspace
from backend.finance_tracker.models.workspace_user import (
    Permission,
    WorkspaceUser,
    capabilities_for,
)
from backend.finance_tracker.services import cycle_service


# ── Membership helpers (shared with item_service / sharing_service) ───────

def get_owner_workspace_id(user_id: int, session: Session) -> int:
    """Returns the id of the workspace `user_id` owns, or raises WORKSPACE_NOT_FOUND (404)."""
    workspace_id = session.execute(
        select(WorkspaceUser.workspace_id).where(
            WorkspaceUser.user_id == user_id,
            WorkspaceUser.permission == Permission.OWNER,
        )
    ).scalars().first()

    if workspace_id is None:
        raise AppError(
            ErrorCode.WORKSPACE_NOT_FOUND,
            "No workspace found.",
            404,
        )
    return workspace_id


def get_membership(user_id: int, workspace_id: int, session: Session) -> WorkspaceUser | None:
    return session.execute(
        select(WorkspaceUser).where(
            WorkspaceUser.user_id == user_id,
            WorkspaceUser.workspace_id == workspace_id,
        )
    ).scalar_one_or_none()


def require_membership(user_id: int, workspace_id: int, session: Session) -> WorkspaceUser:
    """Raises FORBIDDEN (403) if `user_id` has no access to `workspace_id`."""
    membership = get_membership(user_id, workspace_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Access denied.",
            403,
        )
    return membership


def require_edit_permission(user_id: int, workspace_id: int, session: Session) -> WorkspaceUser:
    """Raises FORBIDDEN (403) unless `user_id` may modify `workspace_id` (OWNER or MEMBER)."""
    membership = get_membership(user_id, workspace_id, session)
    if membership is None or not capabilities_for(membership.permission).can_edit:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "Insufficient permissions.",
            403,
        )
    return membership


def resolve_workspace_id(user_id: int, workspace_id: int | None, session: Session) -> int:
    if workspace_id is None:
        return get_owner_workspace_id(user_id, session)
    return workspace_id


def refresh_cycle_days(workspace: Workspace, session: Session) -> cycle_service.CycleDays:
    """
    Recomputes the cycle window from the workspace's current items and
    stores it if it changed.
    """
    items = session.execute(
        select(Item).where(Item.workspace_id == workspace.id)
    ).scalars().all()
    cycle_days = cycle_service.calculate_cycle_days(items)

    if (workspace.cycle_start_day, workspace.cycle_end_day) != tuple(cycle_days):
        workspace.cycle_start_day = cycle_days.start_day
        workspace.cycle_end_day = cycle_days.end_day
        session.flush()
    return cycle_days


def apply_balance_delta(workspace_id: int, delta: Decimal, session: Session) -> None:
    """
    Adds `delta` to the workspace balance in SQL (balance = balance + :delta),
    so concurrent adjustments in separate transactions never overwrite each
    other.
    """
    if delta == 0:
        return
    session.execute(
        update(Workspace)
        .where(Workspace.id == workspace_id)
        .values(balance=Workspace.balance + delta)
    )
    session.flush()


# ── Serialisers ────────────────────────────────────────────────────────────

def build_item_dict(item: Item) -> dict:
    return {
        "id": item.id,
        "type": ItemType(item.type).value,
        "label": item.label,
        "amount": item.amount,
        "dayOfMonth": item.day_of_month,
        "isPaid": item.is_paid,
    }


def _build_workspace_dict(workspace: Workspace) -> dict:
    return {
        "id": workspace.id,
        "balance": workspace.balance,
        "cycleStartDay": workspace.cycle_start_day,
        "cycleEndDay": workspace.cycle_end_day,
    }


def _build_cycle_dict(cycle: CompletedCycle) -> dict:
    return {
        "id": cycle.id,
        "cycleLabel": cycle.cycle_label,
        "finalBalance": cycle.final_balance,
        "items": cycle.items_snapshot,
        "createdAt": cycle.created_at.isoformat() if cycle.created_at else None,
    }


def _get_workspace_or_404(workspace_id: int, session: Session) -> Workspace:
    workspace = session.get(Workspace, workspace_id)
    if workspace is None:
        raise AppError(
            ErrorCode.WORKSPACE_NOT_FOUND,
            "Workspace not found.",
            404,
        )
    return workspace


# ── Public service functions ───────────────────────────────────────────────

def get_workspace(
        user_id: int,
        workspace_id: int | None,
        session: Session,
        today: date | None = None,
) -> dict:
    """
    Returns the workspace view: balance, items ordered by due day, balance
    cards, the current cycle label and the caller's permission.

    The stored cycle window is refreshed from the items on every read, so a
    stale window (e.g. from rows edited outside the API) heals itself.
    """
    workspace_id = resolve_workspace_id(user_id, workspace_id, session)
    membership = require_membership(user_id, workspace_id, session)
    workspace = _get_workspace_or_404(workspace_id, session)

    cycle_days = refresh_cycle_days(workspace, session)

    items = session.execute(
        select(Item)
        .where(Item.workspace_id == workspace_id)
        .order_by(Item.day_of_month.asc(), Item.id.asc())
    ).scalars().all()

    cards = cycle_service.calculate_balance_cards(workspace.balance, items)
    today = today or date.today()

    return {
        "workspace": _build_workspace_dict(workspace),
        "items": [build_item_dict(item) for item in items],
        "balanceCards": cards.to_dict(),
        "cycleLabel": cycle_service.label_for_workspace(cycle_days, today),
        "permission": Permission(membership.permission).value,
    }


def update_balance(
        user_id: int,
        balance: Decimal,
        workspace_id: int | None,
        session: Session,
) -> dict:
    """Overwrites the balance. OWNER or MEMBER only."""
    workspace_id = resolve_workspace_id(user_id, workspace_id, session)
    require_edit_permission(user_id, workspace_id, session)
    workspace = _get_workspace_or_404(workspace_id, session)

    workspace.balance = balance
    session.flush()
    return _build_workspace_dict(workspace)


def list_cycles(user_id: int, session: Session) -> list[dict]:
    """Completed cycles of the caller's own workspace, newest first."""
    workspace_id = get_owner_workspace_id(user_id, session)
    cycles = session.execute(
        select(CompletedCycle)
        .where(CompletedCycle.workspace_id == workspace_id)
        .order_by(CompletedCycle.created_at.desc(), CompletedCycle.id.desc())
    ).scalars().all()
    return [_build_cycle_dict(cycle) for cycle in cycles]


def delete_cycle(user_id: int, cycle_id: int, session: Session) -> None:
    """
    Deletes one completed cycle of the caller's own workspace.

    Raises:
      AppError(CYCLE_NOT_FOUND, 404) — no such cycle, or it belongs to
      another workspace (not distinguished, to avoid leaking ids).
    """
    workspace_id = get_owner_workspace_id(user_id, session)
    cycle = session.get(CompletedCycle, cycle_id)
    if cycle is None or cycle.workspace_id != workspace_id:
        raise AppError(
            ErrorCode.CYCLE_NOT_FOUND,
            "Cycle not found.",
            404,
        )
    session.delete(cycle)
    session.flush()


def reset_workspace(
        user_id: int,
        workspace_id: int | None,
        session: Session,
        today: date | None = None,
) -> dict:
    """
    Closes the current cycle: archives the balance and a snapshot of every
    item into a CompletedCycle, then marks every item unpaid.

    The balance itself is NOT changed; the next cycle starts from whatever
    the balance holds now. The workspace row is locked for the duration so a
    concurrent toggle cannot slip between the snapshot and the flag reset.
    """
    workspace_id = resolve_workspace_id(user_id, workspace_id, session)
    require_edit_permission(user_id, workspace_id, session)

    workspace = session.execute(
        select(Workspace).where(Workspace.id == workspace_id).with_for_update()
    ).scalar_one_or_none()
    if workspace is None:
        raise AppError(
            ErrorCode.WORKSPACE_NOT_FOUND,
            "Workspace not found.",
            404,
        )

    items = session.execute(
        select(Item)
        .where(Item.workspace_id == workspace_id)
        .order_by(Item.day_of_month.asc(), Item.id.asc())
    ).scalars().all()

    today = today or date.today()
    cycle = CompletedCycle(
        workspace_id=workspace_id,
        final_balance=workspace.balance,
        cycle_label=cycle_service.label_for_workspace(
            cycle_service.calculate_cycle_days(items),
            today,
        ),
        items_snapshot=cycle_service.snapshot_items(items),
    )
    session.add(cycle)

    session.execute(
        update(Item)
        .where(Item.workspace_id == workspace_id)
        .values(is_paid=False)
    )
    session.flush()

    return {
        "id": cycle.id,
        "cycleLabel": cycle.cycle_label,
        "finalBalance": cycle.final_balance,
        "itemCount": len(cycle.items_snapshot),
    }
