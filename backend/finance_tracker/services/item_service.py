"""
services/item_service.py — Item CRUD and paid-flag balance bookkeeping.

Authorization: every operation requires OWNER or MEMBER on the item's
workspace (FORBIDDEN, 403). Unknown item ids are ITEM_NOT_FOUND (404).

Balance rule:
  While an item is paid, its effect is already in the workspace balance:
  +amount for income, −amount for a payment. Any change to an item moves the
  balance by (effect after − effect before). For a plain toggle that is
  exactly ±amount; for an edit to the amount or type of an already-paid item
  it is the difference, so un-marking it later restores the original balance.

  The item row is read with SELECT ... FOR UPDATE and the balance is changed
  with an in-SQL increment, both inside the request's transaction, so two
  concurrent toggles of the same item serialise instead of drifting.

Deleting a paid item leaves the balance alone; the money has moved.

Layer rules:
  - No Flask imports. Commits are the route's responsibility.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.models.item import Item, ItemType
from backend.finance_tracker.models.workspace import Workspace
from backend.finance_tracker.services import cycle_service
from backend.finance_tracker.services.workspace_service import (
    apply_balance_delta,
    build_item_dict,
    refresh_cycle_days,
    require_edit_permission,
)


# ── Private helpers ────────────────────────────────────────────────────────

def _lock_item_or_404(item_id: int, session: Session) -> Item:
    item = session.execute(
        select(Item).where(Item.id == item_id).with_for_update()
    ).scalar_one_or_none()
    if item is None:
        raise AppError(
            ErrorCode.ITEM_NOT_FOUND,
            "Item not found.",
            404,
        )
    return item


def _paid_effect(item_type: ItemType, amount: Decimal, is_paid: bool) -> Decimal:
    """The item's current contribution to the balance."""
    if not is_paid:
        return Decimal("0")
    return cycle_service.balance_adjustment(item_type, amount, now_paid=True)


def _refresh_cycle(workspace_id: int, session: Session) -> None:
    workspace = session.get(Workspace, workspace_id)
    if workspace is not None:
        refresh_cycle_days(workspace, session)


# ── Public service functions ───────────────────────────────────────────────

def create_item(
        user_id: int,
        workspace_id: int,
        item_type: ItemType,
        label: str,
        amount: Decimal,
        day_of_month: int,
        session: Session,
) -> dict:
    """Creates an unpaid item and refreshes the workspace cycle window."""
    require_edit_permission(user_id, workspace_id, session)

    item = Item(
        workspace_id=workspace_id,
        type=ItemType(item_type),
        label=label,
        amount=amount,
        day_of_month=day_of_month,
        is_paid=False,
    )
    session.add(item)
    session.flush()

    _refresh_cycle(workspace_id, session)
    return build_item_dict(item)


def update_item(user_id: int, item_id: int, changes: dict, session: Session) -> dict:
    """
    Applies a partial update. `changes` holds any of: label, amount,
    day_of_month, type, is_paid (already validated by UpdateItemSchema).
    """
    item = _lock_item_or_404(item_id, session)
    require_edit_permission(user_id, item.workspace_id, session)

    effect_before = _paid_effect(item.type, item.amount, item.is_paid)
    old_day = item.day_of_month

    if "label" in changes:
        item.label = changes["label"]
    if "amount" in changes:
        item.amount = changes["amount"]
    if "day_of_month" in changes:
        item.day_of_month = changes["day_of_month"]
    if "type" in changes:
        item.type = ItemType(changes["type"])
    if "is_paid" in changes:
        item.is_paid = changes["is_paid"]

    effect_after = _paid_effect(item.type, item.amount, item.is_paid)
    session.flush()

    apply_balance_delta(item.workspace_id, effect_after - effect_before, session)

    if item.day_of_month != old_day:
        _refresh_cycle(item.workspace_id, session)

    return build_item_dict(item)


def toggle_paid(user_id: int, item_id: int, session: Session) -> dict:
    """Flips is_paid and moves the balance by ±amount in the same transaction."""
    item = _lock_item_or_404(item_id, session)
    require_edit_permission(user_id, item.workspace_id, session)

    item.is_paid = not item.is_paid
    session.flush()

    apply_balance_delta(
        item.workspace_id,
        cycle_service.balance_adjustment(item.type, item.amount, item.is_paid),
        session,
    )
    return build_item_dict(item)


def delete_item(user_id: int, item_id: int, session: Session) -> None:
    item = _lock_item_or_404(item_id, session)
    workspace_id = item.workspace_id
    require_edit_permission(user_id, workspace_id, session)

    session.delete(item)
    session.flush()

    # May clear the window to (None, None) when the last item goes.
    _refresh_cycle(workspace_id, session)
