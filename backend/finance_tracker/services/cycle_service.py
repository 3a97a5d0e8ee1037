"""
services/cycle_service.py — Billing-cycle window and balance projections.

This file is the single place where the cycle window and the balance cards
are computed. Routes and other services call into it; they never repeat the
arithmetic.

Layer rules:
  - No Flask imports, no database access, no clock reads. `today` is always
    passed in, which keeps every function deterministic.
  - Item arguments are duck-typed: anything with `type`, `amount`,
    `day_of_month` and `is_paid` attributes (ORM Item rows, or
    SimpleNamespace objects in tests).

Cycle window:
  The cycle starts on the earliest due-day among the items and ends on the
  day before it, one month later. Start 1 → end 31 (same month);
  start 10 → end 9 (next month).

Balance cards:
  deficit_excess   = Σ unpaid income − Σ unpaid payments
  expected_balance = current_balance + deficit_excess
  Positive deficit_excess means money is still coming in this cycle;
  negative means the outstanding payments exceed the outstanding income.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple

from backend.finance_tracker.models.item import ItemType


class CycleDays(NamedTuple):
    start_day: int | None
    end_day: int | None


@dataclass(frozen=True)
class BalanceCards:
    current_balance: Decimal
    expected_balance: Decimal
    deficit_excess: Decimal

    def to_dict(self) -> dict:
        return {
            "currentBalance": self.current_balance,
            "expectedBalance": self.expected_balance,
            "deficitExcess": self.deficit_excess,
        }


def _is_income(item_type) -> bool:
    return ItemType(item_type) is ItemType.INCOME


def calculate_cycle_days(items: Iterable) -> CycleDays:
    """Returns CycleDays(None, None) when there are no items."""
    days = [item.day_of_month for item in items]
    if not days:
        return CycleDays(None, None)

    start_day = min(days)
    end_day = start_day - 1 if start_day > 1 else 31
    return CycleDays(start_day, end_day)


def calculate_balance_cards(balance: Decimal, items: Iterable) -> BalanceCards:
    current = Decimal(balance)
    unpaid_income = Decimal("0")
    unpaid_payments = Decimal("0")

    for item in items:
        if item.is_paid:
            continue
        if _is_income(item.type):
            unpaid_income += Decimal(item.amount)
        else:
            unpaid_payments += Decimal(item.amount)

    deficit_excess = unpaid_income - unpaid_payments
    return BalanceCards(
        current_balance=current,
        expected_balance=current + deficit_excess,
        deficit_excess=deficit_excess,
    )


def balance_adjustment(item_type, amount: Decimal, now_paid: bool) -> Decimal:
    """
    Signed change to apply to the workspace balance when an item's paid flag
    flips to `now_paid`.

    Paid income adds, a paid payment subtracts; un-marking reverses it.
    """
    delta = Decimal(amount) if _is_income(item_type) else -Decimal(amount)
    return delta if now_paid else -delta


# ── Labels ─────────────────────────────────────────────────────────────────

def _clamped_date(year: int, month: int, day: int) -> date:
    """date(year, month, day) with day clamped to the month's last day."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _short(d: date) -> str:
    return f"{d:%b} {d.day}"


def build_workspace_cycle_label(start_day: int, end_day: int, today: date) -> str:
    """
    Label for the cycle window that contains `today`, e.g. "Oct 10 - Nov 9".

    The window opens in this month if `today` is on or after the start day,
    otherwise in the previous month. It closes in the same month when
    end_day > start_day, and in the following month otherwise.
    """
    year, month = today.year, today.month
    if today.day < _clamped_date(year, month, start_day).day:
        year, month = _shift_month(year, month, -1)

    start = _clamped_date(year, month, start_day)
    if end_day > start_day:
        end = _clamped_date(year, month, end_day)
    else:
        end_year, end_month = _shift_month(year, month, 1)
        end = _clamped_date(end_year, end_month, end_day)

    return f"{_short(start)} - {_short(end)}"


def build_cycle_label(today: date) -> str:
    """Month-level label used when a workspace has no cycle days, e.g. "Oct 2026"."""
    return f"{today:%b %Y}"


def label_for_workspace(cycle_days: CycleDays, today: date) -> str:
    if cycle_days.start_day is None or cycle_days.end_day is None:
        return build_cycle_label(today)
    return build_workspace_cycle_label(cycle_days.start_day, cycle_days.end_day, today)


# ── Snapshots ──────────────────────────────────────────────────────────────

def snapshot_items(items: Iterable) -> list[dict]:
    """JSON-safe copies of items for CompletedCycle.items_snapshot."""
    return [
        {
            "id": item.id,
            "type": ItemType(item.type).value,
            "label": item.label,
            "amount": str(item.amount),
            "dayOfMonth": item.day_of_month,
            "isPaid": bool(item.is_paid),
        }
        for item in items
    ]
