"""
models/workspace.py — Workspace and CompletedCycle table definitions.

No business logic. No imports from services or routes.

Key design points:
  - `balance` uses Numeric(12, 2) — never Float.
  - `cycle_start_day` / `cycle_end_day` are a cache of the cycle window
    derived from the workspace's items (services/cycle_service.py). Both are
    NULL while the workspace has no items.
  - A CompletedCycle is an immutable snapshot written by POST /workspace/reset.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.finance_tracker.extensions import db


class Workspace(db.Model):
    __tablename__ = "workspaces"

    id: Mapped[int] = mapped_column(primary_key=True)

    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        server_default="0",
    )

    cycle_start_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cycle_end_day: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    members: Mapped[list["WorkspaceUser"]] = relationship(  # noqa: F821
        "WorkspaceUser",
        back_populates="workspace",
        cascade="all, delete-orphan",
    )

    items: Mapped[list["Item"]] = relationship(  # noqa: F821
        "Item",
        back_populates="workspace",
        cascade="all, delete-orphan",
        order_by="Item.day_of_month",
    )

    completed_cycles: Mapped[list["CompletedCycle"]] = relationship(
        "CompletedCycle",
        back_populates="workspace",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Workspace id={self.id} balance={self.balance}>"


class CompletedCycle(db.Model):
    __tablename__ = "completed_cycles"

    id: Mapped[int] = mapped_column(primary_key=True)

    workspace_id: Mapped[int] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    cycle_label: Mapped[str] = mapped_column(String(100), nullable=False)

    final_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # List of item dicts as they stood at reset time (cycle_service.snapshot_items).
    items_snapshot: Mapped[list] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    workspace: Mapped["Workspace"] = relationship(
        "Workspace",
        back_populates="completed_cycles",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<CompletedCycle id={self.id} "
            f"workspace_id={self.workspace_id} "
            f"label={self.cycle_label!r}>"
        )
