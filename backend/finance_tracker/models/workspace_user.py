"""
models/workspace_user.py — WorkspaceUser junction table and the permission model.

A workspace has exactly one OWNER (created at registration) and any number
of MEMBERs and VIEWERs invited later.

What each permission may do is looked up in PERMISSION_CAPABILITIES rather
than compared as strings in handlers:

    permission  edit items/balance  may grant        may remove others
    OWNER       yes                 MEMBER, VIEWER   yes
    MEMBER      yes                 VIEWER           yes
    VIEWER      no                  —                no

Nobody may remove the OWNER, and the OWNER may not leave.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.finance_tracker.extensions import db


class Permission(str, enum.Enum):
    OWNER  = "OWNER"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


@dataclass(frozen=True)
class Capabilities:
    can_edit: bool
    grantable: frozenset[Permission]
    can_remove_others: bool


PERMISSION_CAPABILITIES: dict[Permission, Capabilities] = {
    Permission.OWNER: Capabilities(
        can_edit=True,
        grantable=frozenset({Permission.MEMBER, Permission.VIEWER}),
        can_remove_others=True,
    ),
    Permission.MEMBER: Capabilities(
        can_edit=True,
        grantable=frozenset({Permission.VIEWER}),
        can_remove_others=True,
    ),
    Permission.VIEWER: Capabilities(
        can_edit=False,
        grantable=frozenset(),
        can_remove_others=False,
    ),
}


def capabilities_for(permission: Permission | str) -> Capabilities:
    return PERMISSION_CAPABILITIES[Permission(permission)]


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not member names."""
    return [member.value for member in enum_cls]


class WorkspaceUser(db.Model):
    __tablename__ = "workspace_users"

    __table_args__ = (
        UniqueConstraint("user_id", "workspace_id", name="uq_workspace_users_user_workspace"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    workspace_id: Mapped[int] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    permission: Mapped[Permission] = mapped_column(
        Enum(
            Permission,
            name="permission_enum",
            native_enum=False,
            length=10,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    workspace: Mapped["Workspace"] = relationship(  # noqa: F821
        "Workspace",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<WorkspaceUser user_id={self.user_id} "
            f"workspace_id={self.workspace_id} "
            f"permission={self.permission}>"
        )
