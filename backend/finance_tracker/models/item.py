"""
models/item.py — Item table definition.

An item is a recurring monthly line in a workspace: a salary, a rent
payment, a card bill. It falls due on `day_of_month` every month.

Key design points:
  - `amount` uses Numeric(12, 2) — never Float — and is always positive.
    Whether it adds to or subtracts from the balance is decided by `type`.
  - Only ItemType.INCOME is income; every other type is a payment.
  - ItemType is a Python enum so schemas and services import it instead of
    repeating string literals.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.finance_tracker.extensions import db


class ItemType(str, enum.Enum):
    INCOME       = "INCOME"
    CREDIT_CARD  = "CREDIT_CARD"
    LOAN_PAYMENT = "LOAN_PAYMENT"
    RENT         = "RENT"
    OTHER        = "OTHER"

    @property
    def is_income(self) -> bool:
        return self is ItemType.INCOME


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not member names."""
    return [member.value for member in enum_cls]


class Item(db.Model):
    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_items_amount_positive"),
        CheckConstraint(
            "day_of_month BETWEEN 1 AND 31",
            name="ck_items_day_of_month_range",
        ),
        CheckConstraint(
            "LENGTH(TRIM(label)) > 0",
            name="ck_items_label_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    workspace_id: Mapped[int] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[ItemType] = mapped_column(
        Enum(
            ItemType,
            name="item_type_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    label: Mapped[str] = mapped_column(String(100), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)

    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    workspace: Mapped["Workspace"] = relationship(  # noqa: F821
        "Workspace",
        back_populates="items",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Item id={self.id} type={self.type} "
            f"amount={self.amount} day={self.day_of_month} paid={self.is_paid}>"
        )
