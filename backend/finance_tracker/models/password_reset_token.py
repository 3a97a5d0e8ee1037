"""
models/password_reset_token.py — PasswordResetToken table definition.

FK policy: user_id ON DELETE CASCADE — token is owned by the user.

Only the SHA-256 hash of the raw token is stored. The raw value is e-mailed
to the user once and never persisted, so a leaked database does not expose
usable reset links. A token is spent once `used_at` is set.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.finance_tracker.extensions import db


class PasswordResetToken(db.Model):
    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="reset_tokens",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<PasswordResetToken id={self.id} "
            f"user_id={self.user_id} "
            f"used={self.used_at is not None}>"
        )
