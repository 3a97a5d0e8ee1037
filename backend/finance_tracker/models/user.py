"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

PII handling:
  - The email address is never stored in clear text. `email_encrypted` holds
    the AES-256-GCM ciphertext (hex) and `email_hash` holds an HMAC of the
    normalised address, used only for uniqueness lookups.
  - `token_version` only ever increases. Every session token embeds the
    version current at issuance; bumping it revokes all of them at once.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.finance_tracker.extensions import db

# Constraint names match migrations/versions/001_initial_schema.py.
# auth_service.register_user tells a duplicate email from a duplicate
# username by the name of the violated constraint.
USERNAME_UNIQUE_CONSTRAINT = "uq_users_username"
EMAIL_HASH_UNIQUE_CONSTRAINT = "uq_users_email_hash"


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("username", name=USERNAME_UNIQUE_CONSTRAINT),
        UniqueConstraint("email_hash", name=EMAIL_HASH_UNIQUE_CONSTRAINT),
        CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
        CheckConstraint(
            "token_version >= 0",
            name="ck_users_token_version_nonnegative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    display_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    token_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    email_encrypted: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # HMAC-SHA256 hex digest — 64 chars.
    email_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["WorkspaceUser"]] = relationship(  # noqa: F821
        "WorkspaceUser",
        back_populates="user",
    )

    reset_tokens: Mapped[list["PasswordResetToken"]] = relationship(  # noqa: F821
        "PasswordResetToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} username={self.username!r}>"
