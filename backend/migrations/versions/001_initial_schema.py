"""Initial schema — users, workspaces, memberships, items, cycles, reset tokens.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must never be edited after it has been applied to any database.
  Schema changes go in a NEW migration file.

Creation order (FK dependencies):
  users → password_reset_tokens
  workspaces → workspace_users (users, workspaces) → items → completed_cycles

Enumerations (permission, item type) are stored as VARCHAR with CHECK
constraints rather than native PostgreSQL enum types, so adding a value is
a constraint swap instead of ALTER TYPE.

ON DELETE policies:
  password_reset_tokens.user_id  → CASCADE
  workspace_users.*              → CASCADE
  items.workspace_id             → CASCADE
  completed_cycles.workspace_id  → CASCADE
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    # email_encrypted: hex(nonce ‖ tag ‖ ciphertext), AES-256-GCM.
    # email_hash:      HMAC-SHA256 hex of the normalised address, for lookup.

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("display_name", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("email_encrypted", sa.Text(), nullable=True),
        sa.Column("email_hash", sa.String(64), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        # Names mirrored in models/user.py; register_user matches on them.
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email_hash", name="uq_users_email_hash"),
        sa.CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
        sa.CheckConstraint(
            "token_version >= 0",
            name="ck_users_token_version_nonnegative",
        ),
    )

    # ── password_reset_tokens ──────────────────────────────────────────────
    # Only the SHA-256 hash of the e-mailed token is stored.

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_password_reset_tokens_user"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_password_reset_tokens"),
        sa.UniqueConstraint("token_hash", name="uq_password_reset_tokens_hash"),
    )

    # ── workspaces ─────────────────────────────────────────────────────────

    op.create_table(
        "workspaces",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("cycle_start_day", sa.Integer(), nullable=True),
        sa.Column("cycle_end_day", sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_workspaces"),
    )

    # ── workspace_users ────────────────────────────────────────────────────

    op.create_table(
        "workspace_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_workspace_users_user"),
            nullable=False,
        ),
        sa.Column(
            "workspace_id",
            sa.Integer(),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE", name="fk_workspace_users_workspace"),
            nullable=False,
        ),
        sa.Column("permission", sa.String(10), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_workspace_users"),
        sa.UniqueConstraint("user_id", "workspace_id", name="uq_workspace_users_user_workspace"),
        sa.CheckConstraint(
            "permission IN ('OWNER', 'MEMBER', 'VIEWER')",
            name="ck_workspace_users_permission",
        ),
    )

    # ── items ──────────────────────────────────────────────────────────────

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "workspace_id",
            sa.Integer(),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE", name="fk_items_workspace"),
            nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("label", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("day_of_month", sa.Integer(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
        sa.CheckConstraint("amount > 0", name="ck_items_amount_positive"),
        sa.CheckConstraint(
            "day_of_month BETWEEN 1 AND 31",
            name="ck_items_day_of_month_range",
        ),
        sa.CheckConstraint(
            "LENGTH(TRIM(label)) > 0",
            name="ck_items_label_nonempty",
        ),
        sa.CheckConstraint(
            "type IN ('INCOME', 'CREDIT_CARD', 'LOAN_PAYMENT', 'RENT', 'OTHER')",
            name="ck_items_type",
        ),
    )

    # ── completed_cycles ───────────────────────────────────────────────────
    # items_snapshot is the JSON list written by POST /workspace/reset.

    op.create_table(
        "completed_cycles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "workspace_id",
            sa.Integer(),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE", name="fk_completed_cycles_workspace"),
            nullable=False,
        ),
        sa.Column("cycle_label", sa.String(100), nullable=False),
        sa.Column("final_balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("items_snapshot", sa.JSON(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_completed_cycles"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────

    op.create_index("ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"])
    op.create_index("ix_workspace_users_user_id", "workspace_users", ["user_id"])
    op.create_index("ix_workspace_users_workspace_id", "workspace_users", ["workspace_id"])
    op.create_index("ix_items_workspace_id", "items", ["workspace_id"])
    op.create_index("ix_completed_cycles_workspace_id", "completed_cycles", ["workspace_id"])


def downgrade() -> None:
    """Drops everything upgrade() created, in reverse dependency order."""
    op.drop_index("ix_completed_cycles_workspace_id", table_name="completed_cycles")
    op.drop_index("ix_items_workspace_id", table_name="items")
    op.drop_index("ix_workspace_users_workspace_id", table_name="workspace_users")
    op.drop_index("ix_workspace_users_user_id", table_name="workspace_users")
    op.drop_index("ix_password_reset_tokens_user_id", table_name="password_reset_tokens")

    op.drop_table("completed_cycles")
    op.drop_table("items")
    op.drop_table("workspace_users")
    op.drop_table("workspaces")
    op.drop_table("password_reset_tokens")
    op.drop_table("users")
