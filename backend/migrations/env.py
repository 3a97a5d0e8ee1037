"""
backend/migrations/env.py — Alembic environment.

Reads DATABASE_URL (or TEST_DATABASE_URL when TEST_RUN=1) from the
environment / .env file and migrates that database. Target metadata comes
from the Finance Tracker models, so `alembic revision --autogenerate` diffs
against them.

Run from the repository root:
    alembic -c backend/alembic.ini upgrade head
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

_BACKEND_DIR = Path(__file__).resolve().parent.parent

load_dotenv(_BACKEND_DIR / ".env")

# The repository root must be importable for `backend.finance_tracker`.
sys.path.insert(0, str(_BACKEND_DIR.parent))

from backend.finance_tracker.extensions import db  # noqa: E402
from backend.finance_tracker.models import (  # noqa: E402,F401
    item,
    password_reset_token,
    user,
    workspace,
    workspace_user,
)

target_metadata = db.metadata

if os.getenv("TEST_RUN"):
    db_url = os.environ["TEST_DATABASE_URL"]
else:
    db_url = os.environ["DATABASE_URL"]

# Heroku-style URLs are rejected by SQLAlchemy 2.x.
if db_url.startswith("postgres://"):
    db_url = "postgresql://" + db_url[len("postgres://"):]

config = context.config
config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
