"""
tests/unit/conftest.py — Application context for service unit tests.

Services read secrets and TTLs from current_app.config, so tests that call
them need an app context. The app is created in "testing" mode; no database
connection is opened because every test passes a MagicMock session.
"""

from __future__ import annotations

import pytest

from backend.finance_tracker import create_app


@pytest.fixture(scope="session")
def app():
    return create_app("testing")


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app
