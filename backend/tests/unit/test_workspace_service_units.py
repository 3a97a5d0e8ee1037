"""
Unit tests for workspace_service access helpers and cycle bookkeeping,
DB-free with mocked session behaviour.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from backend.finance_tracker.errors import AppError, ErrorCode
from backend.finance_tracker.models.workspace_user import Permission
from backend.finance_tracker.services import workspace_service


def _mock_membership(session: MagicMock, membership) -> None:
    session.execute.return_value.scalar_one_or_none.return_value = membership


# ═══════════════════════════════════════════════════════════════════════════
# Permission helpers
# ═══════════════════════════════════════════════════════════════════════════

class TestPermissionHelpers:

    def test_require_membership_raises_forbidden_for_non_member(self):
        session = MagicMock()
        _mock_membership(session, None)

        with pytest.raises(AppError) as exc_info:
            workspace_service.require_membership(1, 2, session)

        assert exc_info.value.code == ErrorCode.FORBIDDEN
        assert exc_info.value.http_status == 403

    def test_viewer_is_a_member_but_cannot_edit(self):
        session = MagicMock()
        _mock_membership(session, SimpleNamespace(permission=Permission.VIEWER))

        workspace_service.require_membership(1, 2, session)
        with pytest.raises(AppError) as exc_info:
            workspace_service.require_edit_permission(1, 2, session)
        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @pytest.mark.parametrize("permission", [Permission.OWNER, Permission.MEMBER])
    def test_owner_and_member_can_edit(self, permission):
        session = MagicMock()
        _mock_membership(session, SimpleNamespace(permission=permission))

        membership = workspace_service.require_edit_permission(1, 2, session)

        assert membership.permission == permission

    def test_owner_workspace_missing(self):
        session = MagicMock()
        session.execute.return_value.scalars.return_value.first.return_value = None

        with pytest.raises(AppError) as exc_info:
            workspace_service.get_owner_workspace_id(1, session)

        assert exc_info.value.code == ErrorCode.WORKSPACE_NOT_FOUND
        assert exc_info.value.http_status == 404

    def test_resolve_uses_explicit_id_without_query(self):
        session = MagicMock()
        assert workspace_service.resolve_workspace_id(1, 42, session) == 42
        session.execute.assert_not_called()


# ═══════════════════════════════════════════════════════════════════════════
# Cycle and balance bookkeeping
# ═══════════════════════════════════════════════════════════════════════════

class TestBookkeeping:

    def test_refresh_cycle_days_stores_changed_window(self):
        session = MagicMock()
        session.execute.return_value.scalars.return_value.all.return_value = [
            SimpleNamespace(day_of_month=20),
            SimpleNamespace(day_of_month=5),
        ]
        workspace = SimpleNamespace(id=1, cycle_start_day=None, cycle_end_day=None)

        workspace_service.refresh_cycle_days(workspace, session)

        assert (workspace.cycle_start_day, workspace.cycle_end_day) == (5, 4)
        session.flush.assert_called_once()

    def test_refresh_cycle_days_skips_flush_when_unchanged(self):
        session = MagicMock()
        session.execute.return_value.scalars.return_value.all.return_value = [
            SimpleNamespace(day_of_month=1),
        ]
        workspace = SimpleNamespace(id=1, cycle_start_day=1, cycle_end_day=31)

        workspace_service.refresh_cycle_days(workspace, session)

        session.flush.assert_not_called()

    def test_zero_delta_is_not_written(self):
        session = MagicMock()
        workspace_service.apply_balance_delta(1, Decimal("0"), session)
        session.execute.assert_not_called()

    def test_delta_is_applied_in_sql(self):
        session = MagicMock()

        workspace_service.apply_balance_delta(1, Decimal("12.50"), session)

        statement = session.execute.call_args.args[0]
        assert statement.is_dml
        assert "balance" in str(statement)


def test_delete_cycle_of_another_workspace_is_not_found(monkeypatch):
    monkeypatch.setattr(workspace_service, "get_owner_workspace_id", lambda uid, s: 1)
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=9, workspace_id=2)

    with pytest.raises(AppError) as exc_info:
        workspace_service.delete_cycle(user_id=1, cycle_id=9, session=session)

    assert exc_info.value.code == ErrorCode.CYCLE_NOT_FOUND
    session.delete.assert_not_called()
