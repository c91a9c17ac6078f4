"""
Tests for the ReportLifecycleEngine.

Reports have their own ticket workflow; closing one never changes the
entry it was filed against.
"""
from unittest.mock import MagicMock

import pytest

from feelens.models.db_models import ModerationStatus, Visibility


@pytest.fixture
def public_entry(make_entry):
    return make_entry(visibility=Visibility.PUBLIC, moderation_status=ModerationStatus.APPROVED)


class TestCreateReport:

    def test_create_report_is_open_and_audited(self, db, other_user, public_entry):
        from feelens.models.db_models import ModerationActionDB
        from feelens.services.moderation import ReportLifecycleEngine

        report = ReportLifecycleEngine(db).create_report(
            other_user, public_entry.id, "inaccurate", "  Total looks wrong  "
        )

        assert report["status"] == "open"
        assert report["details"] == "Total looks wrong"
        row = db.query(ModerationActionDB).filter(ModerationActionDB.target_id == report["id"]).one()
        assert row.action == "report_created"
        assert row.entry_id == public_entry.id

    def test_unknown_reason_code(self, db, other_user, public_entry):
        from feelens.errors import ValidationFailedError
        from feelens.services.moderation import ReportLifecycleEngine

        with pytest.raises(ValidationFailedError) as exc:
            ReportLifecycleEngine(db).create_report(other_user, public_entry.id, "rude")

        assert "reason_code" in exc.value.field_errors

    def test_missing_entry(self, db, other_user):
        from feelens.errors import NotFoundError
        from feelens.services.moderation import ReportLifecycleEngine

        with pytest.raises(NotFoundError):
            ReportLifecycleEngine(db).create_report(other_user, "missing", "fake")

    def test_one_active_report_per_reporter(self, db, other_user, moderator, public_entry):
        from feelens.errors import ConflictError
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        first = engine.create_report(other_user, public_entry.id, "fake")

        with pytest.raises(ConflictError):
            engine.create_report(other_user, public_entry.id, "duplicate")

        # Once closed, the same reporter may file again
        engine.dismiss(moderator, first["id"])
        assert engine.create_report(other_user, public_entry.id, "duplicate")["status"] == "open"

    def test_entry_row_is_locked_before_duplicate_check(self):
        """Two reports from one reporter serialise on the entry row."""
        from feelens.models.db_models import UserRole
        from feelens.models.domain import Actor
        from feelens.services.moderation import ReportLifecycleEngine

        mock_db = MagicMock()
        entry_query = mock_db.query.return_value.filter.return_value
        entry_query.with_for_update.return_value.first.return_value = MagicMock()
        entry_query.first.return_value = None

        ReportLifecycleEngine(mock_db).create_report(Actor("user-1", UserRole.USER), "entry-1", "inaccurate")

        entry_query.with_for_update.assert_called_once()
        mock_db.commit.assert_called_once()


class TestTicketWorkflow:

    def test_triage_then_resolve(self, db, other_user, moderator, public_entry):
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        report = engine.create_report(other_user, public_entry.id, "inaccurate")

        triaged = engine.triage(moderator, report["id"])
        resolved = engine.resolve(moderator, report["id"], "Submitter corrected the total")

        assert triaged["status"] == "triaged"
        assert resolved["status"] == "resolved"
        assert resolved["handled_by"] == moderator.user_id
        assert resolved["resolution_note"] == "Submitter corrected the total"

    def test_resolve_never_touches_entry(self, db, other_user, moderator, public_entry):
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        report = engine.create_report(other_user, public_entry.id, "fake")
        engine.resolve(moderator, report["id"], "Confirmed fake")

        db.refresh(public_entry)
        assert public_entry.visibility == Visibility.PUBLIC
        assert public_entry.moderation_status == ModerationStatus.APPROVED

    def test_triage_non_open_is_conflict_without_mutation(self, db, other_user, moderator, public_entry):
        from feelens.errors import ConflictError
        from feelens.models.db_models import ModerationActionDB
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        report = engine.create_report(other_user, public_entry.id, "fake")
        engine.triage(moderator, report["id"])

        with pytest.raises(ConflictError):
            engine.triage(moderator, report["id"], "again")

        current = engine.get_report(report["id"])
        assert current["status"] == "triaged"
        assert current["resolution_note"] is None
        actions = [
            r.action for r in
            db.query(ModerationActionDB).filter(ModerationActionDB.target_id == report["id"]).all()
        ]
        assert sorted(actions) == ["report_created", "report_triage"]

    def test_terminal_report_cannot_be_reopened(self, db, other_user, moderator, public_entry):
        from feelens.errors import ConflictError
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        report = engine.create_report(other_user, public_entry.id, "offensive")
        engine.dismiss(moderator, report["id"])

        with pytest.raises(ConflictError):
            engine.resolve(moderator, report["id"])

    def test_only_moderators_handle_reports(self, db, other_user, public_entry):
        from feelens.errors import ForbiddenError
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        report = engine.create_report(other_user, public_entry.id, "fake")

        with pytest.raises(ForbiddenError):
            engine.dismiss(other_user, report["id"])

    def test_list_by_status(self, db, other_user, submitter, moderator, public_entry):
        from feelens.errors import ValidationFailedError
        from feelens.services.moderation import ReportLifecycleEngine

        engine = ReportLifecycleEngine(db)
        kept = engine.create_report(other_user, public_entry.id, "fake")
        closed = engine.create_report(submitter, public_entry.id, "expired")
        engine.dismiss(moderator, closed["id"])

        assert [r["id"] for r in engine.list_reports("open")] == [kept["id"]]
        assert len(engine.list_reports()) == 2
        with pytest.raises(ValidationFailedError):
            engine.list_reports("archived")
