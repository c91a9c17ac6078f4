"""
Tests for provider moderation.
"""
import pytest


class TestProviderModeration:

    def test_created_providers_start_pending(self, db, submitter):
        from feelens.services.moderation import ProviderService

        provider = ProviderService(db).create_provider(submitter, "  Harbour Conveyancing  ", "legal_services")

        assert provider["status"] == "pending"
        assert provider["name"] == "Harbour Conveyancing"
        assert provider["created_by"] == submitter.user_id

    def test_location_is_cleaned(self, db, submitter):
        from feelens.services.moderation import ProviderService

        provider = ProviderService(db).create_provider(
            submitter, "Harbour Conveyancing", suburb=" Sydney ", state="nsw", postcode="2000"
        )

        assert (provider["suburb"], provider["state"], provider["postcode"]) == ("Sydney", "NSW", "2000")

    def test_approve_records_provider_action(self, db, moderator, pending_provider):
        from feelens.models.db_models import ProviderActionDB
        from feelens.services.moderation import ProviderService

        result = ProviderService(db).moderate_provider(moderator, pending_provider.id, "approve", "ABN verified")

        assert result["status"] == "approved"
        assert result["changed"] is True
        row = db.query(ProviderActionDB).filter(ProviderActionDB.provider_id == pending_provider.id).one()
        assert row.old_state == {"status": "pending"}
        assert row.new_state == {"status": "approved"}
        assert row.reason == "ABN verified"

    def test_repeat_is_noop(self, db, moderator, provider):
        from feelens.models.db_models import ProviderActionDB
        from feelens.services.moderation import ProviderService

        result = ProviderService(db).moderate_provider(moderator, provider.id, "approve", "again")

        assert result["changed"] is False
        assert db.query(ProviderActionDB).count() == 0

    def test_rejecting_approved_provider_is_conflict(self, db, moderator, provider):
        from feelens.errors import ConflictError
        from feelens.services.moderation import ProviderService

        with pytest.raises(ConflictError):
            ProviderService(db).moderate_provider(moderator, provider.id, "reject", "changed mind")

    def test_requires_moderator(self, db, submitter, pending_provider):
        from feelens.errors import ForbiddenError
        from feelens.services.moderation import ProviderService

        with pytest.raises(ForbiddenError):
            ProviderService(db).moderate_provider(submitter, pending_provider.id, "approve", "me")

    def test_unknown_action_and_provider(self, db, moderator, pending_provider):
        from feelens.errors import ProviderNotFoundError, ValidationFailedError
        from feelens.services.moderation import ProviderService

        service = ProviderService(db)
        with pytest.raises(ValidationFailedError):
            service.moderate_provider(moderator, pending_provider.id, "suspend", "why")
        with pytest.raises(ProviderNotFoundError):
            service.moderate_provider(moderator, "missing", "approve", "why")

    def test_list_by_status(self, db, provider, pending_provider):
        from feelens.services.moderation import ProviderService

        service = ProviderService(db)

        assert [p["id"] for p in service.list_providers("pending")] == [pending_provider.id]
        assert [p["id"] for p in service.list_providers("approved")] == [provider.id]
