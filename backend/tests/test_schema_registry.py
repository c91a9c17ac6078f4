"""
Tests for the Schema Registry.

1. Publishing keeps exactly one active version per industry
2. Not-found vs inactive are distinct errors
3. Cached schemas are revalidated by version before use
"""
import pytest

from feelens.industry_catalog import LEGAL_SERVICES


class TestPublishing:

    def test_publish_increments_version_and_keeps_one_active(self, db):
        from feelens.models.db_models import IndustrySchemaDB
        from feelens.services.validation import SchemaRegistry

        registry = SchemaRegistry(db)
        first = registry.publish_version(**LEGAL_SERVICES)
        second = registry.publish_version(**{**LEGAL_SERVICES, "display_name": "Lawyers"})

        assert (first.version, second.version) == (1, 2)
        rows = db.query(IndustrySchemaDB).filter(IndustrySchemaDB.industry_key == "legal_services").all()
        assert sorted((r.version, r.is_active) for r in rows) == [(1, False), (2, True)]
        assert registry.get_active_schema("legal_services").display_name == "Lawyers"

    def test_publish_rejects_malformed_schema(self, db):
        from feelens.errors import ValidationFailedError
        from feelens.services.validation import SchemaRegistry

        with pytest.raises(ValidationFailedError) as exc:
            SchemaRegistry(db).publish_version(
                "broken",
                display_name="Broken",
                fee_breakdown_schema={"properties": [], "required": "x"},
                context_schema=[],
            )

        assert set(exc.value.field_errors) == {
            "fee_breakdown_schema.properties",
            "fee_breakdown_schema.required",
            "context_schema",
        }

    def test_list_active_industries_sorted_by_name(self, db, legal_schema, real_estate_schema):
        from feelens.services.validation import SchemaRegistry

        assert SchemaRegistry(db).list_active_industries() == [
            {"key": "legal_services", "name": "Legal Services"},
            {"key": "real_estate", "name": "Real Estate Agents"},
        ]


class TestLookup:

    def test_unknown_key_is_not_found(self, db):
        from feelens.errors import SchemaNotFoundError
        from feelens.services.validation import SchemaRegistry

        with pytest.raises(SchemaNotFoundError):
            SchemaRegistry(db).get_active_schema("plumbing")

    def test_deactivated_key_is_inactive(self, db, legal_schema):
        from feelens.errors import SchemaInactiveError
        from feelens.services.validation import SchemaRegistry

        registry = SchemaRegistry(db)
        registry.deactivate("legal_services")

        assert registry.get_active_version("legal_services") is None
        with pytest.raises(SchemaInactiveError):
            registry.get_active_schema("legal_services")
        with pytest.raises(SchemaInactiveError):
            registry.require_active_version("legal_services")

    def test_deactivate_unknown_key_and_repeat(self, db, legal_schema):
        from feelens.errors import SchemaNotFoundError
        from feelens.services.validation import SchemaRegistry

        registry = SchemaRegistry(db)

        assert registry.deactivate("legal_services") is True
        assert registry.deactivate("legal_services") is False
        with pytest.raises(SchemaNotFoundError):
            registry.deactivate("plumbing")

    def test_publish_rejects_invalid_json_schema_keyword(self, db):
        from feelens.errors import ValidationFailedError
        from feelens.services.validation import SchemaRegistry

        fee_schema = {"properties": {"hourly_rate": {"type": "numbr"}}}

        with pytest.raises(ValidationFailedError) as exc:
            SchemaRegistry(db).publish_version(
                "broken", display_name="Broken", fee_breakdown_schema=fee_schema, context_schema={}
            )

        assert list(exc.value.field_errors) == ["fee_breakdown_schema.properties.hourly_rate.type"]

    def test_lost_publish_race_is_conflict(self, db, legal_schema, monkeypatch):
        """Two first publishes compute the same version; the loser gets CONFLICT."""
        from sqlalchemy.exc import IntegrityError

        from feelens.errors import ConflictError
        from feelens.services.validation import SchemaRegistry

        registry = SchemaRegistry(db)

        def _duplicate_version(*args, **kwargs):
            raise IntegrityError("INSERT INTO industry_schemas", {}, Exception("duplicate version"))

        monkeypatch.setattr(registry, "_insert_next_version", _duplicate_version)

        with pytest.raises(ConflictError):
            registry.publish_version(**LEGAL_SERVICES)

        assert SchemaRegistry(db).get_active_version("legal_services") == 1

    def test_stale_cache_is_refetched_after_new_version(self, db, legal_schema):
        """A cached copy is never used once the active version moved."""
        from feelens.services.validation import SchemaCache, SchemaRegistry

        reader = SchemaRegistry(db, cache=SchemaCache())
        assert reader.get_active_schema("legal_services").version == 1

        # Published through a registry that does not share the reader's cache
        SchemaRegistry(db, cache=SchemaCache()).publish_version(
            **{**LEGAL_SERVICES, "display_name": "Legal Services (2026)"}
        )

        refreshed = reader.get_active_schema("legal_services")
        assert refreshed.version == 2
        assert refreshed.display_name == "Legal Services (2026)"

    def test_cache_hit_when_version_unchanged(self, db, legal_schema):
        from feelens.services.validation import SchemaCache, SchemaRegistry

        cache = SchemaCache()
        registry = SchemaRegistry(db, cache=cache)
        first = registry.get_active_schema("legal_services")

        assert cache.get("legal_services") is first
        assert registry.get_active_schema("legal_services") is first

    def test_expired_entries_are_dropped(self, legal_schema):
        from feelens.services.validation import SchemaCache

        cache = SchemaCache(ttl_seconds=-1)
        cache.put(legal_schema)

        assert cache.get("legal_services") is None
