"""
Tests for the schema-driven validators.

Both validators are pure: they take a detached IndustrySchema snapshot and a
property bag and return a ValidationResult. No database is involved.

1. Required fields per pricing model (and the partial / soft mode)
2. Numeric invariants: finite, non-negative, percentages <= 100
3. Disbursement items and the recomputed total
4. additionalProperties handling
5. Context: required keys, enums, booleans, numeric bounds
"""
import math

import pytest

from feelens.industry_catalog import LEGAL_SERVICES, REAL_ESTATE
from feelens.models.domain import IndustrySchema


def _schema(definition, **overrides):
    values = dict(
        industry_key=definition["industry_key"],
        version=1,
        display_name=definition["display_name"],
        fee_breakdown_schema=definition["fee_breakdown_schema"],
        context_schema=definition["context_schema"],
        validation_rules=definition["validation_rules"],
        service_taxonomy=definition["service_taxonomy"],
    )
    values.update(overrides)
    return IndustrySchema(**values)


@pytest.fixture
def legal():
    return _schema(LEGAL_SERVICES)


@pytest.fixture
def real_estate():
    return _schema(REAL_ESTATE)


# =============================================================================
# TEST: REQUIRED FIELDS
# =============================================================================

class TestRequiredFields:

    def test_required_fields_union_schema_and_pricing_model(self, legal):
        from feelens.services.validation import required_fields_for

        schema = _schema(
            LEGAL_SERVICES,
            fee_breakdown_schema={**LEGAL_SERVICES["fee_breakdown_schema"], "required": ["gst_included"]},
        )
        assert required_fields_for(schema, "blended") == ["gst_included", "hourly_rate", "estimated_hours"]
        assert required_fields_for(legal, "other") == []

    def test_fixed_fee_missing_amount_is_keyed_to_field(self, legal):
        """Fixed pricing without fixed_fee_amount → error on fee_breakdown.fixed_fee_amount."""
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "fixed", {"gst_included": True})

        assert not result.ok
        assert set(result.field_errors) == {"fee_breakdown.fixed_fee_amount"}

    @pytest.mark.parametrize("empty", [None, "", "   ", []])
    def test_empty_values_count_as_missing(self, legal, empty):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "hourly", {"hourly_rate": empty})

        assert "fee_breakdown.hourly_rate" in result.field_errors

    def test_each_pricing_model_requires_its_own_fields(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "blended", {"hourly_rate": 300})

        assert set(result.field_errors) == {"fee_breakdown.estimated_hours"}

    def test_partial_mode_skips_missing_fields_only(self, legal):
        """Soft mode: missing fields are not reported, bad values still are."""
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "hourly", {"estimated_hours": -2}, partial=True)

        assert "fee_breakdown.hourly_rate" not in result.field_errors
        assert "fee_breakdown.estimated_hours" in result.field_errors

    def test_pct_disclosure_rule(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        missing = fee_breakdown_validator.validate(legal, "contingency_pct", {})
        assert missing.field_errors["fee_breakdown.contingency_pct"] == (
            "Disclose the contingency or uplift percentage."
        )

        disclosed = fee_breakdown_validator.validate(legal, "contingency_pct", {"contingency_pct": 25})
        assert disclosed.ok


# =============================================================================
# TEST: NUMERIC INVARIANTS
# =============================================================================

class TestNumericInvariants:

    def test_negative_amount_rejected(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "hourly", {"hourly_rate": -1})

        assert result.field_errors == {"fee_breakdown.hourly_rate": "Cannot be negative."}

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_rejected(self, legal, value):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "hourly", {"hourly_rate": value})

        assert "fee_breakdown.hourly_rate" in result.field_errors

    def test_percentage_capped_at_100(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        over = fee_breakdown_validator.validate(legal, "uplift", {"uplift_pct": 100.01})
        edge = fee_breakdown_validator.validate(legal, "uplift", {"uplift_pct": 100})

        assert over.field_errors == {"fee_breakdown.uplift_pct": "Percentage cannot exceed 100."}
        assert edge.ok

    def test_percentage_detected_by_name_suffix(self, real_estate):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(real_estate, "other", {"bonus_percent": 120})

        assert "fee_breakdown.bonus_percent" in result.field_errors

    def test_boolean_is_never_a_number(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "fixed", {"fixed_fee_amount": True})

        assert result.field_errors["fee_breakdown.fixed_fee_amount"] == "Must be a number."

    def test_string_in_numeric_field_rejected(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(legal, "fixed", {"fixed_fee_amount": "1500"})

        assert result.field_errors["fee_breakdown.fixed_fee_amount"] == "Must be a number."

    def test_zero_is_allowed(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        assert fee_breakdown_validator.validate(legal, "fixed", {"fixed_fee_amount": 0}).ok

    def test_declared_boolean_is_type_checked(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(
            legal, "fixed", {"fixed_fee_amount": 1500, "gst_included": "maybe"}
        )

        assert result.field_errors == {"fee_breakdown.gst_included": "Must be true or false."}

    def test_declared_enum_and_bounds_apply(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        properties = dict(LEGAL_SERVICES["fee_breakdown_schema"]["properties"])
        properties["billing_unit"] = {"type": "string", "enum": ["6min", "15min"]}
        properties["estimated_hours"] = {"type": "number", "maximum": 500}
        schema = _schema(
            LEGAL_SERVICES,
            fee_breakdown_schema={**LEGAL_SERVICES["fee_breakdown_schema"], "properties": properties},
        )

        result = fee_breakdown_validator.validate(
            schema, "hourly", {"hourly_rate": 300, "billing_unit": "hourly", "estimated_hours": 900}
        )

        assert result.field_errors == {
            "fee_breakdown.billing_unit": "Must be one of: 6min, 15min.",
            "fee_breakdown.estimated_hours": "Must be at most 500.",
        }


# =============================================================================
# TEST: DISBURSEMENTS
# =============================================================================

class TestDisbursements:

    def test_total_recomputed_from_items(self, legal):
        """A claimed total is never trusted."""
        from feelens.services.validation import fee_breakdown_validator

        data = {
            "fixed_fee_amount": 1500,
            "disbursements_items": [
                {"label": "Title search", "amount": 35.5},
                {"label": "Settlement", "amount": 120.25},
            ],
            "disbursements_total": 9999,
        }
        result = fee_breakdown_validator.validate(legal, "fixed", data)

        assert result.ok
        assert result.normalized["disbursements_total"] == 155.75
        assert data["disbursements_total"] == 9999  # input untouched

    def test_total_rounded_to_cents(self):
        from feelens.services.validation.fee_breakdown import recompute_disbursements_total

        items = [{"label": "a", "amount": 0.1}, {"label": "b", "amount": 0.2}]
        assert recompute_disbursements_total(items) == 0.3
        assert recompute_disbursements_total([]) == 0.0

    def test_item_errors_keyed_by_index(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        data = {
            "fixed_fee_amount": 100,
            "disbursements_items": [
                {"label": "Search", "amount": 10},
                {"label": " ", "amount": 0},
                {"label": "Courier", "amount": -5},
            ],
        }
        result = fee_breakdown_validator.validate(legal, "fixed", data)

        assert set(result.field_errors) == {
            "fee_breakdown.disbursements_items.1.label",
            "fee_breakdown.disbursements_items.1.amount",
            "fee_breakdown.disbursements_items.2.amount",
        }

    def test_items_must_be_a_list(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(
            legal, "fixed", {"fixed_fee_amount": 1, "disbursements_items": "none"}
        )

        assert "fee_breakdown.disbursements_items" in result.field_errors

    def test_claimed_total_without_items_is_not_kept(self, legal):
        """With no items the total is the sum of nothing, whatever was claimed."""
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(
            legal, "fixed", {"fixed_fee_amount": 1500, "disbursements_total": 99999}
        )

        assert result.ok
        assert result.normalized["disbursements_total"] == 0.0

    def test_claimed_total_is_still_type_checked(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(
            legal, "fixed", {"fixed_fee_amount": 1500, "disbursements_total": -5}
        )

        assert set(result.field_errors) == {"fee_breakdown.disbursements_total"}


# =============================================================================
# TEST: ADDITIONAL PROPERTIES
# =============================================================================

class TestAdditionalProperties:

    def test_undeclared_rejected_when_closed(self, legal):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(
            legal, "fixed", {"fixed_fee_amount": 1, "pricing_model": "fixed", "tip": 10}
        )

        assert set(result.field_errors) == {"fee_breakdown.tip"}

    def test_undeclared_passes_through_when_open(self, real_estate):
        from feelens.services.validation import fee_breakdown_validator

        result = fee_breakdown_validator.validate(
            real_estate, "contingency_pct", {"commission_pct": 2.2, "photography_fee": 450}
        )

        assert result.ok
        assert result.normalized["photography_fee"] == 450


# =============================================================================
# TEST: CONTEXT VALIDATOR
# =============================================================================

class TestContextValidator:

    def test_valid_context(self, legal):
        from feelens.services.validation import context_validator

        result = context_validator.validate(
            legal, {"matter_type": "litigation", "jurisdiction": "VIC", "urgent": False, "parties_count": 2}
        )

        assert result.ok

    def test_required_keys_use_title_in_message(self, legal):
        from feelens.services.validation import context_validator

        result = context_validator.validate(legal, {"matter_type": "litigation", "jurisdiction": "  "})

        assert result.field_errors == {"context.jurisdiction": "Jurisdiction is required."}

    def test_partial_skips_required(self, legal):
        from feelens.services.validation import context_validator

        assert context_validator.validate(legal, {}, partial=True).ok

    def test_enum_boolean_and_bounds(self, legal):
        from feelens.services.validation import context_validator

        result = context_validator.validate(
            legal,
            {
                "matter_type": "litigation",
                "jurisdiction": "XYZ",
                "urgent": "yes",
                "parties_count": 1.5,
                "property_value": -1,
            },
        )

        assert set(result.field_errors) == {
            "context.jurisdiction",
            "context.urgent",
            "context.parties_count",
            "context.property_value",
        }
        assert result.field_errors["context.parties_count"] == "Must be a whole number."
        assert result.field_errors["context.property_value"] == "Must be at least 0."

    def test_additional_context_permitted_by_default(self, legal):
        from feelens.services.validation import context_validator

        result = context_validator.validate(
            legal, {"matter_type": "litigation", "jurisdiction": "NSW", "firm_size": "boutique"}
        )

        assert result.ok

    def test_text_and_list_types(self, legal):
        from feelens.services.validation import context_validator

        properties = dict(LEGAL_SERVICES["context_schema"]["properties"])
        properties["courts"] = {"type": "array", "title": "Courts"}
        schema = _schema(
            LEGAL_SERVICES,
            context_schema={**LEGAL_SERVICES["context_schema"], "properties": properties},
        )

        result = context_validator.validate(
            schema, {"matter_type": 7, "jurisdiction": "NSW", "courts": "local"}
        )

        assert result.field_errors == {
            "context.matter_type": "Must be text.",
            "context.courts": "Must be a list.",
        }

    def test_additional_context_rejected_when_closed(self, legal):
        from feelens.services.validation import context_validator

        closed = _schema(
            LEGAL_SERVICES,
            context_schema={**LEGAL_SERVICES["context_schema"], "additionalProperties": False},
        )
        result = context_validator.validate(
            closed, {"matter_type": "litigation", "jurisdiction": "NSW", "firm_size": "boutique"}
        )

        assert set(result.field_errors) == {"context.firm_size"}


# =============================================================================
# TEST: PRESENTATION HELPERS
# =============================================================================

class TestSchemaHelpers:

    def test_service_options_and_context_hints(self, legal, real_estate):
        from feelens.services.validation import recommended_context_fields, service_options

        assert {"key": "conveyancing", "label": "Conveyancing"} in service_options(legal)
        assert service_options(real_estate)[0]["key"] == "residential_sale"
        assert recommended_context_fields(legal, "family_law") == ["court_level", "parties_count"]
        assert recommended_context_fields(legal, "immigration") == []
