"""
Tests for the Risk & Evidence Scorer and auto-publish policies.

Tier policy:
- A: confirmed evidence AND transparency >= 4
- B: confirmed evidence OR transparency >= 3
- C: otherwise

Risk flags are independent signals; none suppresses another.
"""
from datetime import datetime

import pytest


def _snapshot(**fields):
    from feelens.models.domain import EntrySnapshot
    return EntrySnapshot(**fields)


# =============================================================================
# TEST: TIER DERIVATION
# =============================================================================

class TestEvidenceTier:

    @pytest.mark.parametrize("evidence,transparency,expected", [
        (1, 4, "A"),
        (3, 5, "A"),
        (1, 3, "B"),
        (1, None, "B"),
        (0, 3, "B"),
        (0, 5, "B"),
        (0, 2, "C"),
        (0, None, "C"),
    ])
    def test_tier_policy(self, evidence, transparency, expected):
        from feelens.services.submission.risk_scorer import derive_tier

        assert derive_tier(evidence, transparency).value == expected

    def test_more_evidence_never_lowers_tier(self):
        """Monotonic in confirmed evidence and transparency."""
        from feelens.services.submission.risk_scorer import derive_tier

        rank = {"C": 0, "B": 1, "A": 2}
        for transparency in [None, 1, 2, 3, 4, 5]:
            previous = -1
            for evidence in range(0, 4):
                current = rank[derive_tier(evidence, transparency).value]
                assert current >= previous
                previous = current

        for evidence in range(0, 3):
            previous = -1
            for transparency in [1, 2, 3, 4, 5]:
                current = rank[derive_tier(evidence, transparency).value]
                assert current >= previous
                previous = current

    def test_reverification_holds_tier_at_c(self):
        from feelens.services.submission.risk_scorer import score

        pending = _snapshot(reverification_since=datetime.utcnow())
        result = score(pending, confirmed_evidence=0, transparency_score=5)

        assert result.evidence_tier.value == "C"

    def test_only_evidence_after_reverification_counts(self):
        from feelens.services.submission.risk_scorer import count_counted_evidence

        marker = datetime(2026, 1, 10)
        confirmed = [datetime(2026, 1, 1), datetime(2026, 1, 11), None]

        assert count_counted_evidence(confirmed, None) == 3
        assert count_counted_evidence(confirmed, marker) == 1


# =============================================================================
# TEST: RISK FLAGS
# =============================================================================

class TestRiskFlags:

    def test_clean_entry_has_no_flags(self):
        from feelens.services.submission.risk_scorer import score

        result = score(
            _snapshot(initial_quote_total=1000, final_total_paid=1100),
            confirmed_evidence=1,
            transparency_score=4,
        )

        assert result.risk_flags == []
        assert result.delta_pct == 10.0

    def test_flags_are_independent(self):
        """Every signal fires at once; none suppresses another."""
        from feelens.services.submission import risk_scorer

        result = risk_scorer.score(
            _snapshot(
                hidden_items=["printing"],
                initial_quote_total=1000,
                final_total_paid=1500,
                similar_recent_entries=1,
            ),
            confirmed_evidence=0,
            transparency_score=1,
        )

        assert set(result.risk_flags) == {
            risk_scorer.FLAG_NO_EVIDENCE,
            risk_scorer.FLAG_QUOTE_PAID_MISMATCH,
            risk_scorer.FLAG_DUPLICATE_SUSPECT,
            risk_scorer.FLAG_UNDISCLOSED_ITEMS,
            risk_scorer.FLAG_LOW_TRANSPARENCY,
        }

    @pytest.mark.parametrize("final,flagged", [
        (1299, False),
        (1300, True),
        (700, True),
        (701, False),
    ])
    def test_quote_paid_mismatch_threshold(self, final, flagged):
        from feelens.services.submission import risk_scorer

        result = risk_scorer.score(
            _snapshot(initial_quote_total=1000, final_total_paid=final),
            confirmed_evidence=1,
            transparency_score=4,
        )

        assert (risk_scorer.FLAG_QUOTE_PAID_MISMATCH in result.risk_flags) is flagged

    def test_low_transparency_boundary(self):
        from feelens.services.submission import risk_scorer

        at_two = risk_scorer.score(_snapshot(), 1, 2)
        at_three = risk_scorer.score(_snapshot(), 1, 3)

        assert risk_scorer.FLAG_LOW_TRANSPARENCY in at_two.risk_flags
        assert risk_scorer.FLAG_LOW_TRANSPARENCY not in at_three.risk_flags

    @pytest.mark.parametrize("initial,final,expected", [
        (None, 100, None),
        (100, None, None),
        (0, 100, None),
        (-5, 100, None),
        (300, 400, 33.33),
        (400, 300, -25.0),
    ])
    def test_delta_pct(self, initial, final, expected):
        from feelens.services.submission.risk_scorer import derive_delta_pct

        assert derive_delta_pct(initial, final) == expected


# =============================================================================
# TEST: AUTO-PUBLISH POLICIES / INITIAL STATE
# =============================================================================

class TestInitialState:

    @pytest.fixture
    def schema(self):
        from feelens.models.domain import IndustrySchema
        return IndustrySchema(
            industry_key="legal_services",
            version=1,
            display_name="Legal Services",
            validation_rules={"auto_publish": {"enabled": True, "min_tier": "B"}},
        )

    def _result(self, tier, flags=()):
        from feelens.models.db_models import EvidenceTier
        from feelens.models.domain import ScoreResult
        return ScoreResult(evidence_tier=EvidenceTier(tier), risk_flags=list(flags))

    def test_any_flag_starts_flagged(self, schema):
        from feelens.services.moderation import SchemaRulesPolicy, initial_state

        visibility, status = initial_state(schema, self._result("A", ["duplicate_suspect"]), SchemaRulesPolicy())

        assert (visibility.value, status.value) == ("flagged", "unreviewed")

    def test_tier_c_starts_hidden(self, schema):
        from feelens.services.moderation import SchemaRulesPolicy, initial_state

        visibility, status = initial_state(schema, self._result("C"), SchemaRulesPolicy())

        assert (visibility.value, status.value) == ("hidden", "unreviewed")

    def test_policy_allows_publish_as_approved(self, schema):
        """Public entries are always approved ones."""
        from feelens.services.moderation import SchemaRulesPolicy, initial_state

        visibility, status = initial_state(schema, self._result("B"), SchemaRulesPolicy())

        assert (visibility.value, status.value) == ("public", "approved")

    def test_policy_refusal_holds_for_review(self, schema):
        from feelens.services.moderation import NeverAutoPublish, initial_state

        visibility, status = initial_state(schema, self._result("A"), NeverAutoPublish())

        assert (visibility.value, status.value) == ("hidden", "unreviewed")

    def test_schema_rules_policy_min_tier_and_disabled(self):
        from feelens.models.domain import IndustrySchema
        from feelens.services.moderation import SchemaRulesPolicy

        policy = SchemaRulesPolicy()
        strict = IndustrySchema("a", 1, "A", validation_rules={"auto_publish": {"enabled": True, "min_tier": "A"}})
        disabled = IndustrySchema("b", 1, "B", validation_rules={"auto_publish": {"enabled": False}})
        bogus = IndustrySchema("c", 1, "C", validation_rules={"auto_publish": {"enabled": True, "min_tier": "Z"}})

        assert policy.allows(strict, self._result("A"))
        assert not policy.allows(strict, self._result("B"))
        assert not policy.allows(disabled, self._result("A"))
        assert not policy.allows(bogus, self._result("A"))

    def test_registry_per_industry(self, schema):
        from feelens.models.db_models import EvidenceTier
        from feelens.services.moderation import AutoPublishPolicyRegistry, MinimumTierPolicy, SchemaRulesPolicy

        registry = AutoPublishPolicyRegistry()
        registry.register("real_estate", MinimumTierPolicy(EvidenceTier.A))

        assert isinstance(registry.policy_for("legal_services"), SchemaRulesPolicy)
        assert isinstance(registry.policy_for("real_estate"), MinimumTierPolicy)

        registry.unregister("real_estate")
        assert isinstance(registry.policy_for("real_estate"), SchemaRulesPolicy)
