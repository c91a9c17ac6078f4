"""
Auto-Publish Policies

Decides whether a clean submission (no risk flags, tier A or B) may go
public without a moderator. The rule differs per industry, so it is a
pluggable object looked up by industry key rather than one global rule.
"""
from typing import Dict, Optional

from ...models.db_models import EvidenceTier
from ...models.domain import IndustrySchema, ScoreResult

_TIER_RANK = {EvidenceTier.C: 0, EvidenceTier.B: 1, EvidenceTier.A: 2}


class AutoPublishPolicy:
    """Base policy: never auto-publish."""

    name = "never"

    def allows(self, schema: IndustrySchema, result: ScoreResult) -> bool:
        return False


class NeverAutoPublish(AutoPublishPolicy):
    pass


class MinimumTierPolicy(AutoPublishPolicy):
    """Publish when the entry reaches ``min_tier`` or better."""

    name = "minimum_tier"

    def __init__(self, min_tier: EvidenceTier = EvidenceTier.A):
        self.min_tier = min_tier

    def allows(self, schema: IndustrySchema, result: ScoreResult) -> bool:
        return _TIER_RANK[result.evidence_tier] >= _TIER_RANK[self.min_tier]


class SchemaRulesPolicy(AutoPublishPolicy):
    """
    Reads ``validation_rules.auto_publish`` from the industry schema:

        {"enabled": true, "min_tier": "B"}

    Missing or disabled config means hold for review.
    """

    name = "schema_rules"

    def allows(self, schema: IndustrySchema, result: ScoreResult) -> bool:
        config = schema.validation_rules.get("auto_publish") or {}
        if not config.get("enabled"):
            return False
        try:
            min_tier = EvidenceTier(config.get("min_tier", EvidenceTier.A.value))
        except ValueError:
            return False
        return MinimumTierPolicy(min_tier).allows(schema, result)


class AutoPublishPolicyRegistry:
    """Per-industry policy lookup with a default fallback."""

    def __init__(self, default: Optional[AutoPublishPolicy] = None):
        self.default = default or SchemaRulesPolicy()
        self._policies: Dict[str, AutoPublishPolicy] = {}

    def register(self, industry_key: str, policy: AutoPublishPolicy) -> None:
        self._policies[industry_key] = policy

    def unregister(self, industry_key: str) -> None:
        self._policies.pop(industry_key, None)

    def policy_for(self, industry_key: str) -> AutoPublishPolicy:
        return self._policies.get(industry_key, self.default)


default_registry = AutoPublishPolicyRegistry()
