"""
Submission Service

Authoritative write path for a new fee entry. Everything happens in ONE
transaction, so a failure at any step leaves nothing behind:

    1. provider exists and is approved
    2. rate-limit reservation (locks the submitter row)
    3. active industry schema
    4. fee breakdown + context validators, all field errors merged
    5. confirmed evidence lookup
    6. risk & evidence scoring
    7. entry insert in its initial state
    8. evidence linking
    9. audit rows

dry_run() runs steps 3, 4 and 6 only and never writes; it backs the soft,
as-you-type validation endpoint.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ProviderNotApprovedError, ProviderNotFoundError, ValidationFailedError
from ...models.db_models import (
    AuditTargetType, EvidenceDB, FeeEntryDB, PricingModel, ProviderDB,
    ProviderStatus, UploadState, Visibility,
)
from ...models.domain import Actor, EntrySnapshot, IndustrySchema, ValidationResult
from ..moderation.audit_trail import AuditTrail, entry_state
from ..moderation.auto_publish import AutoPublishPolicyRegistry, default_registry
from ..moderation.entry_lifecycle import initial_state, serialize_entry
from ..validation import SchemaRegistry, context_validator, fee_breakdown_validator, service_options
from . import risk_scorer
from .entry_scoring import count_similar_recent_entries
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

TRANSPARENCY_MIN = 1
TRANSPARENCY_MAX = 5
MAX_HIDDEN_ITEMS = 50


# =============================================================================
# ENVELOPE CHECKS (pure)
# =============================================================================

def _optional_amount(field: str, value: Any, errors: Dict[str, str]) -> Optional[float]:
    if value is None:
        return None
    if not fee_breakdown_validator.is_number(value):
        errors[field] = "Must be a number."
        return None
    if not math.isfinite(value) or value < 0:
        errors[field] = "Must be zero or greater."
        return None
    return float(value)


def check_envelope(
    schema: IndustrySchema,
    payload: Mapping[str, Any],
) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """
    Top-level fields around the two schema-driven bags.

    Returns (field_errors, cleaned values).
    """
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    raw_model = payload.get("pricing_model")
    try:
        cleaned["pricing_model"] = PricingModel(raw_model)
    except ValueError:
        errors["pricing_model"] = "Choose a pricing model."
        cleaned["pricing_model"] = None

    service_key = payload.get("service_key")
    options = [o["key"] for o in service_options(schema)]
    if service_key is not None and options and service_key not in options:
        errors["service_key"] = "Choose a service from the list."
    cleaned["service_key"] = service_key

    score = payload.get("quote_transparency_score")
    if score is not None:
        if (
            isinstance(score, bool)
            or not isinstance(score, int)
            or not TRANSPARENCY_MIN <= score <= TRANSPARENCY_MAX
        ):
            errors["quote_transparency_score"] = (
                f"Must be a whole number from {TRANSPARENCY_MIN} to {TRANSPARENCY_MAX}."
            )
            score = None
    cleaned["quote_transparency_score"] = score

    cleaned["initial_quote_total"] = _optional_amount(
        "initial_quote_total", payload.get("initial_quote_total"), errors
    )
    cleaned["final_total_paid"] = _optional_amount(
        "final_total_paid", payload.get("final_total_paid"), errors
    )

    hidden_items = payload.get("hidden_items") or []
    if not isinstance(hidden_items, list) or not all(isinstance(i, str) for i in hidden_items):
        errors["hidden_items"] = "Must be a list of item names."
        hidden_items = []
    elif len(hidden_items) > MAX_HIDDEN_ITEMS:
        errors["hidden_items"] = f"At most {MAX_HIDDEN_ITEMS} items."
    cleaned["hidden_items"] = [i.strip() for i in hidden_items if i.strip()]

    return errors, cleaned


def validate_submission(
    schema: IndustrySchema,
    payload: Mapping[str, Any],
    partial: bool = False,
) -> Tuple[ValidationResult, Dict[str, Any]]:
    """Envelope, fee breakdown and context checks with every error merged."""
    envelope_errors, cleaned = check_envelope(schema, payload)
    pricing_model = cleaned["pricing_model"]

    fee_result = fee_breakdown_validator.validate(
        schema,
        pricing_model.value if pricing_model else "",
        payload.get("fee_breakdown"),
        partial=partial,
    )
    context_result = context_validator.validate(schema, payload.get("context"), partial=partial)

    result = ValidationResult(field_errors=dict(envelope_errors))
    result = result.merge(fee_result).merge(context_result)
    cleaned["fee_breakdown"] = fee_result.normalized
    cleaned["context"] = context_result.normalized
    return result, cleaned


class SubmissionService:

    def __init__(
        self,
        db: Session,
        registry: Optional[SchemaRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        policies: Optional[AutoPublishPolicyRegistry] = None,
    ):
        self.db = db
        self.registry = registry or SchemaRegistry(db)
        self.rate_limiter = rate_limiter or RateLimiter(db)
        self.policies = policies or default_registry
        self.audit = AuditTrail(db)

    # =========================================================================
    # DRY RUN
    # =========================================================================

    def dry_run(self, payload: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
        """Validate and score without writing anything."""
        schema = self.registry.get_active_schema(payload.get("industry_key") or "")
        result, cleaned = validate_submission(schema, payload, partial=partial)

        preview = risk_scorer.score(
            EntrySnapshot(
                hidden_items=cleaned["hidden_items"],
                initial_quote_total=cleaned["initial_quote_total"],
                final_total_paid=cleaned["final_total_paid"],
            ),
            0,
            cleaned["quote_transparency_score"],
        )
        return {
            "ok": result.ok,
            "field_errors": result.field_errors,
            "schema_version": schema.version,
            "normalized_fee_breakdown": cleaned["fee_breakdown"],
            "preview": {
                "evidence_tier": preview.evidence_tier.value,
                "risk_flags": list(preview.risk_flags),
                "delta_pct": preview.delta_pct,
            },
        }

    # =========================================================================
    # SUBMIT
    # =========================================================================

    def submit(self, actor: Actor, payload: Mapping[str, Any]) -> Dict[str, Any]:
        provider_id = payload.get("provider_id")
        industry_key = payload.get("industry_key")
        evidence_ids = list(payload.get("evidence_ids") or [])

        with transaction(self.db):
            provider = self.db.query(ProviderDB).filter(ProviderDB.id == provider_id).first()
            if provider is None:
                raise ProviderNotFoundError()
            if provider.status != ProviderStatus.APPROVED:
                raise ProviderNotApprovedError()

            now = datetime.utcnow()
            self.rate_limiter.check_and_reserve(actor.user_id, provider.id, now=now)

            schema = self.registry.get_active_schema(industry_key or "")
            result, cleaned = validate_submission(schema, payload)

            evidence_rows, evidence_errors = self._load_evidence(actor, evidence_ids)
            result = result.merge(ValidationResult(field_errors=evidence_errors))
            if not result.ok:
                raise ValidationFailedError(result.field_errors)

            confirmed = sum(1 for e in evidence_rows if e.upload_state == UploadState.CONFIRMED)
            similar = count_similar_recent_entries(
                self.db,
                submitter_id=actor.user_id,
                provider_id=provider.id,
                service_key=cleaned["service_key"],
                final_total_paid=cleaned["final_total_paid"],
                as_of=now,
            )
            score = risk_scorer.score(
                EntrySnapshot(
                    hidden_items=cleaned["hidden_items"],
                    initial_quote_total=cleaned["initial_quote_total"],
                    final_total_paid=cleaned["final_total_paid"],
                    similar_recent_entries=similar,
                ),
                confirmed,
                cleaned["quote_transparency_score"],
            )

            policy = self.policies.policy_for(schema.industry_key)
            visibility, moderation_status = initial_state(schema, score, policy)

            entry = FeeEntryDB(
                id=str(uuid4()),
                provider_id=provider.id,
                submitter_id=actor.user_id,
                industry_key=schema.industry_key,
                schema_version=schema.version,
                service_key=cleaned["service_key"],
                pricing_model=cleaned["pricing_model"],
                fee_breakdown=cleaned["fee_breakdown"],
                context=cleaned["context"],
                hidden_items=cleaned["hidden_items"],
                quote_transparency_score=cleaned["quote_transparency_score"],
                evidence_tier=score.evidence_tier,
                risk_flags=list(score.risk_flags),
                initial_quote_total=cleaned["initial_quote_total"],
                final_total_paid=cleaned["final_total_paid"],
                delta_pct=score.delta_pct,
                visibility=visibility,
                moderation_status=moderation_status,
                created_at=now,
                updated_at=now,
            )
            self.db.add(entry)
            self.db.flush()

            for evidence in evidence_rows:
                evidence.entry_id = entry.id

            self.audit.record(
                actor=actor,
                action="entry_created",
                target_type=AuditTargetType.ENTRY,
                target_id=entry.id,
                entry_id=entry.id,
                old_state=None,
                new_state=entry_state(entry),
            )
            if visibility == Visibility.PUBLIC:
                self.audit.record(
                    actor=None,
                    action="auto_publish",
                    target_type=AuditTargetType.ENTRY,
                    target_id=entry.id,
                    entry_id=entry.id,
                    old_state=None,
                    new_state=entry_state(entry),
                    reason=f"policy={policy.name}",
                )
            response = serialize_entry(entry)

        logger.info(
            f"Entry {response['id']} submitted by {actor.user_id} for provider {provider_id}: "
            f"tier={score.evidence_tier.value} flags={score.risk_flags} "
            f"state={visibility.value}/{moderation_status.value}"
        )
        return response

    def _load_evidence(
        self,
        actor: Actor,
        evidence_ids: List[str],
    ) -> Tuple[List[EvidenceDB], Dict[str, str]]:
        if not evidence_ids:
            return [], {}
        rows = (
            self.db.query(EvidenceDB)
            .filter(EvidenceDB.id.in_(evidence_ids))
            .with_for_update()
            .all()
        )
        by_id = {r.id: r for r in rows}
        errors = {}
        for i, evidence_id in enumerate(evidence_ids):
            evidence = by_id.get(evidence_id)
            if evidence is None or evidence.uploader_id != actor.user_id:
                errors[f"evidence_ids.{i}"] = "Evidence not found."
            elif evidence.entry_id is not None:
                errors[f"evidence_ids.{i}"] = "Evidence is already attached to another entry."
            elif evidence.upload_state == UploadState.FAILED:
                errors[f"evidence_ids.{i}"] = "Upload failed; please upload again."
        return list(by_id.values()), errors
