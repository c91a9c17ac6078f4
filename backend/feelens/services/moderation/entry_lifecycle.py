"""
Entry Lifecycle Engine

Owns an entry's visibility / moderation-status transitions.

AUTHORITY MODEL:
- SYSTEM: chooses the initial state at creation from risk flags, tier and
  the industry's auto-publish policy
- MODERATOR/ADMIN: approve, reject, hide - each with a non-empty reason
  persisted to the Audit Trail

Every transition locks the entry row, so two moderators acting on the same
entry linearize: the second one plans against the first one's committed
state. Re-invoking a transition on an entry already in the target state is
a successful no-op and writes no audit row.

Entry actions motivated by a report go through apply_from_report(), a
two-step call (preview, then confirmed) that records a back-reference to
the report. The report engine itself never reaches entry state.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ForbiddenError, NotFoundError, ValidationFailedError
from ...models.db_models import (
    AuditTargetType, EntryReportDB, EvidenceTier, FeeEntryDB,
    ModerationStatus, Visibility,
)
from ...models.domain import Actor, IndustrySchema, ScoreResult
from .auto_publish import AutoPublishPolicy
from ..text_input import REASON_MAX_LENGTH, require_text
from .audit_trail import AuditTrail, entry_state, serialize_action
from .state_machine import ENTRY_ACTIONS, EntryStateMachine, EntryTransition

logger = logging.getLogger(__name__)


def initial_state(
    schema: IndustrySchema,
    result: ScoreResult,
    policy: AutoPublishPolicy,
) -> Tuple[Visibility, ModerationStatus]:
    """
    State for a brand-new entry.

    - any risk flag  -> (flagged, unreviewed)
    - tier C         -> (hidden, unreviewed)
    - policy allows  -> (public, approved)
    - otherwise      -> (hidden, unreviewed), held for review
    """
    if result.risk_flags:
        return Visibility.FLAGGED, ModerationStatus.UNREVIEWED
    if result.evidence_tier == EvidenceTier.C:
        return Visibility.HIDDEN, ModerationStatus.UNREVIEWED
    if policy.allows(schema, result):
        return Visibility.PUBLIC, ModerationStatus.APPROVED
    return Visibility.HIDDEN, ModerationStatus.UNREVIEWED


def serialize_entry(entry: FeeEntryDB) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "provider_id": entry.provider_id,
        "submitter_id": entry.submitter_id,
        "industry_key": entry.industry_key,
        "schema_version": entry.schema_version,
        "service_key": entry.service_key,
        "pricing_model": entry.pricing_model.value,
        "fee_breakdown": entry.fee_breakdown,
        "context": entry.context,
        "hidden_items": entry.hidden_items,
        "quote_transparency_score": entry.quote_transparency_score,
        "evidence_tier": entry.evidence_tier.value,
        "risk_flags": entry.risk_flags,
        "initial_quote_total": entry.initial_quote_total,
        "final_total_paid": entry.final_total_paid,
        "delta_pct": entry.delta_pct,
        "visibility": entry.visibility.value,
        "moderation_status": entry.moderation_status.value,
        "dispute_status": entry.dispute_status.value,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
        "updated_at": entry.updated_at.isoformat() if entry.updated_at else None,
    }


def require_moderator(actor: Actor) -> None:
    if actor is None or not actor.is_moderator:
        raise ForbiddenError("Moderator or admin role required")


class EntryLifecycleEngine:

    def __init__(self, db: Session):
        self.db = db
        self.state_machine = EntryStateMachine()
        self.audit = AuditTrail(db)

    # =========================================================================
    # MODERATOR TRANSITIONS
    # =========================================================================

    def approve(self, actor: Actor, entry_id: str, reason: str) -> Dict[str, Any]:
        return self._apply(actor, entry_id, "approve", reason)

    def reject(self, actor: Actor, entry_id: str, reason: str) -> Dict[str, Any]:
        return self._apply(actor, entry_id, "reject", reason)

    def hide(self, actor: Actor, entry_id: str, reason: str) -> Dict[str, Any]:
        return self._apply(actor, entry_id, "hide", reason)

    def preview(self, actor: Actor, entry_id: str, action: str) -> Dict[str, Any]:
        """What ``action`` would do to the entry. Never mutates."""
        require_moderator(actor)
        entry = self._get_entry(entry_id)
        plan = self.state_machine.plan(action, entry.visibility, entry.moderation_status)
        return self._result(entry, plan, changed=False, preview=True)

    def apply_from_report(
        self,
        actor: Actor,
        report_id: str,
        action: str,
        reason: str,
        confirmed: bool = False,
    ) -> Dict[str, Any]:
        """
        Entry action motivated by a report.

        First call (``confirmed=False``) returns the preview; only the
        confirmed second call mutates. The report row itself is untouched.
        """
        require_moderator(actor)
        report = self.db.query(EntryReportDB).filter(EntryReportDB.id == report_id).first()
        if report is None:
            raise NotFoundError(f"Report not found: {report_id}")

        if not confirmed:
            result = self.preview(actor, report.entry_id, action)
            result["report_id"] = report.id
            result["requires_confirmation"] = True
            return result

        result = self._apply(actor, report.entry_id, action, reason, related_report_id=report.id)
        result["report_id"] = report.id
        return result

    # =========================================================================
    # READS
    # =========================================================================

    def get_entry(self, actor: Optional[Actor], entry_id: str) -> Dict[str, Any]:
        """
        Public entries are visible to everyone; anything else only to its
        submitter and to moderators. Hidden entries are reported as missing.
        """
        entry = self._get_entry(entry_id)
        if entry.visibility != Visibility.PUBLIC:
            is_owner = actor is not None and actor.user_id == entry.submitter_id
            if not (is_owner or (actor is not None and actor.is_moderator)):
                raise NotFoundError(f"Entry not found: {entry_id}")
        return serialize_entry(entry)

    def list_queue(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Moderation queue: entries not yet given a verdict, oldest first."""
        rows = (
            self.db.query(FeeEntryDB)
            .filter(FeeEntryDB.moderation_status.in_(
                [ModerationStatus.UNREVIEWED, ModerationStatus.FLAGGED]
            ))
            .order_by(FeeEntryDB.created_at)
            .limit(limit)
            .all()
        )
        return [serialize_entry(e) for e in rows]

    def audit_history(self, actor: Actor, entry_id: str) -> List[Dict[str, Any]]:
        require_moderator(actor)
        self._get_entry(entry_id)
        return [serialize_action(row) for row in self.audit.history(entry_id)]

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _apply(
        self,
        actor: Actor,
        entry_id: str,
        action: str,
        reason: str,
        related_report_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_moderator(actor)
        if action not in ENTRY_ACTIONS:
            raise ValidationFailedError({"action": f"Unknown entry action: {action}"})
        reason = require_text("reason", reason, REASON_MAX_LENGTH)

        with transaction(self.db):
            entry = self._get_entry(entry_id, for_update=True)
            plan = self.state_machine.plan(action, entry.visibility, entry.moderation_status)

            if plan.is_noop:
                logger.info(f"Entry {entry_id} already in target state for {action}; no-op")
                return self._result(entry, plan, changed=False)

            old_state = entry_state(entry)
            entry.visibility = plan.to_visibility
            entry.moderation_status = plan.to_moderation
            self.audit.record(
                actor=actor,
                action=action,
                target_type=AuditTargetType.ENTRY,
                target_id=entry.id,
                entry_id=entry.id,
                related_report_id=related_report_id,
                old_state=old_state,
                new_state=entry_state(entry),
                reason=reason,
            )
            result = self._result(entry, plan, changed=True)

        logger.info(
            f"Entry {entry_id} {action} by {actor.user_id}: "
            f"{plan.from_visibility.value}/{plan.from_moderation.value} -> "
            f"{plan.to_visibility.value}/{plan.to_moderation.value}"
        )
        return result

    def _get_entry(self, entry_id: str, for_update: bool = False) -> FeeEntryDB:
        query = self.db.query(FeeEntryDB).filter(FeeEntryDB.id == entry_id)
        if for_update:
            query = query.with_for_update()
        entry = query.first()
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    @staticmethod
    def _result(
        entry: FeeEntryDB,
        plan: EntryTransition,
        changed: bool,
        preview: bool = False,
    ) -> Dict[str, Any]:
        old_state, new_state = plan.as_states()
        return {
            "entry_id": entry.id,
            "action": plan.action,
            "changed": changed and not preview,
            "old_state": old_state,
            "new_state": new_state,
            "visibility": (entry.visibility if not preview else plan.to_visibility).value,
            "moderation_status": (entry.moderation_status if not preview else plan.to_moderation).value,
        }
