"""
Dispute Lifecycle Engine

A business (provider) contests an entry about it; a moderator resolves the
dispute with one of four outcomes. The dispute row and the entry are always
written in the same transaction, so dispute.status == pending exactly when
entry.dispute_status == pending.

OUTCOMES:
- maintained:     entry unchanged apart from dispute_status
- corrected:      entry awaits re-verification; tier held at C until fresh
                  evidence is confirmed
- partial_hidden: moderation_status -> flagged (a public entry also leaves
                  public, since public requires approved)
- removed:        visibility -> hidden
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from ...models.db_models import (
    AuditTargetType, DisputeDB, DisputeOutcome, DisputeStatus,
    EntryDisputeStatus, FeeEntryDB, ModerationStatus, Visibility,
)
from ...models.domain import Actor
from ..submission.entry_scoring import rescore_entry
from ..text_input import (
    CLAIM_MAX_LENGTH, NOTE_MAX_LENGTH, RESPONSE_MAX_LENGTH,
    optional_text, require_text,
)
from .audit_trail import AuditTrail, entry_state
from .entry_lifecycle import require_moderator

logger = logging.getLogger(__name__)

VERIFICATION_METHOD_MAX_LENGTH = 100
CONTACT_MAX_LENGTH = 255


def serialize_dispute(dispute: DisputeDB) -> Dict[str, Any]:
    return {
        "id": dispute.id,
        "entry_id": dispute.entry_id,
        "provider_id": dispute.provider_id,
        "raised_by": dispute.raised_by,
        "provider_verification_method": dispute.provider_verification_method,
        "provider_contact": dispute.provider_contact,
        "provider_claim": dispute.provider_claim,
        "status": dispute.status.value,
        "outcome": dispute.outcome.value if dispute.outcome else None,
        "platform_response": dispute.platform_response,
        "resolution_note": dispute.resolution_note,
        "resolved_by": dispute.resolved_by,
        "created_at": dispute.created_at.isoformat() if dispute.created_at else None,
        "resolved_at": dispute.resolved_at.isoformat() if dispute.resolved_at else None,
    }


class DisputeLifecycleEngine:

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditTrail(db)

    # =========================================================================
    # OPEN
    # =========================================================================

    def open_dispute(
        self,
        actor: Actor,
        entry_id: str,
        verification_method: Optional[str],
        claim: str,
        contact: Optional[str] = None,
    ) -> Dict[str, Any]:
        claim = require_text("provider_claim", claim, CLAIM_MAX_LENGTH)
        verification_method = optional_text(
            "provider_verification_method", verification_method, VERIFICATION_METHOD_MAX_LENGTH
        )
        contact = optional_text("provider_contact", contact, CONTACT_MAX_LENGTH)

        with transaction(self.db):
            entry = (
                self.db.query(FeeEntryDB)
                .filter(FeeEntryDB.id == entry_id)
                .with_for_update()
                .first()
            )
            if entry is None:
                raise NotFoundError(f"Entry not found: {entry_id}")

            if actor.provider_id is None or actor.provider_id != entry.provider_id:
                raise ForbiddenError("Only the entry's provider may dispute it")

            pending = (
                self.db.query(DisputeDB)
                .filter(
                    DisputeDB.entry_id == entry_id,
                    DisputeDB.status == DisputeStatus.PENDING,
                )
                .first()
            )
            if pending is not None:
                raise ConflictError("A dispute is already pending for this entry")

            old_state = entry_state(entry)
            dispute = DisputeDB(
                id=str(uuid4()),
                entry_id=entry.id,
                provider_id=entry.provider_id,
                raised_by=actor.user_id,
                provider_verification_method=verification_method,
                provider_contact=contact,
                provider_claim=claim,
                status=DisputeStatus.PENDING,
            )
            self.db.add(dispute)
            entry.dispute_status = EntryDisputeStatus.PENDING
            self.db.flush()

            self.audit.record(
                actor=actor,
                action="dispute_opened",
                target_type=AuditTargetType.DISPUTE,
                target_id=dispute.id,
                entry_id=entry.id,
                old_state=old_state,
                new_state=entry_state(entry),
                reason=claim,
            )
            result = serialize_dispute(dispute)

        logger.info(f"Dispute {result['id']} opened on entry {entry_id} by provider {actor.provider_id}")
        return result

    # =========================================================================
    # RESOLVE
    # =========================================================================

    def resolve(
        self,
        actor: Actor,
        dispute_id: str,
        outcome: str,
        platform_response: str,
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_moderator(actor)
        try:
            outcome = DisputeOutcome(outcome)
        except ValueError:
            raise ValidationFailedError({"outcome": f"Unknown dispute outcome: {outcome}"})
        platform_response = require_text("platform_response", platform_response, RESPONSE_MAX_LENGTH)
        note = optional_text("resolution_note", note, NOTE_MAX_LENGTH)

        with transaction(self.db):
            dispute = (
                self.db.query(DisputeDB)
                .filter(DisputeDB.id == dispute_id)
                .with_for_update()
                .first()
            )
            if dispute is None:
                raise NotFoundError(f"Dispute not found: {dispute_id}")
            if dispute.status != DisputeStatus.PENDING:
                raise ConflictError(f"Dispute is already {dispute.status.value}")

            entry = (
                self.db.query(FeeEntryDB)
                .filter(FeeEntryDB.id == dispute.entry_id)
                .with_for_update()
                .first()
            )
            if entry is None:
                raise NotFoundError(f"Entry not found: {dispute.entry_id}")

            now = datetime.utcnow()
            old_state = entry_state(entry)

            dispute.status = DisputeStatus.RESOLVED
            dispute.outcome = outcome
            dispute.platform_response = platform_response
            dispute.resolution_note = note
            dispute.resolved_by = actor.user_id
            dispute.resolved_at = now

            entry.dispute_status = EntryDisputeStatus.RESOLVED
            self._apply_outcome(entry, outcome, now)
            self.db.flush()

            self.audit.record(
                actor=actor,
                action=f"dispute_resolved_{outcome.value}",
                target_type=AuditTargetType.DISPUTE,
                target_id=dispute.id,
                entry_id=entry.id,
                old_state=old_state,
                new_state=entry_state(entry),
                reason=platform_response,
            )
            result = serialize_dispute(dispute)
            result["entry"] = entry_state(entry)

        logger.info(f"Dispute {dispute_id} resolved as {outcome.value} by {actor.user_id}")
        return result

    def _apply_outcome(self, entry: FeeEntryDB, outcome: DisputeOutcome, now: datetime) -> None:
        if outcome == DisputeOutcome.REMOVED:
            entry.visibility = Visibility.HIDDEN
        elif outcome == DisputeOutcome.PARTIAL_HIDDEN:
            entry.moderation_status = ModerationStatus.FLAGGED
            if entry.visibility == Visibility.PUBLIC:
                entry.visibility = Visibility.FLAGGED
        elif outcome == DisputeOutcome.CORRECTED:
            entry.reverification_since = now
            rescore_entry(self.db, entry)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_dispute(self, dispute_id: str) -> Dict[str, Any]:
        dispute = self.db.query(DisputeDB).filter(DisputeDB.id == dispute_id).first()
        if dispute is None:
            raise NotFoundError(f"Dispute not found: {dispute_id}")
        return serialize_dispute(dispute)

    def list_pending(self, limit: int = 50):
        rows = (
            self.db.query(DisputeDB)
            .filter(DisputeDB.status == DisputeStatus.PENDING)
            .order_by(DisputeDB.created_at)
            .limit(limit)
            .all()
        )
        return [serialize_dispute(d) for d in rows]
