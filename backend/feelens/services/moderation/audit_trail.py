"""
Audit Trail

Append-only log of every mutating action: who did it, in what role, what
changed (old/new state) and why. Rows are written in the caller's
transaction so an action and its audit row commit or roll back together.
Nothing in this module updates or deletes a row.
"""
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    AuditTargetType, FeeEntryDB, ModerationActionDB, ProviderActionDB,
)
from ...models.domain import Actor, SYSTEM_ACTOR_ROLE


def entry_state(entry: FeeEntryDB) -> Dict[str, Any]:
    """Workflow-relevant snapshot of an entry for old/new state columns."""
    return {
        "visibility": entry.visibility.value if entry.visibility else None,
        "moderation_status": entry.moderation_status.value if entry.moderation_status else None,
        "dispute_status": entry.dispute_status.value if entry.dispute_status else None,
        "evidence_tier": entry.evidence_tier.value if entry.evidence_tier else None,
    }


class AuditTrail:

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor: Optional[Actor],
        action: str,
        target_type: AuditTargetType,
        target_id: str,
        old_state: Optional[Dict[str, Any]],
        new_state: Optional[Dict[str, Any]],
        reason: Optional[str] = None,
        entry_id: Optional[str] = None,
        related_report_id: Optional[str] = None,
    ) -> ModerationActionDB:
        """Append one row. ``actor=None`` records a system action."""
        row = ModerationActionDB(
            id=str(uuid4()),
            actor_id=actor.user_id if actor else None,
            actor_role=actor.role.value if actor else SYSTEM_ACTOR_ROLE,
            action=action,
            target_type=target_type,
            target_id=target_id,
            entry_id=entry_id,
            related_report_id=related_report_id,
            old_state=old_state,
            new_state=new_state,
            reason=reason,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def record_provider_action(
        self,
        actor: Actor,
        provider_id: str,
        action: str,
        old_state: Optional[Dict[str, Any]],
        new_state: Optional[Dict[str, Any]],
        reason: Optional[str] = None,
    ) -> ProviderActionDB:
        row = ProviderActionDB(
            id=str(uuid4()),
            provider_id=provider_id,
            actor_id=actor.user_id,
            actor_role=actor.role.value,
            action=action,
            old_state=old_state,
            new_state=new_state,
            reason=reason,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def history(self, entry_id: str) -> List[ModerationActionDB]:
        """Every row touching an entry, its reports or its disputes, oldest first."""
        return (
            self.db.query(ModerationActionDB)
            .filter(ModerationActionDB.entry_id == entry_id)
            .order_by(ModerationActionDB.created_at, ModerationActionDB.id)
            .all()
        )

    def provider_history(self, provider_id: str) -> List[ProviderActionDB]:
        return (
            self.db.query(ProviderActionDB)
            .filter(ProviderActionDB.provider_id == provider_id)
            .order_by(ProviderActionDB.created_at, ProviderActionDB.id)
            .all()
        )


def serialize_action(row: ModerationActionDB) -> Dict[str, Any]:
    return {
        "id": row.id,
        "actor_id": row.actor_id,
        "actor_role": row.actor_role,
        "action": row.action,
        "target_type": row.target_type.value,
        "target_id": row.target_id,
        "entry_id": row.entry_id,
        "related_report_id": row.related_report_id,
        "old_state": row.old_state,
        "new_state": row.new_state,
        "reason": row.reason,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def serialize_provider_action(row: ProviderActionDB) -> Dict[str, Any]:
    return {
        "id": row.id,
        "provider_id": row.provider_id,
        "actor_id": row.actor_id,
        "actor_role": row.actor_role,
        "action": row.action,
        "old_state": row.old_state,
        "new_state": row.new_state,
        "reason": row.reason,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }
