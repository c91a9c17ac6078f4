"""
Report Lifecycle Engine

Community reports against entries, and the ticket workflow that closes
them. Closing a report (resolve / dismiss) only ever touches the report
row; changing the entry itself is EntryLifecycleEngine.apply_from_report().
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ConflictError, NotFoundError, ValidationFailedError
from ...models.db_models import (
    AuditTargetType, EntryReportDB, FeeEntryDB, ReportReason, ReportStatus,
)
from ...models.domain import Actor
from ..text_input import NOTE_MAX_LENGTH, optional_text
from .audit_trail import AuditTrail
from .entry_lifecycle import require_moderator
from .state_machine import ReportStateMachine

logger = logging.getLogger(__name__)

DETAILS_MAX_LENGTH = 2000

ACTIVE_REPORT_STATUSES = (ReportStatus.OPEN, ReportStatus.TRIAGED)


def report_state(report: EntryReportDB) -> Dict[str, Any]:
    return {"status": report.status.value}


def serialize_report(report: EntryReportDB) -> Dict[str, Any]:
    return {
        "id": report.id,
        "entry_id": report.entry_id,
        "reporter_id": report.reporter_id,
        "reason_code": report.reason_code.value,
        "details": report.details,
        "status": report.status.value,
        "resolution_note": report.resolution_note,
        "handled_by": report.handled_by,
        "created_at": report.created_at.isoformat() if report.created_at else None,
        "updated_at": report.updated_at.isoformat() if report.updated_at else None,
    }


class ReportLifecycleEngine:

    def __init__(self, db: Session):
        self.db = db
        self.state_machine = ReportStateMachine()
        self.audit = AuditTrail(db)

    # =========================================================================
    # CREATION
    # =========================================================================

    def create_report(
        self,
        actor: Actor,
        entry_id: str,
        reason_code: str,
        details: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        File a report. A reporter may hold only one open or triaged report
        per entry at a time.
        """
        try:
            reason = ReportReason(reason_code)
        except ValueError:
            raise ValidationFailedError({"reason_code": f"Unknown reason code: {reason_code}"})
        details = optional_text("details", details, DETAILS_MAX_LENGTH)

        with transaction(self.db):
            # concurrent reports on one entry queue on its row
            entry = (
                self.db.query(FeeEntryDB)
                .filter(FeeEntryDB.id == entry_id)
                .with_for_update()
                .first()
            )
            if entry is None:
                raise NotFoundError(f"Entry not found: {entry_id}")

            existing = (
                self.db.query(EntryReportDB)
                .filter(
                    EntryReportDB.entry_id == entry_id,
                    EntryReportDB.reporter_id == actor.user_id,
                    EntryReportDB.status.in_(ACTIVE_REPORT_STATUSES),
                )
                .first()
            )
            if existing is not None:
                raise ConflictError("You already have an open report on this entry")

            report = EntryReportDB(
                id=str(uuid4()),
                entry_id=entry_id,
                reporter_id=actor.user_id,
                reason_code=reason,
                details=details,
                status=ReportStatus.OPEN,
            )
            self.db.add(report)
            self.db.flush()

            self.audit.record(
                actor=actor,
                action="report_created",
                target_type=AuditTargetType.REPORT,
                target_id=report.id,
                entry_id=entry_id,
                related_report_id=report.id,
                old_state=None,
                new_state=report_state(report),
                reason=reason.value,
            )
            result = serialize_report(report)

        logger.info(f"Report {result['id']} filed on entry {entry_id} ({reason.value})")
        return result

    # =========================================================================
    # TICKET WORKFLOW
    # =========================================================================

    def triage(self, actor: Actor, report_id: str, note: Optional[str] = None) -> Dict[str, Any]:
        return self._transition(actor, report_id, "triage", note)

    def resolve(self, actor: Actor, report_id: str, note: Optional[str] = None) -> Dict[str, Any]:
        return self._transition(actor, report_id, "resolve", note)

    def dismiss(self, actor: Actor, report_id: str, note: Optional[str] = None) -> Dict[str, Any]:
        return self._transition(actor, report_id, "dismiss", note)

    def get_report(self, report_id: str) -> Dict[str, Any]:
        report = self.db.query(EntryReportDB).filter(EntryReportDB.id == report_id).first()
        if report is None:
            raise NotFoundError(f"Report not found: {report_id}")
        return serialize_report(report)

    def list_reports(self, status: Optional[str] = None, limit: int = 50):
        query = self.db.query(EntryReportDB)
        if status:
            try:
                query = query.filter(EntryReportDB.status == ReportStatus(status))
            except ValueError:
                raise ValidationFailedError({"status": f"Unknown report status: {status}"})
        rows = query.order_by(EntryReportDB.created_at).limit(limit).all()
        return [serialize_report(r) for r in rows]

    def _transition(
        self,
        actor: Actor,
        report_id: str,
        action: str,
        note: Optional[str],
    ) -> Dict[str, Any]:
        require_moderator(actor)
        note = optional_text("note", note, NOTE_MAX_LENGTH)

        with transaction(self.db):
            report = (
                self.db.query(EntryReportDB)
                .filter(EntryReportDB.id == report_id)
                .with_for_update()
                .first()
            )
            if report is None:
                raise NotFoundError(f"Report not found: {report_id}")

            # Raises before anything on the row is touched
            new_status = self.state_machine.transition(report.status, action)

            old_state = report_state(report)
            report.status = new_status
            report.handled_by = actor.user_id
            report.updated_at = datetime.utcnow()
            if note is not None:
                report.resolution_note = note

            self.audit.record(
                actor=actor,
                action=f"report_{action}",
                target_type=AuditTargetType.REPORT,
                target_id=report.id,
                entry_id=report.entry_id,
                related_report_id=report.id,
                old_state=old_state,
                new_state=report_state(report),
                reason=note,
            )
            result = serialize_report(report)

        logger.info(f"Report {report_id} {action} by {actor.user_id} -> {new_status.value}")
        return result
