"""
Evidence Service

Tracks uploaded proof (invoices, quotes) for entries. The bytes go to object
storage out-of-band; this service only knows the object key and the upload
state:

    idle -> uploading -> confirmed | failed

Only confirmed evidence counts toward the evidence tier. Confirming or
attaching evidence re-scores the linked entry in the same transaction.
"""
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from ...models.db_models import EvidenceDB, FeeEntryDB, UploadState
from ...models.domain import Actor
from .entry_scoring import rescore_entry

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}
MAX_EVIDENCE_BYTES = 10 * 1024 * 1024

EVIDENCE_KEY_PREFIX = os.getenv("EVIDENCE_KEY_PREFIX", "evidence")


def serialize_evidence(evidence: EvidenceDB) -> Dict[str, Any]:
    return {
        "id": evidence.id,
        "entry_id": evidence.entry_id,
        "uploader_id": evidence.uploader_id,
        "object_key": evidence.object_key,
        "mime_type": evidence.mime_type,
        "size_bytes": evidence.size_bytes,
        "upload_state": evidence.upload_state.value,
        "created_at": evidence.created_at.isoformat() if evidence.created_at else None,
        "confirmed_at": evidence.confirmed_at.isoformat() if evidence.confirmed_at else None,
    }


def check_upload(mime_type: str, size_bytes: int) -> None:
    errors = {}
    if mime_type not in ALLOWED_MIME_TYPES:
        errors["mime_type"] = "Only JPEG, PNG, WebP images and PDF files are accepted."
    if not isinstance(size_bytes, int) or isinstance(size_bytes, bool) or size_bytes <= 0:
        errors["size_bytes"] = "File is empty."
    elif size_bytes > MAX_EVIDENCE_BYTES:
        errors["size_bytes"] = "File is too large (max 10 MB)."
    if errors:
        raise ValidationFailedError(errors)


class EvidenceService:

    def __init__(self, db: Session):
        self.db = db

    def request_upload(
        self,
        actor: Actor,
        mime_type: str,
        size_bytes: int,
        entry_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Register an upload and hand back the object key to write to.

        Signing is the idle -> uploading step, so rows start in UPLOADING.
        """
        check_upload(mime_type, size_bytes)

        with transaction(self.db):
            if entry_id is not None:
                self._own_entry(actor, entry_id)

            evidence_id = str(uuid4())
            extension = ALLOWED_MIME_TYPES[mime_type]
            evidence = EvidenceDB(
                id=evidence_id,
                entry_id=entry_id,
                uploader_id=actor.user_id,
                object_key=f"{EVIDENCE_KEY_PREFIX}/{actor.user_id}/{evidence_id}.{extension}",
                mime_type=mime_type,
                size_bytes=size_bytes,
                upload_state=UploadState.UPLOADING,
            )
            self.db.add(evidence)
            self.db.flush()
            result = serialize_evidence(evidence)

        logger.info(f"Evidence {evidence_id} upload requested by {actor.user_id}")
        return result

    def confirm_upload(self, actor: Actor, evidence_id: str) -> Dict[str, Any]:
        with transaction(self.db):
            evidence = self._own_evidence(actor, evidence_id)
            if evidence.upload_state == UploadState.CONFIRMED:
                return serialize_evidence(evidence)
            if evidence.upload_state != UploadState.UPLOADING:
                raise ConflictError(f"Cannot confirm evidence in state {evidence.upload_state.value}")

            evidence.upload_state = UploadState.CONFIRMED
            evidence.confirmed_at = datetime.utcnow()
            self.db.flush()

            result = serialize_evidence(evidence)
            if evidence.entry_id is not None:
                entry = self._lock_entry(evidence.entry_id)
                score = rescore_entry(self.db, entry)
                result["entry_evidence_tier"] = score.evidence_tier.value
                result["entry_risk_flags"] = list(score.risk_flags)

        logger.info(f"Evidence {evidence_id} confirmed")
        return result

    def fail_upload(self, actor: Actor, evidence_id: str) -> Dict[str, Any]:
        with transaction(self.db):
            evidence = self._own_evidence(actor, evidence_id)
            if evidence.upload_state == UploadState.FAILED:
                return serialize_evidence(evidence)
            if evidence.upload_state != UploadState.UPLOADING:
                raise ConflictError(f"Cannot fail evidence in state {evidence.upload_state.value}")

            evidence.upload_state = UploadState.FAILED
            self.db.flush()
            result = serialize_evidence(evidence)

        logger.warning(f"Evidence {evidence_id} upload failed")
        return result

    def attach(self, actor: Actor, evidence_id: str, entry_id: str) -> Dict[str, Any]:
        """Link the caller's evidence to the caller's entry and re-score it."""
        with transaction(self.db):
            evidence = self._own_evidence(actor, evidence_id)
            if evidence.entry_id == entry_id:
                return serialize_evidence(evidence)
            if evidence.entry_id is not None:
                raise ConflictError("Evidence is already attached to another entry")

            entry = self._own_entry(actor, entry_id, for_update=True)
            evidence.entry_id = entry.id
            self.db.flush()

            result = serialize_evidence(evidence)
            score = rescore_entry(self.db, entry)
            result["entry_evidence_tier"] = score.evidence_tier.value
            result["entry_risk_flags"] = list(score.risk_flags)

        logger.info(f"Evidence {evidence_id} attached to entry {entry_id}")
        return result

    def list_for_entry(self, entry_id: str) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(EvidenceDB)
            .filter(EvidenceDB.entry_id == entry_id)
            .order_by(EvidenceDB.created_at)
            .all()
        )
        return [serialize_evidence(e) for e in rows]

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _own_evidence(self, actor: Actor, evidence_id: str) -> EvidenceDB:
        evidence = (
            self.db.query(EvidenceDB)
            .filter(EvidenceDB.id == evidence_id)
            .with_for_update()
            .first()
        )
        if evidence is None:
            raise NotFoundError(f"Evidence not found: {evidence_id}")
        if evidence.uploader_id != actor.user_id:
            raise ForbiddenError("Only the uploader may change this evidence")
        return evidence

    def _own_entry(self, actor: Actor, entry_id: str, for_update: bool = False) -> FeeEntryDB:
        query = self.db.query(FeeEntryDB).filter(FeeEntryDB.id == entry_id)
        if for_update:
            query = query.with_for_update()
        entry = query.first()
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        if entry.submitter_id != actor.user_id:
            raise ForbiddenError("Evidence can only be attached to your own entries")
        return entry

    def _lock_entry(self, entry_id: str) -> FeeEntryDB:
        return (
            self.db.query(FeeEntryDB)
            .filter(FeeEntryDB.id == entry_id)
            .with_for_update()
            .one()
        )
