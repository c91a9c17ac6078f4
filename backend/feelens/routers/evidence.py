"""
Evidence API Routes

Upload bookkeeping for invoices and quotes. Bytes go straight to object
storage under the returned object key; these endpoints only move the
upload through uploading -> confirmed | failed and link it to an entry.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_actor
from ..models.domain import Actor
from ..services.submission import EvidenceService


router = APIRouter(prefix="/evidence", tags=["evidence"])


class RequestUploadRequest(BaseModel):
    mime_type: str = Field(..., description="image/jpeg, image/png, image/webp or application/pdf")
    size_bytes: int = Field(..., description="File size in bytes (max 10 MB)")
    entry_id: Optional[str] = Field(None, description="Entry to link on confirmation")


class AttachEvidenceRequest(BaseModel):
    entry_id: str = Field(..., description="One of the caller's own entries")


@router.post("", response_model=dict)
async def request_upload(
    request: RequestUploadRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = EvidenceService(db)
    evidence = service.request_upload(actor, request.mime_type, request.size_bytes, request.entry_id)
    return {"ok": True, "data": evidence}


@router.post("/{evidence_id}/confirm", response_model=dict)
async def confirm_upload(
    evidence_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Mark the upload complete; a linked entry is re-scored immediately."""
    service = EvidenceService(db)
    return {"ok": True, "data": service.confirm_upload(actor, evidence_id)}


@router.post("/{evidence_id}/fail", response_model=dict)
async def fail_upload(
    evidence_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = EvidenceService(db)
    return {"ok": True, "data": service.fail_upload(actor, evidence_id)}


@router.post("/{evidence_id}/attach", response_model=dict)
async def attach_evidence(
    evidence_id: str,
    request: AttachEvidenceRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = EvidenceService(db)
    return {"ok": True, "data": service.attach(actor, evidence_id, request.entry_id)}
