"""
Moderation API Routes

Moderator/admin console: entry verdicts, the report ticket queue, provider
approval and the audit trail.

Closing a report and changing the entry it is about are separate calls.
An entry action taken from a report is two-step: the first call returns a
preview, the same call with ``confirm=true`` applies it.
"""
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import require_moderator
from ..models.domain import Actor
from ..services.moderation import (
    AuditTrail,
    EntryLifecycleEngine,
    ProviderService,
    ReportLifecycleEngine,
)
from ..services.moderation.audit_trail import serialize_provider_action


router = APIRouter(prefix="/admin/moderation", tags=["moderation"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ReasonRequest(BaseModel):
    reason: str = Field(..., description="Why the action is taken; stored in the audit trail")


class ReportNoteRequest(BaseModel):
    note: Optional[str] = Field(None, description="Resolution note shown to other moderators")


class ReportEntryActionRequest(BaseModel):
    action: Literal["approve", "reject", "hide"] = Field(..., description="Entry action to take")
    reason: Optional[str] = Field(None, description="Required when confirm is true")
    confirm: bool = Field(default=False, description="False returns a preview, true applies it")


# =============================================================================
# ENTRIES
# =============================================================================

@router.get("/queue", response_model=dict)
async def moderation_queue(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.list_queue(limit=limit)}


@router.post("/entries/{entry_id}/approve", response_model=dict)
async def approve_entry(
    entry_id: str,
    request: ReasonRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.approve(moderator, entry_id, request.reason)}


@router.post("/entries/{entry_id}/reject", response_model=dict)
async def reject_entry(
    entry_id: str,
    request: ReasonRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.reject(moderator, entry_id, request.reason)}


@router.post("/entries/{entry_id}/hide", response_model=dict)
async def hide_entry(
    entry_id: str,
    request: ReasonRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    """Provisional takedown; the moderation verdict is left as it is."""
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.hide(moderator, entry_id, request.reason)}


@router.get("/entries/{entry_id}/preview", response_model=dict)
async def preview_entry_action(
    entry_id: str,
    action: str = Query(...),
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.preview(moderator, entry_id, action)}


@router.get("/entries/{entry_id}/audit", response_model=dict)
async def entry_audit_history(
    entry_id: str,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.audit_history(moderator, entry_id)}


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reports", response_model=dict)
async def list_reports(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = ReportLifecycleEngine(db)
    return {"ok": True, "data": engine.list_reports(status=status, limit=limit)}


@router.post("/reports/{report_id}/triage", response_model=dict)
async def triage_report(
    report_id: str,
    request: ReportNoteRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = ReportLifecycleEngine(db)
    return {"ok": True, "data": engine.triage(moderator, report_id, request.note)}


@router.post("/reports/{report_id}/resolve", response_model=dict)
async def resolve_report(
    report_id: str,
    request: ReportNoteRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    """Close the ticket. The reported entry is not changed."""
    engine = ReportLifecycleEngine(db)
    return {"ok": True, "data": engine.resolve(moderator, report_id, request.note)}


@router.post("/reports/{report_id}/dismiss", response_model=dict)
async def dismiss_report(
    report_id: str,
    request: ReportNoteRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = ReportLifecycleEngine(db)
    return {"ok": True, "data": engine.dismiss(moderator, report_id, request.note)}


@router.post("/reports/{report_id}/entry-action", response_model=dict)
async def report_entry_action(
    report_id: str,
    request: ReportEntryActionRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = EntryLifecycleEngine(db)
    result = engine.apply_from_report(
        moderator,
        report_id,
        request.action,
        request.reason,
        confirmed=request.confirm,
    )
    return {"ok": True, "data": result}


# =============================================================================
# PROVIDERS
# =============================================================================

@router.get("/providers", response_model=dict)
async def list_providers(
    status: Optional[str] = Query("pending"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    service = ProviderService(db)
    return {"ok": True, "data": service.list_providers(status=status, limit=limit)}


@router.post("/providers/{provider_id}/approve", response_model=dict)
async def approve_provider(
    provider_id: str,
    request: ReasonRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    service = ProviderService(db)
    return {"ok": True, "data": service.moderate_provider(moderator, provider_id, "approve", request.reason)}


@router.post("/providers/{provider_id}/reject", response_model=dict)
async def reject_provider(
    provider_id: str,
    request: ReasonRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    service = ProviderService(db)
    return {"ok": True, "data": service.moderate_provider(moderator, provider_id, "reject", request.reason)}


@router.get("/providers/{provider_id}/audit", response_model=dict)
async def provider_audit_history(
    provider_id: str,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    rows = AuditTrail(db).provider_history(provider_id)
    return {"ok": True, "data": [serialize_provider_action(row) for row in rows]}
