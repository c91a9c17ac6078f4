"""
Dispute API Routes

Providers open disputes from the entry routes; moderators work the pending
queue here and resolve each dispute with one of four outcomes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import require_moderator
from ..models.db_models import DisputeOutcome
from ..models.domain import Actor
from ..services.moderation import DisputeLifecycleEngine


router = APIRouter(prefix="/admin/disputes", tags=["disputes"])


class ResolveDisputeRequest(BaseModel):
    outcome: DisputeOutcome = Field(..., description="maintained, corrected, partial_hidden or removed")
    platform_response: str = Field(..., description="Public response shown with the entry")
    resolution_note: Optional[str] = Field(None, description="Internal note")


@router.get("", response_model=dict)
async def list_pending_disputes(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = DisputeLifecycleEngine(db)
    return {"ok": True, "data": engine.list_pending(limit=limit)}


@router.get("/{dispute_id}", response_model=dict)
async def get_dispute(
    dispute_id: str,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    engine = DisputeLifecycleEngine(db)
    return {"ok": True, "data": engine.get_dispute(dispute_id)}


@router.post("/{dispute_id}/resolve", response_model=dict)
async def resolve_dispute(
    dispute_id: str,
    request: ResolveDisputeRequest,
    db: Session = Depends(get_db),
    moderator: Actor = Depends(require_moderator),
):
    """
    Resolve a pending dispute.

    The dispute and its entry are updated together; a dispute that is no
    longer pending is a conflict.
    """
    engine = DisputeLifecycleEngine(db)
    result = engine.resolve(
        moderator,
        dispute_id,
        outcome=request.outcome.value,
        platform_response=request.platform_response,
        note=request.resolution_note,
    )
    return {"ok": True, "data": result}
