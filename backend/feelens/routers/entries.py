"""
Fee Entry API Routes

Community-facing endpoints: submit an entry, validate a draft as it is
typed, read public entries, report an entry and (for business
representatives) dispute one.
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_actor, get_optional_actor
from ..models.db_models import ReportReason
from ..models.domain import Actor
from ..services.moderation import DisputeLifecycleEngine, EntryLifecycleEngine, ReportLifecycleEngine
from ..services.explore import EXPLORE_SORTS, PublicFeed, build_query
from ..services.submission import SubmissionService


router = APIRouter(prefix="/entries", tags=["entries"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class SubmitEntryRequest(BaseModel):
    """
    A fee entry draft. ``fee_breakdown`` and ``context`` are free-form bags
    validated against the industry's active schema, not by this model.
    """
    provider_id: str = Field(..., description="Provider the fee was paid to")
    industry_key: str = Field(..., description="Industry schema key, e.g. legal_services")
    service_key: Optional[str] = Field(None, description="Service / matter type from the schema taxonomy")
    pricing_model: Optional[str] = Field(None, description="hourly, fixed, capped, retainer, ...")
    fee_breakdown: Dict[str, Any] = Field(default_factory=dict, description="Pricing-model-specific amounts")
    context: Dict[str, Any] = Field(default_factory=dict, description="Industry-specific case attributes")
    hidden_items: List[str] = Field(default_factory=list, description="Charges not disclosed in the quote")
    quote_transparency_score: Optional[int] = Field(None, description="1 (opaque) to 5 (fully itemised)")
    initial_quote_total: Optional[float] = Field(None, description="Total quoted up front")
    final_total_paid: Optional[float] = Field(None, description="Total actually paid")
    evidence_ids: List[str] = Field(default_factory=list, description="Uploaded evidence to link")


class CreateReportRequest(BaseModel):
    reason_code: ReportReason = Field(..., description="inaccurate, fake, expired, offensive, duplicate, other")
    details: Optional[str] = Field(None, description="Free-text explanation")


class OpenDisputeRequest(BaseModel):
    provider_claim: str = Field(..., description="The provider's account of why the entry is wrong")
    provider_verification_method: Optional[str] = Field(None, description="How the provider can be verified")
    provider_contact: Optional[str] = Field(None, description="Contact for follow-up")


# =============================================================================
# SUBMISSION
# =============================================================================

@router.post("", response_model=dict)
async def submit_entry(
    request: SubmitEntryRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Submit a fee entry.

    Validation, rate limiting, scoring and the initial moderation state are
    decided server-side in a single transaction.
    """
    service = SubmissionService(db)
    entry = service.submit(actor, request.model_dump())
    return {"ok": True, "data": entry}


@router.post("/validate", response_model=dict)
async def validate_entry(
    request: SubmitEntryRequest,
    partial: bool = Query(False, description="Skip missing-field errors while a form is being filled in"),
    db: Session = Depends(get_db),
):
    """Dry run of the submission checks. Never writes."""
    service = SubmissionService(db)
    return {"ok": True, "data": service.dry_run(request.model_dump(), partial=partial)}


# =============================================================================
# READS
# =============================================================================

@router.get("", response_model=dict)
async def list_entries(
    industry: Optional[str] = Query(None, description="Industry schema key"),
    service: Optional[str] = Query(None, description="Service / matter type key"),
    provider_id: Optional[str] = Query(None),
    state: Optional[str] = Query(None, description="Provider state, e.g. NSW"),
    postcode: Optional[str] = Query(None),
    suburb: Optional[str] = Query(None, description="Substring match on the provider suburb"),
    q: Optional[str] = Query(None, description="Free text over provider name, suburb and postcode"),
    min_paid: Optional[float] = Query(None),
    max_paid: Optional[float] = Query(None),
    tiers: Optional[str] = Query(None, description="Comma-separated evidence tiers, e.g. A,B"),
    sort: Optional[str] = Query(None, description=", ".join(EXPLORE_SORTS)),
    page: Optional[int] = Query(None, description="1-based; clamped to the last page"),
    page_size: Optional[int] = Query(None, description="Clamped to 1..100"),
    db: Session = Depends(get_db),
):
    """Public entries only, filtered, sorted and paged, with a summary of the whole match."""
    query = build_query(
        industry=industry,
        service=service,
        provider_id=provider_id,
        state=state,
        postcode=postcode,
        suburb=suburb,
        q=q,
        min_paid=min_paid,
        max_paid=max_paid,
        tiers=tiers,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    return {"ok": True, "data": PublicFeed(db).explore(query)}


@router.get("/{entry_id}", response_model=dict)
async def get_entry(
    entry_id: str,
    db: Session = Depends(get_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    engine = EntryLifecycleEngine(db)
    return {"ok": True, "data": engine.get_entry(actor, entry_id)}


# =============================================================================
# REPORTS / DISPUTES
# =============================================================================

@router.post("/{entry_id}/reports", response_model=dict)
async def report_entry(
    entry_id: str,
    request: CreateReportRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    engine = ReportLifecycleEngine(db)
    report = engine.create_report(actor, entry_id, request.reason_code.value, request.details)
    return {"ok": True, "data": report}


@router.post("/{entry_id}/disputes", response_model=dict)
async def dispute_entry(
    entry_id: str,
    request: OpenDisputeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Open a dispute on an entry.

    Only a user representing the entry's provider may do this, and only one
    dispute per entry may be pending.
    """
    engine = DisputeLifecycleEngine(db)
    dispute = engine.open_dispute(
        actor,
        entry_id,
        verification_method=request.provider_verification_method,
        claim=request.provider_claim,
        contact=request.provider_contact,
    )
    return {"ok": True, "data": dispute}
