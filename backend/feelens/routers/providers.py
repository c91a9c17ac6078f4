"""
Provider Directory API Routes
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_actor
from ..models.db_models import ProviderStatus
from ..models.domain import Actor
from ..services.moderation import ProviderService


router = APIRouter(prefix="/providers", tags=["providers"])


class CreateProviderRequest(BaseModel):
    name: str = Field(..., description="Business name as shown to the public")
    industry_key: Optional[str] = Field(None, description="Industry schema key")
    suburb: Optional[str] = Field(None, description="Suburb the business trades from")
    state: Optional[str] = Field(None, description="State or territory code, e.g. NSW")
    postcode: Optional[str] = Field(None, description="Postcode, kept as text")


@router.post("", response_model=dict)
async def create_provider(
    request: CreateProviderRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Suggest a provider. It stays pending until a moderator approves it."""
    service = ProviderService(db)
    provider = service.create_provider(
        actor,
        request.name,
        request.industry_key,
        suburb=request.suburb,
        state=request.state,
        postcode=request.postcode,
    )
    return {"ok": True, "data": provider}


@router.get("", response_model=dict)
async def list_providers(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Approved providers only."""
    service = ProviderService(db)
    return {"ok": True, "data": service.list_providers(status=ProviderStatus.APPROVED.value, limit=limit)}


@router.get("/{provider_id}", response_model=dict)
async def get_provider(provider_id: str, db: Session = Depends(get_db)):
    service = ProviderService(db)
    return {"ok": True, "data": service.get_provider(provider_id)}
