"""
Industry Schema API Routes

Forms are rendered from the active schema for an industry. Clients cache it
and re-check the version before trusting their copy.
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import require_admin
from ..models.domain import Actor, IndustrySchema
from ..services.validation import (
    SchemaRegistry,
    recommended_context_fields,
    required_fields_for,
    service_options,
)


router = APIRouter(prefix="/industries", tags=["industries"])


class PublishSchemaRequest(BaseModel):
    display_name: str = Field(..., description="Name shown in the industry picker")
    fee_breakdown_schema: Dict[str, Any] = Field(..., description="properties / required / additionalProperties")
    context_schema: Dict[str, Any] = Field(..., description="properties / required / additionalProperties")
    validation_rules: Dict[str, Any] = Field(default_factory=dict, description="pricing_model_required_fields, auto_publish, ...")
    service_taxonomy: Dict[str, Any] = Field(default_factory=dict, description="matter_types / services")


def _schema_payload(schema: IndustrySchema) -> Dict[str, Any]:
    return {
        "industry_key": schema.industry_key,
        "display_name": schema.display_name,
        "version": schema.version,
        "fee_breakdown_schema": schema.fee_breakdown_schema,
        "context_schema": schema.context_schema,
        "validation_rules": schema.validation_rules,
        "service_options": service_options(schema),
    }


@router.get("", response_model=dict)
async def list_industries(db: Session = Depends(get_db)):
    registry = SchemaRegistry(db)
    return {"ok": True, "data": registry.list_active_industries()}


@router.get("/{industry_key}", response_model=dict)
async def get_industry_schema(industry_key: str, db: Session = Depends(get_db)):
    registry = SchemaRegistry(db)
    return {"ok": True, "data": _schema_payload(registry.get_active_schema(industry_key))}


@router.get("/{industry_key}/version", response_model=dict)
async def get_industry_schema_version(industry_key: str, db: Session = Depends(get_db)):
    """Cheap check clients use to revalidate a cached schema."""
    registry = SchemaRegistry(db)
    version = registry.require_active_version(industry_key)
    return {"ok": True, "data": {"industry_key": industry_key, "version": version}}


@router.get("/{industry_key}/form-hints", response_model=dict)
async def get_form_hints(
    industry_key: str,
    pricing_model: Optional[str] = Query(None),
    matter_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Required fee fields for a pricing model and suggested context fields for a matter type."""
    registry = SchemaRegistry(db)
    schema = registry.get_active_schema(industry_key)
    return {
        "ok": True,
        "data": {
            "version": schema.version,
            "required_fields": required_fields_for(schema, pricing_model) if pricing_model else [],
            "recommended_context_fields": (
                recommended_context_fields(schema, matter_type) if matter_type else []
            ),
        },
    }


@router.post("/{industry_key}/versions", response_model=dict)
async def publish_industry_schema(
    industry_key: str,
    request: PublishSchemaRequest,
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_admin),
):
    """Publish a new active version. The previous version is deactivated."""
    registry = SchemaRegistry(db)
    schema = registry.publish_version(
        industry_key,
        display_name=request.display_name,
        fee_breakdown_schema=request.fee_breakdown_schema,
        context_schema=request.context_schema,
        validation_rules=request.validation_rules,
        service_taxonomy=request.service_taxonomy,
    )
    return {"ok": True, "data": _schema_payload(schema)}


@router.post("/{industry_key}/deactivate", response_model=dict)
async def deactivate_industry_schema(
    industry_key: str,
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_admin),
):
    """Withdraw an industry. New submissions for it fail with SCHEMA_INACTIVE."""
    changed = SchemaRegistry(db).deactivate(industry_key)
    return {"ok": True, "data": {"industry_key": industry_key, "is_active": False, "changed": changed}}
