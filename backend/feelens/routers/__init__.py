"""FeeLens - API Routers"""
from .industry_schemas import router as industry_schemas_router
from .entries import router as entries_router
from .evidence import router as evidence_router
from .providers import router as providers_router
from .moderation import router as moderation_router
from .disputes import router as disputes_router
from .home import router as home_router

__all__ = [
    "industry_schemas_router",
    "entries_router",
    "evidence_router",
    "providers_router",
    "moderation_router",
    "disputes_router",
    "home_router",
]
