"""
FeeLens - FastAPI Application

Main entry point for the FeeLens core service.

Architecture:
- IndustrySchema → FeeBreakdown/Context validators → ValidationResult
- Submission → RateLimiter → RiskScorer → FeeEntry (initial state)
- Report / Dispute → Entry lifecycle → AuditTrail
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routers import (
    industry_schemas_router,
    entries_router,
    evidence_router,
    providers_router,
    moderation_router,
    disputes_router,
    home_router,
)
from .database import init_db
from .errors import (
    ERROR_MESSAGES, ErrorCode, FeeLensError, RateLimitExceededError,
    ValidationFailedError,
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="FeeLens",
    description="""
    FeeLens - Fee Transparency Core

    Community-submitted professional fee records, validated against
    versioned per-industry schemas and moderated through an audited
    report / dispute workflow.

    ## Pipeline
    1. **Schema Registry**: active, versioned form definition per industry
    2. **Validators**: fee breakdown + context, all field errors at once
    3. **Scoring**: evidence tier (A/B/C) and independent risk flags
    4. **Lifecycle**: initial state, moderation, reports, disputes
    5. **Audit Trail**: every mutation with actor, role, old/new state, reason
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(industry_schemas_router)
app.include_router(entries_router)
app.include_router(evidence_router)
app.include_router(providers_router)
app.include_router(moderation_router)
app.include_router(disputes_router)
app.include_router(home_router)


# =============================================================================
# ERROR MAPPING
# =============================================================================

@app.exception_handler(FeeLensError)
async def feelens_error_handler(request: Request, exc: FeeLensError):
    # Input, auth and conflict errors are expected traffic, not incidents
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code.value}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.code.value}: {exc.message}")

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    field_errors = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field_errors[".".join(loc) or "body"] = error.get("msg", "Invalid value.")
    return await feelens_error_handler(request, ValidationFailedError(field_errors))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "message": ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR],
        },
    )


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "FeeLens",
        "version": "1.0.0",
        "description": "Fee transparency core service",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m feelens.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8001")))
