"""
Ghost Automation FastAPI Application.

REST surface over the preview queue and the viral-to-leads bridge, for
reviewers and for the publisher webhooks that report engagement.

Features:
- Queue status, review actions (approve, reject, feedback, update)
- Engagement ingestion feeding the lead bridge
- Lead conversion dashboard
- API key authentication
- Automatic OpenAPI documentation
"""

# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import logging
import os
from typing import Optional
from datetime import datetime

from fastapi import FastAPI, HTTPException, Depends, Query, Request, status
from fastapi.security import APIKeyHeader
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .models import (
    ApproveRequest,
    RejectRequest,
    FeedbackRequest,
    UpdateRequest,
    EngagementRequest,
    HealthResponse,
    ErrorResponse,
)
from ..core.errors import (
    ComplianceBlocked,
    InvalidTransition,
    InvariantViolation,
    NotFound,
    QueueFull,
)
from ..core.models import (
    Change,
    EngagementEvent,
    FeedbackResponse,
    QueueItem,
    ViralAnalysisResult,
)
from ..core.observability import setup_logfire
from ..pipelines.kernel import KernelContext, get_kernel_context, init_kernel, teardown_kernel

API_VERSION = "0.1.0"

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ============================================================================
# FastAPI Application Setup
# ============================================================================

app = FastAPI(
    title="Ghost Automation API",
    description="Preview queue review and viral-to-leads reporting",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# ============================================================================
# CORS Configuration
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# API Key Authentication
# ============================================================================

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

async def verify_api_key(api_key: Optional[str] = Depends(API_KEY_HEADER)):
    """
    Verify API key from request header.

    Checks against environment variable GHOST_API_KEY.
    If not set, allows all requests (development mode).

    Raises:
        HTTPException: If API key is invalid or missing
    """
    expected_key = os.getenv("GHOST_API_KEY")

    # Development mode - no API key required
    if not expected_key:
        logger.warning("GHOST_API_KEY not set - running in development mode (no auth)")
        return True

    if not api_key:
        logger.warning("API key missing from request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Provide via X-API-Key header."
        )

    if api_key != expected_key:
        logger.warning(f"Invalid API key attempt: {api_key[:10]}...")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )

    return True


def kernel() -> KernelContext:
    """Dependency: the process kernel context."""
    try:
        return get_kernel_context()
    except RuntimeError:
        return init_kernel()


# ============================================================================
# Health Check Endpoint
# ============================================================================

@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check endpoint"
)
async def health_check(ctx: KernelContext = Depends(kernel)):
    """
    Check API health and kernel status.

    Reports the configured record store and the preview queue health.
    """
    services = {"store": type(ctx.store).__name__}

    try:
        services["queue"] = ctx.queue.health()["status"]
    except Exception as e:
        logger.error(f"Queue health check failed: {e}")
        services["queue"] = "error"

    overall_status = "healthy" if services["queue"] == "healthy" else "degraded"

    return HealthResponse(
        status=overall_status,
        version=API_VERSION,
        timestamp=datetime.now(),
        services=services
    )


# ============================================================================
# Preview Queue Endpoints
# ============================================================================

@app.get("/queue/status", tags=["Queue"], dependencies=[Depends(verify_api_key)])
async def queue_status(ctx: KernelContext = Depends(kernel)):
    """Queue counts, items awaiting review, alerts and health."""
    return ctx.queue.get_status()


@app.get(
    "/queue/items/{item_id}",
    response_model=QueueItem,
    tags=["Queue"],
    dependencies=[Depends(verify_api_key)]
)
async def get_queue_item(item_id: str, ctx: KernelContext = Depends(kernel)):
    return ctx.queue.get(item_id)


@app.post(
    "/queue/items/{item_id}/approve",
    response_model=QueueItem,
    tags=["Queue"],
    dependencies=[Depends(verify_api_key)]
)
async def approve_item(item_id: str, request: ApproveRequest, ctx: KernelContext = Depends(kernel)):
    """
    Approve a video after the final compliance check.

    Returns 409 with the issue list when compliance blocks the approval.
    """
    return ctx.queue.approve(item_id, request.reviewer_notes)


@app.post(
    "/queue/items/{item_id}/reject",
    response_model=QueueItem,
    tags=["Queue"],
    dependencies=[Depends(verify_api_key)]
)
async def reject_item(item_id: str, request: RejectRequest, ctx: KernelContext = Depends(kernel)):
    return ctx.queue.reject(item_id, request.reason)


@app.post(
    "/queue/items/{item_id}/feedback",
    response_model=FeedbackResponse,
    tags=["Queue"],
    dependencies=[Depends(verify_api_key)]
)
async def item_feedback(item_id: str, request: FeedbackRequest, ctx: KernelContext = Depends(kernel)):
    """Parse reviewer feedback into changes and re-validate the video."""
    return ctx.queue.process_feedback(item_id, request.feedback)


@app.post(
    "/queue/items/{item_id}/update",
    response_model=QueueItem,
    tags=["Queue"],
    dependencies=[Depends(verify_api_key)]
)
async def update_item(item_id: str, request: UpdateRequest, ctx: KernelContext = Depends(kernel)):
    """Apply prefixed change keys and re-validate compliance."""
    try:
        changes = [Change.from_key(key, value) for key, value in request.changes.items()]
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ctx.queue.update(item_id, changes)


# ============================================================================
# Engagement and Leads Endpoints
# ============================================================================

@app.post(
    "/engagement",
    response_model=ViralAnalysisResult,
    tags=["Leads"],
    dependencies=[Depends(verify_api_key)]
)
async def ingest_engagement(request: EngagementRequest, ctx: KernelContext = Depends(kernel)):
    """
    Record an engagement snapshot and emit the leads it qualifies.

    Counters must not decrease between snapshots of the same video (422).
    """
    data = request.model_dump(exclude={"tenant_id"}, exclude_none=True)
    event = EngagementEvent(**data)
    return await ctx.bridge.process_event(event, tenant_id=request.tenant_id)


@app.get("/leads/dashboard", tags=["Leads"], dependencies=[Depends(verify_api_key)])
async def leads_dashboard(days: int = Query(30, ge=1, le=365), ctx: KernelContext = Depends(kernel)):
    """Viral-to-lead conversion over the last `days` days."""
    return ctx.bridge.conversion_dashboard(days)


# ============================================================================
# Error Handlers
# ============================================================================

def _error(status_code: int, error: str, exc: Exception, issues=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=str(exc),
            issues=issues or [],
            timestamp=datetime.now().isoformat()
        ).model_dump(mode="json")
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return _error(404, "Not found", exc)


@app.exception_handler(ComplianceBlocked)
async def compliance_blocked_handler(request: Request, exc: ComplianceBlocked):
    return _error(409, "Compliance blocked", exc, exc.issues)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return _error(409, "Invalid transition", exc)


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    return _error(422, "Invariant violation", exc)


@app.exception_handler(QueueFull)
async def queue_full_handler(request: Request, exc: QueueFull):
    return _error(429, "Queue full", exc)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return _error(exc.status_code, exc.detail, exc)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error(500, "Internal server error", exc)


# ============================================================================
# Startup/Shutdown Events
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Configure tracing and the kernel context."""
    setup_logfire(service_name="ghostautomation-api")
    ctx = kernel()
    logger.info("="*60)
    logger.info("Ghost Automation API Starting...")
    logger.info(f"API Version: {API_VERSION}")
    logger.info(f"Record store: {type(ctx.store).__name__}")
    logger.info(f"Auth mode: {'Production (API key required)' if os.getenv('GHOST_API_KEY') else 'Development (no auth)'}")
    logger.info("="*60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Ghost Automation API Shutting down...")
    teardown_kernel()


@app.get("/", tags=["System"])
async def root():
    return {
        "name": "Ghost Automation API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
