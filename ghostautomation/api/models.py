"""
API Request and Response Models.

Pydantic models for FastAPI request/response validation and
automatic OpenAPI documentation generation. Entity responses reuse the
kernel models directly.
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


# ============================================================================
# Queue Request Models
# ============================================================================

class ApproveRequest(BaseModel):
    """Request model for approving a queued video."""
    reviewer_notes: Optional[str] = Field(
        None,
        description="Notes recorded with the approval"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "reviewer_notes": "Hook lands, disclosures present"
            }
        }


class RejectRequest(BaseModel):
    """Request model for rejecting a queued video."""
    reason: str = Field(..., min_length=1, description="Why the video is rejected")

    class Config:
        json_schema_extra = {
            "example": {
                "reason": "Product no longer available"
            }
        }


class FeedbackRequest(BaseModel):
    """Free-text reviewer feedback, parsed into typed changes."""
    feedback: str = Field(
        ...,
        min_length=1,
        description="Reviewer feedback",
        examples=["make the hair shorter and lighting blue"]
    )


class UpdateRequest(BaseModel):
    """
    Direct edits to a queued video.

    Keys are prefixed with the section they edit: persona_, script_ or
    video_ (e.g. 'script_affiliate_disclosure'). An empty map still
    re-runs compliance validation.
    """
    changes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Prefixed change keys mapped to new values"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "changes": {
                    "script_affiliate_disclosure": "I earn a commission from purchases made through my link",
                    "video_lighting_color": "warm"
                }
            }
        }


# ============================================================================
# Engagement Models
# ============================================================================

class EngagementRequest(BaseModel):
    """Engagement snapshot for a published video."""
    video_id: str = Field(..., min_length=1, description="Published video id")
    views: int = Field(0, ge=0)
    likes: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    link_clicks: int = Field(0, ge=0, description="Clicks through to the product link")
    viral_coefficient: float = Field(0.0, ge=0)
    tenant_id: Optional[str] = Field(None, description="Opaque tenant identifier")
    timestamp: Optional[datetime] = Field(None, description="Snapshot time (defaults to now)")

    class Config:
        json_schema_extra = {
            "example": {
                "video_id": "7301234567890123456",
                "views": 100000,
                "likes": 4200,
                "comments": 6000,
                "shares": 3000,
                "link_clicks": 1500,
                "viral_coefficient": 0.15
            }
        }


# ============================================================================
# Health Check Models
# ============================================================================

class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(default_factory=datetime.now)
    services: Dict[str, str] = Field(
        default_factory=dict,
        description="Status of dependent services (store, queue, etc.)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "timestamp": "2025-01-18T12:00:00Z",
                "services": {
                    "store": "InMemoryRecordStore",
                    "queue": "healthy"
                }
            }
        }


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    issues: List[str] = Field(default_factory=list, description="Compliance issues, when approval was blocked")
    timestamp: datetime = Field(default_factory=datetime.now)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Compliance blocked",
                "detail": "Cannot approve video video_1a2b3c4d: Compliance issues remain",
                "issues": ["Missing mandatory disclosure elements"],
                "timestamp": "2025-01-18T12:00:00Z"
            }
        }
