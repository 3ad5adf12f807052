"""
Pydantic models for the content pipeline kernel.

Entities (Product, Opportunity, ScriptPlan, QueueItem, EngagementEvent, Lead)
are snapshots: the record store owns them and every mutation produces a new
snapshot. Supporting models describe transitions and operation results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class ProductionTier(str, Enum):
    """Video production tier."""
    HUMAN_AVATAR = "human_avatar"
    IMAGE_MONTAGE = "image_montage"


class ContentPriority(str, Enum):
    """Priority shared by opportunities and script plans."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PainPoint(str, Enum):
    """Audience health complaints a supplement video can target."""
    CHRONIC_FATIGUE = "chronic_fatigue"
    SLEEP_EPIDEMIC = "sleep_epidemic"
    BRAIN_FOG_MEMORY = "brain_fog_memory"
    METABOLIC_DAMAGE = "metabolic_damage"
    ANXIETY_DEPRESSION = "anxiety_depression"
    CHRONIC_INFLAMMATION = "chronic_inflammation"
    HORMONAL_IMBALANCE = "hormonal_imbalance"


class VideoStatus(str, Enum):
    """Queue item lifecycle status."""
    GENERATING = "generating"
    COMPLIANCE_REVIEW = "compliance_review"
    READY_FOR_PREVIEW = "ready_for_preview"
    REQUIRES_FIXES = "requires_fixes"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({VideoStatus.PUBLISHED, VideoStatus.REJECTED})


class ComplianceStatus(str, Enum):
    """Outcome of a compliance validation."""
    PENDING_APPROVAL = "pending_approval"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    REQUIRES_REVIEW = "requires_review"


class QueuePriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class LeadTier(str, Enum):
    HOT = "hot"
    WARM = "warm"
    QUALIFIED = "qualified"
    COLD = "cold"


class EngagementType(str, Enum):
    COMMENT = "comment"
    PROFILE_VISIT = "profile_visit"
    LINK_CLICK = "link_click"


class AccountType(str, Enum):
    BUSINESS = "business"
    CREATOR = "creator"
    PERSONAL = "personal"


class ChangeTarget(str, Enum):
    """Which section of a queue item a change edits."""
    PERSONA = "persona"
    SCRIPT = "script"
    VIDEO = "video"


# ============================================================================
# Products and Opportunities
# ============================================================================

class RawProduct(BaseModel):
    """Product record as returned by a catalog provider, before parsing."""
    provider: str = Field(..., description="Provider tag, e.g. 'fastmoss'")
    id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[Union[str, float]] = None
    commission: Optional[Union[str, float]] = None
    rating: Optional[Union[str, float]] = None
    sales: Optional[Union[str, float]] = None
    monthly_sales: Optional[Union[str, float]] = None
    revenue: Optional[Union[str, float]] = None
    growth_rate: Optional[Union[str, float]] = None
    competition_level: Optional[str] = None
    trend_score: Optional[Union[str, float]] = None
    top_creators: Optional[Union[str, float]] = None
    category: Optional[str] = None
    description: Optional[str] = None
    ingredients: Optional[str] = None
    link: Optional[str] = None
    scraped_at: Optional[datetime] = None


class Product(BaseModel):
    """Merged, parsed product candidate."""
    id: str
    name: str = Field(..., min_length=1)
    merge_key: str = Field(..., min_length=1)
    category: str = "other"
    description: str = ""
    ingredients: str = ""
    price: float = Field(..., ge=0, allow_inf_nan=False)
    commission: float = Field(default=0.0, ge=0, le=100, allow_inf_nan=False)
    rating: float = Field(default=0.0, ge=0, le=5)
    monthly_sales: Optional[int] = Field(default=None, ge=0)
    sales_count: int = Field(default=0, ge=0)
    revenue: Optional[float] = None
    growth_rate: Optional[float] = None
    competition_level: Optional[str] = None
    trend_score: float = 0.0
    top_creators: Optional[int] = None
    link: Optional[str] = None
    source_set: List[str] = Field(..., min_length=1)
    source_ids: Dict[str, str] = Field(default_factory=dict, description="Provider name to the provider's own record id")
    scraped_at: Optional[datetime] = None

    @property
    def profit_per_sale(self) -> Optional[float]:
        """Commission earned per sale, None when price or commission is unknown."""
        if self.price and self.commission:
            return self.price * (self.commission / 100)
        return None

    @property
    def search_text(self) -> str:
        return f"{self.name} {self.description} {self.ingredients}".lower()


class ScoreBreakdown(BaseModel):
    """Six opportunity sub-scores, each in [0, 1]."""
    profit_potential: float = Field(ge=0, le=1)
    viral_indicators: float = Field(ge=0, le=1)
    market_opportunity: float = Field(ge=0, le=1)
    trend_momentum: float = Field(ge=0, le=1)
    content_angles: float = Field(ge=0, le=1)
    conversion_likelihood: float = Field(ge=0, le=1)


class Opportunity(BaseModel):
    """Scored product with production recommendation."""
    id: str
    product_id: str
    product_name: str
    category: str
    price: float
    score: float = Field(ge=0, le=1)
    score_breakdown: ScoreBreakdown
    recommended_tier: ProductionTier = ProductionTier.IMAGE_MONTAGE
    priority: ContentPriority
    recommendation: str = ""
    viral_indicators: List[str] = Field(default_factory=list)
    content_angles: List[str] = Field(default_factory=list)
    target_audience: str = ""
    estimated_ctr: float = 0.0
    market_saturation: str = "Low"
    scored_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Pain points and script plans
# ============================================================================

class IngredientMatch(BaseModel):
    """How well a product's ingredients cover one pain point."""
    pain_point: PainPoint
    match_score: float = Field(ge=0, le=100)
    matched_ingredients: List[str] = Field(default_factory=list)
    mechanism: str
    suggested_hook: str
    emotional_triggers: List[str] = Field(default_factory=list)
    viral_potential: float
    revenue_potential: float
    demographic_impact: int = 0


class PainPointAnalysis(BaseModel):
    """Full planner analysis for one product."""
    product_id: str
    product_name: str
    best_match: IngredientMatch
    all_matches: List[IngredientMatch]
    viral_score: float = Field(ge=0, le=100)
    revenue_estimate: float = Field(ge=0)
    content_priority: ContentPriority
    script_elements: Dict[str, Any] = Field(default_factory=dict)


ADVERTISING_DISCLOSURE = "advertising_disclosure"
AFFILIATE_DISCLOSURE = "affiliate_disclosure"
MANDATORY_DISCLOSURES = [ADVERTISING_DISCLOSURE, AFFILIATE_DISCLOSURE]

REVENUE_CAP = 60000.0


class ScriptPlan(BaseModel):
    """Plan for a single video, produced by the pain-point planner."""
    id: str
    opportunity_id: str
    product_id: str
    product_name: str
    pain_point: PainPoint
    match_score: float = Field(ge=0, le=100)
    matched_ingredients: List[str] = Field(default_factory=list)
    hook: str
    statistical_hook: str = ""
    emotional_triggers: List[str] = Field(..., min_length=2)
    mechanism_explanation: str
    script_elements: Dict[str, Any] = Field(default_factory=dict)
    estimated_revenue: float = Field(ge=0, le=REVENUE_CAP)
    viral_score: float = Field(ge=0, le=100)
    priority: ContentPriority
    recommended_tier: ProductionTier = ProductionTier.IMAGE_MONTAGE
    required_disclosures: List[str] = Field(default_factory=lambda: list(MANDATORY_DISCLOSURES))
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("required_disclosures")
    @classmethod
    def must_include_advertising_disclosure(cls, v: List[str]) -> List[str]:
        if ADVERTISING_DISCLOSURE not in v:
            raise ValueError("required_disclosures must include advertising_disclosure")
        return v


# ============================================================================
# Preview queue
# ============================================================================

class Change(BaseModel):
    """A single edit to one section of a queue item."""
    target: ChangeTarget
    field: str = Field(..., min_length=1)
    value: Any = None

    @property
    def key(self) -> str:
        """Flat key form, e.g. 'persona_hair_length'."""
        return f"{self.target.value}_{self.field}"

    @classmethod
    def from_key(cls, key: str, value: Any) -> "Change":
        """
        Build a change from a prefixed key ('persona_', 'script_', 'video_').

        Raises:
            ValueError: If the key has no known prefix
        """
        for target in ChangeTarget:
            prefix = f"{target.value}_"
            if key.startswith(prefix) and len(key) > len(prefix):
                return cls(target=target, field=key[len(prefix):], value=value)
        raise ValueError(f"Unknown change key: {key}")


class ComplianceValidation(BaseModel):
    """Result of running the compliance checks against a queue item."""
    overall_status: ComplianceStatus
    issues_found: List[str] = Field(default_factory=list)
    disclosures_required: List[str] = Field(default_factory=list)
    checks_performed: List[str] = Field(default_factory=list)
    compliance_score: float = Field(default=1.0, ge=0, le=1)
    validation_timestamp: datetime = Field(default_factory=utcnow)


class QueueItem(BaseModel):
    """A generated video awaiting review, approval and publication."""
    id: str
    script_plan_id: Optional[str] = None
    tenant_id: Optional[str] = None
    title: str = ""
    status: VideoStatus = VideoStatus.GENERATING
    priority: QueuePriority = QueuePriority.NORMAL
    compliance_status: ComplianceStatus = ComplianceStatus.PENDING_APPROVAL
    compliance_issues: List[str] = Field(default_factory=list)
    compliance_validation: Optional[ComplianceValidation] = None
    required_disclosures: List[str] = Field(default_factory=list)

    persona_config: Dict[str, Any] = Field(default_factory=dict)
    product_data: Dict[str, Any] = Field(default_factory=dict)
    video_config: Dict[str, Any] = Field(default_factory=dict)
    script_content: Dict[str, Any] = Field(default_factory=dict)
    artifacts: Dict[str, str] = Field(default_factory=dict)

    engagement_score: float = 0.0
    viral_potential: float = 0.0

    reviewer_notes: Optional[str] = None
    approval_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    last_error: Optional[str] = None
    regeneration_required: bool = False

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def updated_not_before_created(self) -> "QueueItem":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class QueueTransition(BaseModel):
    """
    Intended change to a queue item, applied atomically by the store.

    Fields left as None keep their current value. `changes` are applied to
    the persona/script/video sections; `artifacts` are merged.
    """
    status: VideoStatus
    reason: str = ""
    from_status: Optional[VideoStatus] = None
    compliance_status: Optional[ComplianceStatus] = None
    compliance_validation: Optional[ComplianceValidation] = None
    compliance_issues: Optional[List[str]] = None
    required_disclosures: Optional[List[str]] = None
    changes: List[Change] = Field(default_factory=list)
    artifacts: Optional[Dict[str, str]] = None
    reviewer_notes: Optional[str] = None
    approval_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    last_error: Optional[str] = None
    clear_last_error: bool = False
    regeneration_required: Optional[bool] = None


def apply_changes(item: QueueItem, changes: List[Change]) -> QueueItem:
    """Return a copy of the item with the changes applied to its sections."""
    sections = {
        ChangeTarget.PERSONA: dict(item.persona_config),
        ChangeTarget.SCRIPT: dict(item.script_content),
        ChangeTarget.VIDEO: dict(item.video_config),
    }
    for change in changes:
        sections[change.target][change.field] = change.value

    return item.model_copy(update={
        "persona_config": sections[ChangeTarget.PERSONA],
        "script_content": sections[ChangeTarget.SCRIPT],
        "video_config": sections[ChangeTarget.VIDEO],
    })


class FeedbackResponse(BaseModel):
    """Outcome of processing free-text reviewer feedback."""
    item_id: str
    original_feedback: str
    changes_applied: List[str]
    compliance_revalidation: ComplianceValidation
    new_status: VideoStatus
    regeneration_required: bool


class PublishReceipt(BaseModel):
    item_id: str
    video_id: str
    url: str
    published_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Engagement and leads
# ============================================================================

class EngagementEvent(BaseModel):
    """Post-publish metric snapshot for one video."""
    video_id: str = Field(..., min_length=1)
    views: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    link_clicks: int = Field(default=0, ge=0, description="Traffic generated to the product link")
    engagement_rate: float = Field(default=0.0, ge=0, le=1)
    viral_coefficient: float = Field(default=0.0, ge=0)
    timestamp: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def derive_engagement_rate(self) -> "EngagementEvent":
        interactions = self.likes + self.comments + self.shares
        self.engagement_rate = min(1.0, interactions / max(self.views, 1))
        return self

    @property
    def id(self) -> str:
        return self.video_id

    @property
    def counters(self) -> Dict[str, int]:
        return {
            "views": self.views,
            "likes": self.likes,
            "comments": self.comments,
            "shares": self.shares,
            "link_clicks": self.link_clicks,
        }


class EngagementAnalysis(BaseModel):
    engagement_quality: str
    viral_potential: str
    audience_interest: str
    conversion_indicators: List[str] = Field(default_factory=list)


class ServiceRecommendation(BaseModel):
    service_type: str
    fit_score: float = Field(ge=0, le=1)
    reasoning: str
    priority: str


class LeadQualification(BaseModel):
    """Weighted qualification breakdown for a potential lead."""
    engagement_score: float
    content_resonance: float
    demographic_match: float
    intent_score: float
    traffic_quality: float
    conversion_indicators: List[str] = Field(default_factory=list)
    intent_signals: List[str] = Field(default_factory=list)
    overall_score: float = Field(ge=0, le=1)


class Lead(BaseModel):
    """Qualified prospect attributed to a published video."""
    id: str
    source_video_id: str
    tenant_id: Optional[str] = None
    engagement_type: EngagementType
    account_type: AccountType
    content_focus: str = ""
    intent_signals: List[str] = Field(default_factory=list)
    conversion_indicators: List[str] = Field(default_factory=list)
    qualification: Optional[LeadQualification] = None
    qualification_score: float = Field(ge=0, le=1)
    recommended_services: List[ServiceRecommendation] = Field(default_factory=list)
    tier: LeadTier
    lead_category: str = ""
    nurture_type: str = ""
    nurture_priority: str = ""
    data_retention_expires: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("recommended_services")
    @classmethod
    def services_sorted_by_fit(cls, v: List[ServiceRecommendation]) -> List[ServiceRecommendation]:
        fits = [s.fit_score for s in v]
        if any(a < b for a, b in zip(fits, fits[1:])):
            raise ValueError("recommended_services must be sorted by fit_score descending")
        return v


class ViralAnalysisResult(BaseModel):
    """Summary of one bridge run for a video."""
    status: str
    video_id: str
    views: int = 0
    engagement_rate: float = 0.0
    viral_coefficient: float = 0.0
    analysis: Optional[EngagementAnalysis] = None
    potential_leads_identified: int = 0
    qualified_leads: int = 0
    leads_created: int = 0
    hot_leads: int = 0
    conversion_rate: float = 0.0
    created_lead_ids: List[str] = Field(default_factory=list)
    message: Optional[str] = None
