"""
Viral-to-Leads Bridge - turns post-publish engagement into qualified leads.

For each engagement snapshot:
    1. Classify the engagement pattern and derive video-level conversion
       indicators (click-through, share and comment rates)
    2. Estimate potential leads: floor(views x lead_rate), capped per video
    3. Qualify each lead with the weighted score in LeadScoringConfig
    4. Tier by thresholds; only QUALIFIED and above are emitted
    5. Recommend services for the lead's category, best fit first
    6. Store the lead and hand it to the nurture sink

Lead synthesis is deterministic in the lead's index so re-processing a newer
snapshot for the same video updates the same leads.
"""

import logging
import math
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from ..core.config import LeadScoringConfig
from ..core.models import (
    AccountType,
    EngagementAnalysis,
    EngagementEvent,
    EngagementType,
    Lead,
    LeadQualification,
    LeadTier,
    ServiceRecommendation,
    ViralAnalysisResult,
    utcnow,
)
from ..core.observability import kernel_span
from ..core.store import KIND_ENGAGEMENT, KIND_LEAD, RecordStore
from .opportunity_scorer import KERNEL_NAMESPACE
from .sinks import NurtureSink

logger = logging.getLogger(__name__)


SERVICE_RECOMMENDATIONS: Dict[str, List[str]] = {
    "high_engagement_creator": ["viral_video_package", "full_social_media_ai", "ai_content_automation"],
    "business_owner": ["ai_content_automation", "full_social_media_ai", "custom_automation_build"],
    "agency_prospect": ["custom_automation_build", "full_social_media_ai", "viral_video_package"],
    "influencer": ["viral_video_package", "ai_content_automation", "full_social_media_ai"],
}

REASONING_TEMPLATES = {
    "viral_video_package": "Perfect for {account}s in {focus} who want to scale viral content creation",
    "ai_content_automation": "Ideal for {account}s looking to automate their content workflows",
    "full_social_media_ai": "Comprehensive solution for {account}s wanting complete social media automation",
    "custom_automation_build": "Tailored automation solution for established {account}s with specific needs",
}

ENGAGEMENT_SCORES = {
    EngagementType.LINK_CLICK: 0.8,
    EngagementType.COMMENT: 0.6,
    EngagementType.PROFILE_VISIT: 0.4,
}

DEMOGRAPHIC_MATCH = {
    AccountType.BUSINESS: 0.9,
    AccountType.CREATOR: 0.7,
    AccountType.PERSONAL: 0.5,
}

NURTURE_FOR_TIER = {
    LeadTier.HOT: ("hot_lead_sequence", "urgent"),
    LeadTier.WARM: ("warm_lead_sequence", "high"),
}
DEFAULT_NURTURE = ("qualified_lead_sequence", "normal")

CONTENT_FOCUS = ["business", "lifestyle", "fitness", "tech"]


def _ratio(part: int, whole: int) -> float:
    return part / whole if whole > 0 else 0.0


@dataclass
class PotentialLead:
    """Synthetic engager profile derived from a video's audience."""
    index: int
    source_video_id: str
    engagement_type: EngagementType
    account_type: AccountType
    content_focus: str
    engagement_history: str
    estimated_follower_count: int
    has_business_email: bool
    has_website: bool
    engagement_timestamp: datetime
    intent_signals: List[str] = field(default_factory=list)


# ============================================================================
# Bridge
# ============================================================================

class ViralToLeadsBridge:
    """Qualifies leads from engagement snapshots and hands them to nurturing."""

    def __init__(
        self,
        store: RecordStore,
        config: Optional[LeadScoringConfig] = None,
        nurture_sink: Optional[NurtureSink] = None
    ):
        self.store = store
        self.config = config or LeadScoringConfig()
        self.nurture_sink = nurture_sink

        weight_sum = sum(self.config.weights.values())
        if abs(weight_sum - 1.0) > 1e-9:
            raise ValueError(f"Lead scoring weights must sum to 1.0, got {weight_sum:.4f}")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_engagement(self, event: EngagementEvent) -> EngagementAnalysis:
        """Classify the engagement pattern of one snapshot."""
        rate = event.engagement_rate
        if rate > 0.05:
            quality = "high"
        elif rate > 0.02:
            quality = "medium"
        else:
            quality = "low"

        if event.viral_coefficient > 0.1:
            viral_potential = "high"
        elif event.viral_coefficient > 0.05:
            viral_potential = "medium"
        else:
            viral_potential = "low"

        indicators = []
        if _ratio(event.link_clicks, event.views) > 0.01:
            indicators.append("high_click_through_rate")
        if _ratio(event.shares, event.views) > 0.02:
            indicators.append("high_share_rate")
        if _ratio(event.comments, event.views) > 0.05:
            indicators.append("high_comment_engagement")

        return EngagementAnalysis(
            engagement_quality=quality,
            viral_potential=viral_potential,
            audience_interest="high" if event.comments > event.likes * 0.1 else "medium",
            conversion_indicators=indicators,
        )

    def potential_lead_count(self, event: EngagementEvent) -> int:
        return min(math.floor(event.views * self.config.lead_rate), self.config.max_leads_per_video)

    def identify_potential_leads(self, event: EngagementEvent) -> List[PotentialLead]:
        """
        Synthesize the potential leads for a snapshot.

        Profiles rotate by index: engagement type over comment / profile
        visit / link click, account type over business / creator / personal.
        """
        leads = []
        for i in range(self.potential_lead_count(event)):
            engagement_type = [
                EngagementType.COMMENT,
                EngagementType.PROFILE_VISIT,
                EngagementType.LINK_CLICK,
            ][i % 3]
            account_type = [
                AccountType.BUSINESS,
                AccountType.CREATOR,
                AccountType.PERSONAL,
                AccountType.PERSONAL,
            ][i % 4]

            intent_signals = []
            if account_type == AccountType.BUSINESS:
                intent_signals.extend(["business_account", "potential_client"])
            if engagement_type == EngagementType.LINK_CLICK:
                intent_signals.append("high_intent_action")

            leads.append(PotentialLead(
                index=i,
                source_video_id=event.video_id,
                engagement_type=engagement_type,
                account_type=account_type,
                content_focus=CONTENT_FOCUS[i % 4],
                engagement_history="high" if i % 3 == 0 else "medium",
                estimated_follower_count=1000 + i * 500,
                has_business_email=i % 5 == 0,
                has_website=i % 3 == 0,
                engagement_timestamp=event.timestamp - timedelta(hours=i),
                intent_signals=intent_signals,
            ))
        return leads

    # ------------------------------------------------------------------
    # Qualification
    # ------------------------------------------------------------------

    def qualify_lead(self, lead: PotentialLead, event: EngagementEvent,
                     analysis: Optional[EngagementAnalysis] = None) -> LeadQualification:
        """
        Weighted qualification score, clipped to [0, 1].

        Conversion indicators are the video's own indicators plus the lead's
        contact signals; each counts 0.3 toward a factor capped at 1.
        """
        analysis = analysis or self.analyze_engagement(event)
        weights = self.config.weights

        rate = event.engagement_rate
        if rate > 0.05:
            content_resonance = 0.9
        elif rate > 0.02:
            content_resonance = 0.7
        else:
            content_resonance = 0.5

        indicators = list(analysis.conversion_indicators)
        if lead.has_business_email:
            indicators.append("business_contact_available")
        if lead.has_website:
            indicators.append("established_business")
        if lead.engagement_type == EngagementType.LINK_CLICK:
            indicators.append("direct_interest")

        engagement_score = ENGAGEMENT_SCORES[lead.engagement_type]
        demographic_match = DEMOGRAPHIC_MATCH[lead.account_type]
        intent_score = min(1.0, len(lead.intent_signals) * 0.2)
        traffic_quality = self.config.traffic_quality

        overall = (
            engagement_score * weights["engagement_rate"] +
            content_resonance * weights["content_resonance"] +
            demographic_match * weights["demographic_match"] +
            intent_score * weights["intent_signals"] +
            traffic_quality * weights["traffic_quality"] +
            min(1.0, len(indicators) * 0.3) * weights["conversion_indicators"]
        )

        return LeadQualification(
            engagement_score=engagement_score,
            content_resonance=content_resonance,
            demographic_match=demographic_match,
            intent_score=intent_score,
            traffic_quality=traffic_quality,
            conversion_indicators=indicators,
            intent_signals=list(lead.intent_signals),
            overall_score=max(0.0, min(1.0, round(overall, 9))),
        )

    def tier_for(self, score: float) -> LeadTier:
        thresholds = self.config.thresholds
        if score >= thresholds["hot"]:
            return LeadTier.HOT
        elif score >= thresholds["warm"]:
            return LeadTier.WARM
        elif score >= thresholds["qualified"]:
            return LeadTier.QUALIFIED
        return LeadTier.COLD

    # ------------------------------------------------------------------
    # Service recommendation
    # ------------------------------------------------------------------

    @staticmethod
    def lead_category(lead: PotentialLead, qualification: LeadQualification) -> str:
        score = qualification.overall_score
        if lead.account_type == AccountType.BUSINESS:
            if "established_business" in qualification.conversion_indicators and score > 0.7:
                return "agency_prospect"
            return "business_owner"
        if lead.account_type == AccountType.CREATOR and score > 0.6:
            return "high_engagement_creator"
        return "influencer"

    @staticmethod
    def service_fit(service_type: str, lead: PotentialLead, qualification: LeadQualification) -> float:
        score = qualification.overall_score
        fit = score

        if service_type == "viral_video_package":
            if lead.account_type == AccountType.CREATOR:
                fit += 0.2
            if lead.content_focus in ("lifestyle", "fitness"):
                fit += 0.1
        elif service_type == "ai_content_automation":
            if lead.account_type == AccountType.BUSINESS:
                fit += 0.2
            if "business_account" in qualification.intent_signals:
                fit += 0.1
        elif service_type == "custom_automation_build":
            if lead.account_type == AccountType.BUSINESS and score > 0.7:
                fit += 0.3
            else:
                fit -= 0.2
        elif service_type == "full_social_media_ai":
            if lead.account_type in (AccountType.BUSINESS, AccountType.CREATOR):
                fit += 0.1

        return max(0.0, min(1.0, round(fit, 9)))

    @staticmethod
    def reasoning(service_type: str, lead: PotentialLead) -> str:
        template = REASONING_TEMPLATES.get(service_type)
        if template is None:
            return "Recommended based on profile analysis"
        return template.format(account=lead.account_type.value, focus=lead.content_focus)

    def recommend_services(self, lead: PotentialLead, qualification: LeadQualification) -> List[ServiceRecommendation]:
        """Top three services for the lead's category, best fit first."""
        category = self.lead_category(lead, qualification)
        services = SERVICE_RECOMMENDATIONS.get(category, ["ai_content_automation"])

        recommendations = []
        for service_type in services[:3]:
            fit = self.service_fit(service_type, lead, qualification)
            if fit > 0.8:
                priority = "high"
            elif fit > 0.6:
                priority = "medium"
            else:
                priority = "low"

            recommendations.append(ServiceRecommendation(
                service_type=service_type,
                fit_score=fit,
                reasoning=self.reasoning(service_type, lead),
                priority=priority,
            ))

        # stable: ties keep category order
        recommendations.sort(key=lambda r: r.fit_score, reverse=True)
        return recommendations

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    @staticmethod
    def lead_id(video_id: str, index: int) -> str:
        return str(uuid.uuid5(KERNEL_NAMESPACE, f"lead:{video_id}:{index}"))

    def _build_lead(self, potential: PotentialLead, qualification: LeadQualification,
                    tier: LeadTier, tenant_id: Optional[str], now: datetime) -> Lead:
        lead_id = self.lead_id(potential.source_video_id, potential.index)
        nurture_type, nurture_priority = NURTURE_FOR_TIER.get(tier, DEFAULT_NURTURE)

        existing = self.store.get(KIND_LEAD, lead_id)
        created_at = existing.created_at if existing is not None else now

        return Lead(
            id=lead_id,
            source_video_id=potential.source_video_id,
            tenant_id=tenant_id,
            engagement_type=potential.engagement_type,
            account_type=potential.account_type,
            content_focus=potential.content_focus,
            intent_signals=list(potential.intent_signals),
            conversion_indicators=list(qualification.conversion_indicators),
            qualification=qualification,
            qualification_score=qualification.overall_score,
            recommended_services=self.recommend_services(potential, qualification),
            tier=tier,
            lead_category=self.lead_category(potential, qualification),
            nurture_type=nurture_type,
            nurture_priority=nurture_priority,
            data_retention_expires=now + timedelta(days=self.config.data_retention_days),
            created_at=created_at,
        )

    async def process_event(self, event: EngagementEvent, tenant_id: Optional[str] = None,
                            now: Optional[datetime] = None) -> ViralAnalysisResult:
        """
        Store an engagement snapshot and emit the leads it qualifies.

        Raises:
            InvariantViolation: If the snapshot's counters go backwards
        """
        now = now or utcnow()

        with kernel_span("bridge_process_event", video_id=event.video_id):
            self.store.put(KIND_ENGAGEMENT, event)

            if event.views <= 0:
                logger.info(f"No views yet for {event.video_id}")
                return ViralAnalysisResult(status="no_data", video_id=event.video_id)

            analysis = self.analyze_engagement(event)
            potentials = self.identify_potential_leads(event)
            qualified_threshold = self.config.thresholds["qualified"]

            created: List[Lead] = []
            for potential in potentials:
                qualification = self.qualify_lead(potential, event, analysis)
                if qualification.overall_score < qualified_threshold:
                    continue

                tier = self.tier_for(qualification.overall_score)
                lead = self._build_lead(potential, qualification, tier, tenant_id, now)
                self.store.put(KIND_LEAD, lead)
                created.append(lead)

                if self.nurture_sink is not None:
                    await self.nurture_sink.enqueue(lead, lead.nurture_type, lead.nurture_priority)

        hot = sum(1 for lead in created if lead.tier == LeadTier.HOT)
        logger.info(
            f"Video {event.video_id}: {len(potentials)} potential leads, "
            f"{len(created)} qualified ({hot} hot)"
        )

        return ViralAnalysisResult(
            status="success",
            video_id=event.video_id,
            views=event.views,
            engagement_rate=event.engagement_rate,
            viral_coefficient=event.viral_coefficient,
            analysis=analysis,
            potential_leads_identified=len(potentials),
            qualified_leads=len(created),
            leads_created=len(created),
            hot_leads=hot,
            conversion_rate=_ratio(len(created), event.views),
            created_lead_ids=[lead.id for lead in created],
        )

    async def process_events(self, events: Sequence[EngagementEvent],
                             tenant_id: Optional[str] = None,
                             now: Optional[datetime] = None) -> List[ViralAnalysisResult]:
        """Process snapshots in order. A failure on one video does not stop the rest."""
        results = []
        for event in events:
            try:
                results.append(await self.process_event(event, tenant_id=tenant_id, now=now))
            except Exception as e:
                logger.error(f"Failed to analyze viral performance for {event.video_id}: {e}")
                results.append(ViralAnalysisResult(
                    status="error",
                    video_id=event.video_id,
                    message=str(e),
                ))
        return results

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def conversion_dashboard(self, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Viral-to-lead conversion summary over the last `days` days."""
        end_date = now or utcnow()
        start_date = end_date - timedelta(days=days)

        def in_window(ts: datetime) -> bool:
            return start_date <= ts <= end_date

        events = [e for e in self.store.list(KIND_ENGAGEMENT) if in_window(e.timestamp)]
        leads = [lead for lead in self.store.list(KIND_LEAD) if in_window(lead.created_at)]

        total_views = sum(e.views for e in events)
        leads_by_video: Dict[str, int] = {}
        for lead in leads:
            leads_by_video[lead.source_video_id] = leads_by_video.get(lead.source_video_id, 0) + 1

        def tier_count(tier: LeadTier) -> int:
            return sum(1 for lead in leads if lead.tier == tier)

        top_videos = sorted(events, key=lambda e: e.views, reverse=True)[:3]
        lead_value = self.config.estimated_lead_value

        return {
            "period": {
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "days": days,
            },
            "viral_performance": {
                "total_videos": len(events),
                "total_views": total_views,
                "avg_engagement_rate": (
                    sum(e.engagement_rate for e in events) / len(events) if events else 0.0
                ),
            },
            "lead_generation": {
                "total_leads": len(leads),
                "conversion_rate": _ratio(len(leads), total_views),
                "hot_leads": tier_count(LeadTier.HOT),
                "warm_leads": tier_count(LeadTier.WARM),
                "qualified_leads": tier_count(LeadTier.QUALIFIED),
            },
            "revenue_impact": {
                "revenue_from_viral_leads": round(len(leads) * lead_value, 2),
                "avg_lead_value": lead_value,
            },
            "top_performing_videos": [
                {
                    "video_id": e.video_id,
                    "views": e.views,
                    "engagement_rate": e.engagement_rate,
                    "leads_generated": leads_by_video.get(e.video_id, 0),
                }
                for e in top_videos
            ],
        }


# ============================================================================
# Simulated engagement
# ============================================================================

class SimulatedEngagementSource:
    """
    Sampled engagement snapshots for demos.

    Takes an explicit random.Random so runs can be reproduced with a seed.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def sample(self, video_id: str, timestamp: Optional[datetime] = None) -> EngagementEvent:
        views = self.rng.randint(10000, 110000)
        return EngagementEvent(
            video_id=video_id,
            views=views,
            likes=self.rng.randint(500, 5500),
            comments=self.rng.randint(50, 550),
            shares=self.rng.randint(20, 220),
            link_clicks=self.rng.randint(100, 1100),
            viral_coefficient=self.rng.uniform(0.05, 0.25),
            timestamp=timestamp or utcnow(),
        )

    def grow(self, previous: EngagementEvent, timestamp: Optional[datetime] = None) -> EngagementEvent:
        """A later snapshot of the same video; counters never decrease."""
        factor = 1 + self.rng.uniform(0.0, 0.5)
        return EngagementEvent(
            video_id=previous.video_id,
            views=int(previous.views * factor),
            likes=int(previous.likes * factor),
            comments=int(previous.comments * factor),
            shares=int(previous.shares * factor),
            link_clicks=int(previous.link_clicks * factor),
            viral_coefficient=previous.viral_coefficient,
            timestamp=timestamp or utcnow(),
        )
