"""
Tests for ViralToLeadsBridge: engagement analysis, lead qualification,
service recommendations, re-processing and the conversion dashboard.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from ghostautomation.core.config import LeadScoringConfig
from ghostautomation.core.errors import InvariantViolation
from ghostautomation.core.models import AccountType, EngagementEvent, EngagementType, LeadTier
from ghostautomation.core.store import KIND_ENGAGEMENT, KIND_LEAD, InMemoryRecordStore
from ghostautomation.services.sinks import InMemoryNurtureSink
from ghostautomation.services.viral_leads_bridge import SimulatedEngagementSource, ViralToLeadsBridge

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def viral_event(video_id="tt_viral", **kwargs):
    fields = dict(video_id=video_id, views=100000, likes=0, comments=6000, shares=3000,
                  viral_coefficient=0.15, timestamp=NOW)
    fields.update(kwargs)
    return EngagementEvent(**fields)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def sink():
    return InMemoryNurtureSink()


@pytest.fixture
def bridge(store, sink):
    return ViralToLeadsBridge(store, nurture_sink=sink)


# ============================================================================
# Analysis and qualification
# ============================================================================

class TestAnalysis:
    def test_analyze_engagement(self, bridge):
        analysis = bridge.analyze_engagement(viral_event())

        assert analysis.engagement_quality == "high"
        assert analysis.viral_potential == "high"
        assert analysis.audience_interest == "high"
        assert analysis.conversion_indicators == ["high_share_rate", "high_comment_engagement"]

    def test_low_engagement(self, bridge):
        analysis = bridge.analyze_engagement(EngagementEvent(video_id="v", views=1000, likes=10))
        assert analysis.engagement_quality == "low"
        assert analysis.conversion_indicators == []

    def test_potential_leads_capped(self, bridge):
        assert bridge.potential_lead_count(viral_event()) == 50
        assert bridge.potential_lead_count(viral_event(views=12345)) == 12

    def test_profiles_rotate(self, bridge):
        leads = bridge.identify_potential_leads(viral_event(views=5000))

        assert [lead.engagement_type for lead in leads[:3]] == [
            EngagementType.COMMENT, EngagementType.PROFILE_VISIT, EngagementType.LINK_CLICK,
        ]
        assert [lead.account_type for lead in leads[:4]] == [
            AccountType.BUSINESS, AccountType.CREATOR, AccountType.PERSONAL, AccountType.PERSONAL,
        ]
        assert leads[2].intent_signals == ["high_intent_action"]

    def test_business_comment_lead(self, bridge):
        event = viral_event()
        potential = bridge.identify_potential_leads(event)[0]

        qualification = bridge.qualify_lead(potential, event)

        assert qualification.overall_score == pytest.approx(0.75)
        assert bridge.tier_for(qualification.overall_score) == LeadTier.WARM
        assert bridge.lead_category(potential, qualification) == "agency_prospect"

        services = bridge.recommend_services(potential, qualification)
        assert [s.service_type for s in services] == [
            "custom_automation_build", "full_social_media_ai", "viral_video_package",
        ]
        assert [s.fit_score for s in services] == pytest.approx([1.0, 0.85, 0.75])
        assert services[0].priority == "high"

    @pytest.mark.parametrize("score,tier", [
        (0.8, LeadTier.HOT),
        (0.79, LeadTier.WARM),
        (0.6, LeadTier.WARM),
        (0.4, LeadTier.QUALIFIED),
        (0.39, LeadTier.COLD),
    ])
    def test_tier_thresholds(self, bridge, score, tier):
        assert bridge.tier_for(score) == tier

    def test_rejects_bad_weights(self, store):
        config = LeadScoringConfig()
        config.weights["traffic_quality"] = 0.5
        with pytest.raises(ValueError, match="sum to 1.0"):
            ViralToLeadsBridge(store, config)


# ============================================================================
# Processing
# ============================================================================

class TestProcessEvent:
    @pytest.mark.asyncio
    async def test_viral_video_produces_leads(self, bridge, store, sink):
        result = await bridge.process_event(viral_event(), tenant_id="acme", now=NOW)

        assert result.status == "success"
        assert result.potential_leads_identified == 50
        assert result.leads_created == 50
        assert result.hot_leads == 4
        assert result.conversion_rate == pytest.approx(0.0005)

        leads = store.list(KIND_LEAD)
        assert len(leads) == 50
        assert all(lead.qualification_score >= 0.4 for lead in leads)
        assert all(lead.tenant_id == "acme" for lead in leads)

        hot = [lead for lead in leads if lead.tier == LeadTier.HOT]
        assert len(hot) == 4
        assert all(lead.nurture_type == "hot_lead_sequence" for lead in hot)

        assert len(sink.tasks) == 50
        assert sum(1 for task in sink.tasks if task["priority"] == "urgent") == 4

    @pytest.mark.asyncio
    async def test_business_owner_gets_content_automation(self, bridge, store):
        await bridge.process_event(viral_event(), now=NOW)
        lead = store.get(KIND_LEAD, bridge.lead_id("tt_viral", 20))

        assert lead.tier == LeadTier.HOT
        assert lead.qualification_score == pytest.approx(0.83)
        assert lead.lead_category == "business_owner"
        assert lead.recommended_services[0].service_type == "ai_content_automation"

    @pytest.mark.asyncio
    async def test_stricter_threshold_filters_leads(self, store):
        config = LeadScoringConfig(thresholds={"hot": 0.8, "warm": 0.7, "qualified": 0.6, "cold": 0.2})
        bridge = ViralToLeadsBridge(store, config)

        result = await bridge.process_event(viral_event(), now=NOW)

        assert 0 < result.leads_created < 50
        assert all(lead.qualification_score >= 0.6 for lead in store.list(KIND_LEAD))

    @pytest.mark.asyncio
    async def test_no_views(self, bridge, store):
        result = await bridge.process_event(EngagementEvent(video_id="tt_new"), now=NOW)

        assert result.status == "no_data"
        assert store.count(KIND_LEAD) == 0
        assert store.get(KIND_ENGAGEMENT, "tt_new") is not None

    @pytest.mark.asyncio
    async def test_newer_snapshot_updates_same_leads(self, bridge, store):
        await bridge.process_event(viral_event(), now=NOW)
        first = store.get(KIND_LEAD, bridge.lead_id("tt_viral", 0))

        later = NOW + timedelta(hours=6)
        await bridge.process_event(viral_event(views=150000, comments=9000, shares=4500, timestamp=later), now=later)

        assert store.count(KIND_LEAD) == 50
        assert store.get(KIND_LEAD, first.id).created_at == first.created_at

    @pytest.mark.asyncio
    async def test_counters_must_not_decrease(self, bridge):
        await bridge.process_event(viral_event(), now=NOW)
        with pytest.raises(InvariantViolation, match="views decreased"):
            await bridge.process_event(viral_event(views=90000), now=NOW)

    @pytest.mark.asyncio
    async def test_process_events_isolates_failures(self, bridge):
        await bridge.process_event(viral_event(), now=NOW)

        results = await bridge.process_events([
            viral_event(views=90000),
            viral_event(video_id="tt_other", views=2000, likes=100),
        ], now=NOW)

        assert [r.status for r in results] == ["error", "success"]
        assert "views decreased" in results[0].message
        assert results[1].leads_created == 2


# ============================================================================
# Dashboard
# ============================================================================

class TestDashboard:
    @pytest.mark.asyncio
    async def test_dashboard(self, bridge):
        await bridge.process_event(viral_event(), now=NOW)
        old = NOW - timedelta(days=40)
        await bridge.process_event(viral_event(video_id="tt_old", timestamp=old), now=old)

        dashboard = bridge.conversion_dashboard(days=30, now=NOW)

        assert dashboard["viral_performance"]["total_videos"] == 1
        assert dashboard["viral_performance"]["total_views"] == 100000
        assert dashboard["lead_generation"]["total_leads"] == 50
        assert dashboard["lead_generation"]["hot_leads"] == 4
        assert dashboard["revenue_impact"]["revenue_from_viral_leads"] == pytest.approx(2778.0)
        assert dashboard["top_performing_videos"][0]["leads_generated"] == 50

    def test_empty_dashboard(self, bridge):
        dashboard = bridge.conversion_dashboard(now=NOW)

        assert dashboard["viral_performance"]["avg_engagement_rate"] == 0.0
        assert dashboard["lead_generation"]["conversion_rate"] == 0.0
        assert dashboard["top_performing_videos"] == []


# ============================================================================
# Simulated engagement
# ============================================================================

class TestSimulatedEngagementSource:
    def test_seeded_runs_repeat(self):
        first = SimulatedEngagementSource(random.Random(7)).sample("tt_1", timestamp=NOW)
        second = SimulatedEngagementSource(random.Random(7)).sample("tt_1", timestamp=NOW)
        assert first == second

    def test_grow_never_decreases(self):
        source = SimulatedEngagementSource(random.Random(7))
        event = source.sample("tt_1", timestamp=NOW)
        later = source.grow(event, timestamp=NOW + timedelta(hours=1))

        for name, value in later.counters.items():
            assert value >= event.counters[name]
