"""
Tests for kernel model validation: changes, script plans, queue items,
engagement events and leads.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from ghostautomation.core.disclosures import missing_disclosures, script_text
from ghostautomation.core.models import (
    AccountType,
    Change,
    ChangeTarget,
    EngagementEvent,
    EngagementType,
    Lead,
    LeadTier,
    PainPoint,
    Product,
    QueueItem,
    ScriptPlan,
    ServiceRecommendation,
    apply_changes,
    utcnow,
)


def _plan(**kwargs):
    fields = dict(
        id="plan-1",
        opportunity_id="opp-1",
        product_id="prod-1",
        product_name="CoQ10",
        pain_point=PainPoint.CHRONIC_FATIGUE,
        match_score=100,
        hook="Why are 80% of Americans exhausted by 2pm every day?",
        emotional_triggers=["a", "b"],
        mechanism_explanation="CoQ10 powers your mitochondria",
        estimated_revenue=1000,
        viral_score=90,
        priority="urgent",
    )
    fields.update(kwargs)
    return ScriptPlan(**fields)


class TestChange:
    @pytest.mark.parametrize("key,target,field", [
        ("persona_hair_length", ChangeTarget.PERSONA, "hair_length"),
        ("script_affiliate_disclosure", ChangeTarget.SCRIPT, "affiliate_disclosure"),
        ("video_lighting_color", ChangeTarget.VIDEO, "lighting_color"),
    ])
    def test_from_key(self, key, target, field):
        change = Change.from_key(key, "x")
        assert change.target == target
        assert change.field == field
        assert change.key == key

    @pytest.mark.parametrize("key", ["hair_length", "persona_", "audio_volume"])
    def test_from_key_rejects_unknown_prefix(self, key):
        with pytest.raises(ValueError, match="Unknown change key"):
            Change.from_key(key, "x")

    def test_apply_changes_does_not_mutate_original(self):
        item = QueueItem(id="video_1", persona_config={"voice_type": "nurse"})
        edited = apply_changes(item, [Change.from_key("persona_hair_length", "short")])

        assert edited.persona_config == {"voice_type": "nurse", "hair_length": "short"}
        assert item.persona_config == {"voice_type": "nurse"}


class TestScriptPlan:
    def test_defaults_require_both_disclosures(self):
        assert _plan().required_disclosures == ["advertising_disclosure", "affiliate_disclosure"]

    def test_advertising_disclosure_mandatory(self):
        with pytest.raises(ValidationError, match="advertising_disclosure"):
            _plan(required_disclosures=["affiliate_disclosure"])

    def test_needs_two_emotional_triggers(self):
        with pytest.raises(ValidationError):
            _plan(emotional_triggers=["only one"])

    def test_revenue_capped(self):
        with pytest.raises(ValidationError):
            _plan(estimated_revenue=60000.01)
        assert _plan(estimated_revenue=60000).estimated_revenue == 60000


class TestQueueItem:
    def test_updated_before_created_rejected(self):
        now = utcnow()
        with pytest.raises(ValidationError, match="updated_at"):
            QueueItem(id="video_1", created_at=now, updated_at=now - timedelta(seconds=1))


class TestProduct:
    def test_profit_per_sale(self):
        product = Product(id="p", name="Zinc", merge_key="zinc", price=40, commission=25, source_set=["fastmoss"])
        assert product.profit_per_sale == pytest.approx(10.0)

    def test_non_finite_price_rejected(self):
        with pytest.raises(ValidationError):
            Product(id="p", name="Zinc", merge_key="zinc", price=float("inf"), source_set=["fastmoss"])

    def test_needs_a_source(self):
        with pytest.raises(ValidationError):
            Product(id="p", name="Zinc", merge_key="zinc", price=10, source_set=[])


class TestEngagementEvent:
    def test_engagement_rate_derived(self):
        event = EngagementEvent(video_id="v", views=1000, likes=30, comments=10, shares=10)
        assert event.engagement_rate == pytest.approx(0.05)

    def test_engagement_rate_capped(self):
        event = EngagementEvent(video_id="v", views=10, likes=100)
        assert event.engagement_rate == 1.0

    def test_negative_counter_rejected(self):
        with pytest.raises(ValidationError):
            EngagementEvent(video_id="v", views=-1)


class TestLead:
    def _lead(self, fits):
        return Lead(
            id="lead-1",
            source_video_id="v",
            engagement_type=EngagementType.COMMENT,
            account_type=AccountType.BUSINESS,
            qualification_score=0.7,
            tier=LeadTier.WARM,
            recommended_services=[
                ServiceRecommendation(service_type=f"s{i}", fit_score=fit, reasoning="", priority="low")
                for i, fit in enumerate(fits)
            ],
        )

    def test_services_sorted_descending(self):
        assert len(self._lead([0.9, 0.9, 0.5]).recommended_services) == 3

    def test_unsorted_services_rejected(self):
        with pytest.raises(ValidationError, match="sorted"):
            self._lead([0.5, 0.9])


class TestDisclosures:
    def test_script_text_flattens_nested_values(self):
        text = script_text({"hook": "Hi", "cta": {"action": "Link In Bio"}, "lines": ["One", 2]})
        assert text == "hi\nlink in bio\none"

    def test_missing_affiliate(self):
        missing = missing_disclosures({"body": "Sponsored post"}, ["advertising_disclosure", "affiliate_disclosure"])
        assert missing == ["affiliate_disclosure"]

    def test_substring_matching_is_permissive(self):
        # 'ad' inside 'made' counts as an advertising disclosure
        assert missing_disclosures({"body": "I made this, affiliate link"}, ["advertising_disclosure"]) == []
