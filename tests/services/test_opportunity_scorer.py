"""
Tests for OpportunityScorer: merging, filtering, weighted scoring, ranking
and the HUMAN_AVATAR monthly budget.
"""

from datetime import datetime, timezone

import pytest

from ghostautomation.core.config import KernelConfig, PerformanceCriteria
from ghostautomation.core.errors import ProviderUnavailable
from ghostautomation.core.models import ContentPriority, Product, ProductionTier, RawProduct
from ghostautomation.core.store import KIND_OPPORTUNITY, KIND_PRODUCT, InMemoryRecordStore
from ghostautomation.services.catalog import CatalogProvider, StaticCatalogProvider
from ghostautomation.services.opportunity_scorer import (
    OPPORTUNITY_WEIGHTS,
    OpportunityScorer,
    ScoringDiagnostics,
    filter_reason,
    merge_records,
    priority_for_score,
)

JAN = datetime(2025, 1, 15, tzinfo=timezone.utc)
FEB = datetime(2025, 2, 1, tzinfo=timezone.utc)

HYPE = (
    "Viral trending must have game changer sold out. "
    "The secret hidden banned suppressed truth about glass."
)


def _raw(name, provider="fastmoss", **kwargs):
    return RawProduct(provider=provider, name=name, **kwargs)


def led_mirror(**kwargs):
    fields = dict(
        price=299.99, commission=12, rating=4.6, monthly_sales=5000, category="tech",
        description=HYPE, competition_level="low", growth_rate="30%", trend_score=100,
    )
    fields.update(kwargs)
    return _raw("LED Mirror", **fields)


def desk_kit():
    return _raw("Desk Kit", price=179.99, commission=15, rating=4.8, monthly_sales=2000, category="workspace")


def premium_config(limit=10):
    config = KernelConfig()
    config.performance_criteria = PerformanceCriteria(max_price=500, min_commission=10)
    config.tier_budget.monthly_human_avatar_limit = limit
    return config


class FailingProvider(CatalogProvider):
    name = "kolodata"

    async def list(self, category=None, limit=50):
        raise ProviderUnavailable("kolodata unreachable", provider=self.name)


# ============================================================================
# Merge
# ============================================================================

class TestMergeRecords:
    def test_first_provider_seeds_later_fill_gaps(self):
        products = merge_records([
            _raw("LED Mirror", price="$29.99", rating=None),
            _raw("led mirror!", provider="kolodata", price="$35", rating="4.8", commission="20%"),
        ])

        assert len(products) == 1
        product = products[0]
        assert product.price == 29.99
        assert product.rating == 4.8
        assert product.commission == 20.0
        assert product.source_set == ["fastmoss", "kolodata"]

    def test_drops_nameless_and_priceless(self):
        diagnostics = ScoringDiagnostics()
        products = merge_records([_raw(None, price="$5"), _raw("Zinc")], diagnostics)

        assert products == []
        assert diagnostics.dropped_missing_name == 1
        assert diagnostics.dropped_missing_price == 1

    def test_provider_ids_do_not_collide(self):
        products = merge_records([
            _raw("Magnesium Glycinate", id="1", price=90, commission=20),
            _raw("LED Mirror", provider="kolodata", id="1", price=80, commission=20),
        ])

        assert len({p.id for p in products}) == 2
        assert [p.source_ids for p in products] == [{"fastmoss": "1"}, {"kolodata": "1"}]

    def test_provider_ids_accumulate(self):
        product = merge_records([
            _raw("Zinc", id="fm-9", price="$5"),
            _raw("zinc", provider="kolodata", id="kd-3"),
        ])[0]
        assert product.source_ids == {"fastmoss": "fm-9", "kolodata": "kd-3"}

    def test_ids_are_stable(self):
        first = merge_records([_raw("Zinc", price="$5")])[0]
        second = merge_records([_raw("ZINC", price="$6")])[0]
        assert first.id == second.id


# ============================================================================
# Filtering
# ============================================================================

class TestFilterReason:
    def _product(self, **kwargs):
        fields = dict(id="p", name="Zinc", merge_key="zinc", price=60, commission=30,
                      rating=4.8, monthly_sales=5000, source_set=["fastmoss"])
        fields.update(kwargs)
        return Product(**fields)

    def test_qualifying_product(self):
        assert filter_reason(self._product(), PerformanceCriteria()) is None

    @pytest.mark.parametrize("overrides,reason", [
        ({"price": 150}, "price_above_max"),
        ({"commission": 10}, "commission_below_min"),
        ({"rating": 4.0}, "rating_below_min"),
        ({"monthly_sales": 60000}, "monthly_sales_out_of_band"),
        ({"price": 40, "commission": 20}, "profit_below_min"),
        ({"merge_key": "crypto miner"}, "blacklisted_keyword"),
    ])
    def test_rejections(self, overrides, reason):
        assert filter_reason(self._product(**overrides), PerformanceCriteria()) == reason

    def test_missing_fields_do_not_filter(self):
        product = self._product(commission=0, rating=0, monthly_sales=None)
        assert filter_reason(product, PerformanceCriteria()) is None


# ============================================================================
# Scoring
# ============================================================================

class TestScoring:
    def test_weights_sum_to_one(self):
        assert sum(OPPORTUNITY_WEIGHTS.values()) == pytest.approx(1.0, abs=1e-9)

    def test_score_is_weighted_sum(self):
        scorer = OpportunityScorer(premium_config())
        run = scorer.rank([led_mirror(), desk_kit()])

        for opp in run.opportunities:
            expected = sum(
                OPPORTUNITY_WEIGHTS[name] * value
                for name, value in opp.score_breakdown.model_dump().items()
            )
            assert opp.score == pytest.approx(expected)

    def test_rank_is_deterministic(self):
        scorer = OpportunityScorer(premium_config())
        records = [desk_kit(), led_mirror()]

        first = [o.model_dump(exclude={"scored_at"}) for o in scorer.rank(records).opportunities]
        second = [o.model_dump(exclude={"scored_at"}) for o in scorer.rank(records).opportunities]
        assert first == second

    def test_ranked_best_first(self):
        run = OpportunityScorer(premium_config()).rank([desk_kit(), led_mirror()])
        assert [o.product_name for o in run.opportunities] == ["LED Mirror", "Desk Kit"]

    def test_plain_led_mirror_is_low_priority(self):
        plain = _raw("LED Mirror", price=299.99, commission=12, rating=4.6, monthly_sales=5000, category="tech")
        opp = OpportunityScorer(premium_config()).rank([plain]).opportunities[0]

        assert opp.score == pytest.approx(0.445, abs=1e-3)
        assert opp.priority == ContentPriority.LOW

    def test_preferred_categories_drive_category_appeal(self):
        config = premium_config()
        baseline = OpportunityScorer(config).rank([desk_kit()]).opportunities[0]

        config.performance_criteria.preferred_categories = ["Workspace"]
        preferred = OpportunityScorer(config).rank([desk_kit()]).opportunities[0]

        assert baseline.score_breakdown.conversion_likelihood == pytest.approx(0.5)
        assert preferred.score_breakdown.conversion_likelihood == pytest.approx(0.6)
        assert preferred.score > baseline.score

    def test_rejects_bad_weights(self):
        with pytest.raises(ValueError, match="sum to 1.0"):
            OpportunityScorer(weights={**OPPORTUNITY_WEIGHTS, "profit_potential": 0.9})

    @pytest.mark.parametrize("score,priority", [
        (0.90, ContentPriority.URGENT),
        (0.8999999, ContentPriority.HIGH),
        (0.80, ContentPriority.HIGH),
        (0.70, ContentPriority.MEDIUM),
        (0.6999, ContentPriority.LOW),
    ])
    def test_priority_thresholds_inclusive(self, score, priority):
        assert priority_for_score(score) == priority

    def test_report(self):
        run = OpportunityScorer(premium_config()).rank([led_mirror(), desk_kit()])
        report = run.report(top=1)

        assert report["total_products_analyzed"] == 2
        assert len(report["top_opportunities"]) == 1
        assert report["category_breakdown"]["tech"]["top_product"] == "LED Mirror"
        assert report["criteria_used"]["max_price"] == 500


# ============================================================================
# Tiers and budget
# ============================================================================

class TestTiers:
    def test_score_and_tier(self):
        store = InMemoryRecordStore()
        scorer = OpportunityScorer(premium_config(), store)

        run = scorer.score_records([led_mirror(), desk_kit()], now=JAN)
        tiers = {o.product_name: o for o in run.opportunities}

        assert tiers["LED Mirror"].priority in (ContentPriority.HIGH, ContentPriority.URGENT)
        assert tiers["LED Mirror"].recommended_tier == ProductionTier.HUMAN_AVATAR
        assert tiers["Desk Kit"].recommended_tier == ProductionTier.IMAGE_MONTAGE
        assert store.get_counter(scorer.budget_key(JAN)) == 1

    def test_budget_exhaustion(self):
        store = InMemoryRecordStore()
        scorer = OpportunityScorer(premium_config(limit=1), store)
        store.increment_counter(scorer.budget_key(JAN), limit=1)

        run = scorer.score_records(
            [led_mirror(), _raw("Glow Serum", price=45, commission=40, rating=4.9, monthly_sales=3000,
                                category="beauty", description=HYPE, competition_level="low",
                                growth_rate="40%", trend_score=95)],
            now=JAN,
        )

        assert all(o.recommended_tier == ProductionTier.IMAGE_MONTAGE for o in run.opportunities)
        assert store.get_counter(scorer.budget_key(JAN)) == 1

        next_month = scorer.score_records([led_mirror()], now=FEB)
        assert next_month.opportunities[0].recommended_tier == ProductionTier.HUMAN_AVATAR

    def test_persists_products_and_opportunities(self):
        store = InMemoryRecordStore()
        OpportunityScorer(premium_config(), store).score_records([led_mirror(), desk_kit()], now=JAN)

        assert store.count(KIND_PRODUCT) == 2
        assert store.count(KIND_OPPORTUNITY) == 2

    def test_colliding_provider_ids_keep_both_products(self):
        store = InMemoryRecordStore()
        run = OpportunityScorer(premium_config(), store).score_records([
            _raw("Magnesium Glycinate", id="1", price=90, commission=20),
            _raw("LED Mirror", provider="kolodata", id="1", price=80, commission=20),
        ], now=JAN)

        assert sorted(o.product_name for o in run.opportunities) == ["LED Mirror", "Magnesium Glycinate"]
        assert store.count(KIND_PRODUCT) == 2
        assert store.count(KIND_OPPORTUNITY) == 2

    def test_assign_tiers_needs_store(self):
        with pytest.raises(ValueError, match="record store"):
            OpportunityScorer(premium_config()).assign_tiers([])

    def test_budget_status(self):
        store = InMemoryRecordStore()
        scorer = OpportunityScorer(premium_config(limit=3), store)
        scorer.score_records([led_mirror()], now=JAN)

        status = scorer.budget_status(JAN)
        assert status["month"] == "2025-01"
        assert status["used"] == 1
        assert status["remaining"] == 2


# ============================================================================
# Providers
# ============================================================================

class TestScoreWithProviders:
    @pytest.mark.asyncio
    async def test_failing_provider_is_skipped(self):
        store = InMemoryRecordStore()
        scorer = OpportunityScorer(premium_config(), store)
        providers = [FailingProvider(), StaticCatalogProvider("fastmoss", [led_mirror()])]

        run = await scorer.score(providers, now=JAN)

        assert [o.product_name for o in run.opportunities] == ["LED Mirror"]
        assert "kolodata" in run.diagnostics.provider_failures

    @pytest.mark.asyncio
    async def test_multi_source_merge(self):
        scorer = OpportunityScorer(premium_config())
        providers = [
            StaticCatalogProvider("fastmoss", [_raw("LED Mirror", price=299.99, category="tech")]),
            StaticCatalogProvider("kolodata", [led_mirror(provider="kolodata")]),
        ]

        run = await scorer.score(providers)

        opp = run.opportunities[0]
        product = run.products[opp.product_id]
        assert product.source_set == ["fastmoss", "kolodata"]
        assert product.commission == 12.0
