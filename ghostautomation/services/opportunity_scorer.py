"""
Opportunity Scorer - merges multi-source product records and ranks them.

Pipeline for one scoring run:
    1. collect   - gather RawProduct records from catalog providers (failing
                   providers are skipped)
    2. merge     - fuse records by normalized name; the first provider seeds,
                   later providers fill unset fields
    3. filter    - PerformanceCriteria
    4. score     - six pluggable sub-scorers combined by OPPORTUNITY_WEIGHTS
    5. rank      - score desc, then trend_momentum desc, price asc, name
    6. tiers     - HUMAN_AVATAR for trust categories at HIGH+ while the
                   monthly budget lasts (atomic store counter)

Steps 2-5 are pure: the same records and config always give the same
ranking. Only tier assignment and persistence touch the store.

Usage:
    scorer = OpportunityScorer(config, store)
    run = await scorer.score([fastmoss, kolodata], category="health")
    for opp in run.opportunities:
        print(opp.product_name, opp.score, opp.recommended_tier)
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..core.config import KernelConfig, PerformanceCriteria
from ..core.models import (
    ContentPriority,
    Opportunity,
    Product,
    ProductionTier,
    RawProduct,
    ScoreBreakdown,
    utcnow,
)
from ..core.observability import kernel_span
from ..core.store import KIND_OPPORTUNITY, KIND_PRODUCT, RecordStore
from .catalog import (
    CatalogProvider,
    categorize_product,
    normalize_product_name,
    parse_number,
    parse_percentage,
    parse_price,
    parse_rating,
)

logger = logging.getLogger(__name__)

KERNEL_NAMESPACE = uuid.UUID("6f1c1f64-8d4b-4a43-9a55-0c5e5d7f3b21")


# ============================================================================
# Weight Presets and keyword tables
# ============================================================================

OPPORTUNITY_WEIGHTS: Dict[str, float] = {
    "profit_potential": 0.25,
    "viral_indicators": 0.20,
    "market_opportunity": 0.20,
    "trend_momentum": 0.15,
    "content_angles": 0.10,
    "conversion_likelihood": 0.10,
}

VIRAL_KEYWORDS = [
    'viral', 'trending', 'tiktok famous', 'went viral',
    "everyone's buying", 'sold out', 'must have',
    'life changing', 'game changer', 'mind blown',
    'secret', 'hidden', 'banned', 'suppressed',
]

CONTROVERSY_KEYWORDS = [
    'secret', 'hidden', 'banned', 'suppressed', 'forbidden',
    'ancient', 'underground', 'conspiracy', 'truth', 'exposed',
    'doctors hate', 'industry', 'big pharma', 'government',
]

HIGH_APPEAL_CATEGORIES = ['beauty', 'health', 'tech', 'fitness']

PRIORITY_THRESHOLDS = [
    (0.90, ContentPriority.URGENT),
    (0.80, ContentPriority.HIGH),
    (0.70, ContentPriority.MEDIUM),
]

HUMAN_AVATAR_PRIORITIES = (ContentPriority.URGENT, ContentPriority.HIGH)

TARGET_AUDIENCES = {
    'beauty': 'Women 18-35, skincare enthusiasts',
    'health': 'Health-conscious 25-50, wellness seekers',
    'fitness': 'Fitness enthusiasts 20-40, gym-goers',
    'tech': 'Tech lovers 18-45, early adopters',
    'home': 'Homeowners 25-55, organization lovers',
}


def detect_viral_indicators(text: str) -> List[str]:
    text = text.lower()
    return [keyword for keyword in VIRAL_KEYWORDS if keyword in text]


def controversy_potential(text: str) -> float:
    text = text.lower()
    hits = sum(1 for keyword in CONTROVERSY_KEYWORDS if keyword in text)
    return min(1.0, hits * 0.2)


def _clip(value: float) -> float:
    return max(0.0, min(1.0, value))


def _signal_text(product: Product) -> str:
    return f"{product.name} {product.description}"


# ============================================================================
# Scorer Interface
# ============================================================================

class OpportunitySubScorer(ABC):
    """Base class for opportunity sub-scorers.

    Each scorer implements score(product) -> float in [0.0, 1.0] and is
    stateless, so scoring stays deterministic.
    """
    name: str

    @abstractmethod
    def score(self, product: Product) -> float:
        ...


class ProfitPotentialScorer(OpportunitySubScorer):
    """$50 or more commission per sale scores 1.0."""
    name = "profit_potential"

    def score(self, product: Product) -> float:
        return min(1.0, (product.profit_per_sale or 0.0) / 50.0)


class ViralIndicatorsScorer(OpportunitySubScorer):
    """Five or more viral keywords in the name or description score 1.0."""
    name = "viral_indicators"

    def score(self, product: Product) -> float:
        return min(1.0, len(detect_viral_indicators(_signal_text(product))) / 5.0)


class MarketOpportunityScorer(OpportunitySubScorer):
    """Competition level and monthly sales band."""
    name = "market_opportunity"

    def score(self, product: Product) -> float:
        score = 0.5

        if product.competition_level:
            level = product.competition_level.lower()
            if 'low' in level:
                score += 0.3
            elif 'medium' in level:
                score += 0.1
            elif 'high' in level:
                score -= 0.2

        monthly_sales = product.monthly_sales or 0
        if monthly_sales:
            if 5000 <= monthly_sales <= 25000:
                score += 0.2
            elif 1000 <= monthly_sales < 5000:
                score += 0.3
            elif monthly_sales > 25000:
                score -= 0.1

        return _clip(score)


class TrendMomentumScorer(OpportunitySubScorer):
    """Growth rate plus the provider's trend score."""
    name = "trend_momentum"

    def score(self, product: Product) -> float:
        score = 0.5

        growth_rate = product.growth_rate or 0
        if growth_rate:
            if growth_rate > 20:
                score += 0.4
            elif growth_rate > 10:
                score += 0.2
            elif growth_rate < -10:
                score -= 0.3

        if product.trend_score:
            score += min(0.3, product.trend_score / 100.0 * 0.3)

        return _clip(score)


class ContentAnglesScorer(OpportunitySubScorer):
    """Controversy keywords give content angles, 0.2 each."""
    name = "content_angles"

    def score(self, product: Product) -> float:
        return controversy_potential(_signal_text(product))


class ConversionLikelihoodScorer(OpportunitySubScorer):
    """Price band, rating and category appeal."""
    name = "conversion_likelihood"

    def __init__(self, preferred_categories: Optional[Sequence[str]] = None):
        if preferred_categories is None:
            preferred_categories = HIGH_APPEAL_CATEGORIES
        self.preferred_categories = [c.lower() for c in preferred_categories]

    def score(self, product: Product) -> float:
        score = 0.5

        price = product.price or 0
        if price:
            if 15 <= price <= 40:
                score += 0.3
            elif 40 < price <= 80:
                score += 0.1
            elif price > 100:
                score -= 0.2

        rating = product.rating or 0
        if rating:
            if rating >= 4.7:
                score += 0.2
            elif rating >= 4.5:
                score += 0.1
            elif rating < 4.0:
                score -= 0.2

        if product.category and product.category.lower() in self.preferred_categories:
            score += 0.1

        return _clip(score)


def default_sub_scorers(criteria: Optional[PerformanceCriteria] = None) -> List[OpportunitySubScorer]:
    """The six standard sub-scorers; category appeal follows criteria.preferred_categories."""
    preferred = criteria.preferred_categories if criteria is not None else None
    return [
        ProfitPotentialScorer(),
        ViralIndicatorsScorer(),
        MarketOpportunityScorer(),
        TrendMomentumScorer(),
        ContentAnglesScorer(),
        ConversionLikelihoodScorer(preferred),
    ]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ScoringDiagnostics:
    """Counts of what happened to records during a run."""
    records_received: int = 0
    products_merged: int = 0
    dropped_missing_name: int = 0
    dropped_missing_price: int = 0
    invalid_records: int = 0
    filtered: Dict[str, int] = field(default_factory=dict)
    provider_failures: Dict[str, str] = field(default_factory=dict)
    scored: int = 0

    def reject(self, reason: str) -> None:
        self.filtered[reason] = self.filtered.get(reason, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records_received": self.records_received,
            "products_merged": self.products_merged,
            "dropped_missing_name": self.dropped_missing_name,
            "dropped_missing_price": self.dropped_missing_price,
            "invalid_records": self.invalid_records,
            "filtered": dict(self.filtered),
            "provider_failures": dict(self.provider_failures),
            "scored": self.scored,
        }


@dataclass
class ScoringRun:
    """Result of one scoring run, ranked best first."""
    opportunities: List[Opportunity]
    products: Dict[str, Product]
    diagnostics: ScoringDiagnostics
    criteria: PerformanceCriteria
    scored_at: datetime = field(default_factory=utcnow)

    def category_breakdown(self) -> Dict[str, Dict[str, Any]]:
        breakdown: Dict[str, Dict[str, Any]] = {}
        for opp in self.opportunities:
            entry = breakdown.setdefault(opp.category, {"count": 0, "avg_score": 0.0, "top_product": None})
            entry["count"] += 1
            entry["avg_score"] += opp.score
            # opportunities are ranked, so the first seen is the top product
            if entry["top_product"] is None:
                entry["top_product"] = opp.product_name

        for entry in breakdown.values():
            entry["avg_score"] = entry["avg_score"] / entry["count"]
        return breakdown

    def scoring_summary(self) -> Dict[str, Any]:
        scores = [opp.score for opp in self.opportunities]
        if not scores:
            return {
                "highest_score": 0.0,
                "lowest_score": 0.0,
                "average_score": 0.0,
                "products_above_80": 0,
                "products_above_60": 0,
            }
        return {
            "highest_score": max(scores),
            "lowest_score": min(scores),
            "average_score": sum(scores) / len(scores),
            "products_above_80": sum(1 for s in scores if s >= 0.8),
            "products_above_60": sum(1 for s in scores if s >= 0.6),
        }

    def report(self, top: int = 10) -> Dict[str, Any]:
        return {
            "analysis_timestamp": self.scored_at.isoformat(),
            "criteria_used": vars(self.criteria),
            "total_products_analyzed": len(self.opportunities),
            "top_opportunities": [opp.model_dump(mode="json") for opp in self.opportunities[:top]],
            "category_breakdown": self.category_breakdown(),
            "scoring_summary": self.scoring_summary(),
            "diagnostics": self.diagnostics.to_dict(),
        }


# ============================================================================
# Merge and filter
# ============================================================================

def _product_id(merge_key: str) -> str:
    return str(uuid.uuid5(KERNEL_NAMESPACE, f"product:{merge_key}"))


def _opportunity_id(merge_key: str) -> str:
    return str(uuid.uuid5(KERNEL_NAMESPACE, f"opportunity:{merge_key}"))


def _parse_record(record: RawProduct) -> Dict[str, Any]:
    return {
        "name": record.name,
        "price": parse_price(record.price),
        "commission": parse_percentage(record.commission),
        "rating": parse_rating(record.rating),
        "sales_count": parse_number(record.sales),
        "monthly_sales": parse_number(record.monthly_sales),
        "revenue": parse_price(record.revenue),
        "growth_rate": parse_percentage(record.growth_rate),
        "competition_level": record.competition_level,
        "trend_score": parse_number(record.trend_score),
        "top_creators": parse_number(record.top_creators),
        "category": record.category.lower() if record.category else None,
        "description": record.description,
        "ingredients": record.ingredients,
        "link": record.link,
        "scraped_at": record.scraped_at,
    }


def merge_records(records: Sequence[RawProduct], diagnostics: Optional[ScoringDiagnostics] = None) -> List[Product]:
    """
    Fuse raw records by merge key.

    The first record for a key seeds the product; later records only fill
    fields that are still unset. Records without a name, merged products
    without a price and products that fail validation are dropped and
    counted in diagnostics.

    Returns:
        Products in first-seen order
    """
    diagnostics = diagnostics if diagnostics is not None else ScoringDiagnostics()
    merged: Dict[str, Dict[str, Any]] = {}

    for record in records:
        diagnostics.records_received += 1
        merge_key = normalize_product_name(record.name)
        if not merge_key:
            diagnostics.dropped_missing_name += 1
            logger.debug(f"Dropping {record.provider} record without a name")
            continue

        parsed = _parse_record(record)
        if merge_key not in merged:
            parsed["source_set"] = [record.provider]
            parsed["source_ids"] = {record.provider: record.id} if record.id else {}
            merged[merge_key] = parsed
            continue

        fields = merged[merge_key]
        for name, value in parsed.items():
            if fields.get(name) is None and value is not None:
                fields[name] = value
        if record.id:
            fields["source_ids"].setdefault(record.provider, record.id)
        if record.provider not in fields["source_set"]:
            fields["source_set"].append(record.provider)

    products = []
    for merge_key, fields in merged.items():
        if fields["price"] is None:
            diagnostics.dropped_missing_price += 1
            logger.debug(f"Dropping '{fields['name']}': no price from {fields['source_set']}")
            continue

        try:
            product = Product(
                id=_product_id(merge_key),
                name=fields["name"],
                merge_key=merge_key,
                category=fields["category"] or categorize_product(fields["name"]),
                description=fields["description"] or "",
                ingredients=fields["ingredients"] or "",
                price=fields["price"],
                commission=fields["commission"] or 0.0,
                rating=fields["rating"] or 0.0,
                monthly_sales=fields["monthly_sales"],
                sales_count=fields["sales_count"] or 0,
                revenue=fields["revenue"],
                growth_rate=fields["growth_rate"],
                competition_level=fields["competition_level"],
                trend_score=fields["trend_score"] or 0,
                top_creators=fields["top_creators"],
                link=fields["link"],
                source_set=fields["source_set"],
                source_ids=fields["source_ids"],
                scraped_at=fields["scraped_at"],
            )
        except ValidationError as e:
            diagnostics.invalid_records += 1
            logger.warning(f"Dropping invalid product '{fields['name']}': {e.error_count()} errors")
            continue

        products.append(product)

    diagnostics.products_merged = len(products)
    return products


def filter_reason(product: Product, criteria: PerformanceCriteria) -> Optional[str]:
    """
    Check a product against the criteria.

    Each criterion only applies when the product carries the field.

    Returns:
        The first failed criterion, or None when the product qualifies
    """
    if product.price > criteria.max_price:
        return "price_above_max"

    if product.commission and product.commission < criteria.min_commission:
        return "commission_below_min"

    if product.rating and product.rating < criteria.min_rating:
        return "rating_below_min"

    if product.monthly_sales:
        if not (criteria.min_monthly_sales <= product.monthly_sales <= criteria.max_monthly_sales):
            return "monthly_sales_out_of_band"

    profit = product.profit_per_sale
    if profit and profit < criteria.min_profit_per_sale:
        return "profit_below_min"

    if any(keyword in product.merge_key for keyword in criteria.blacklisted_keywords):
        return "blacklisted_keyword"

    return None


def priority_for_score(score: float) -> ContentPriority:
    """Inclusive thresholds: 0.90 urgent, 0.80 high, 0.70 medium."""
    score = round(score, 9)
    for threshold, priority in PRIORITY_THRESHOLDS:
        if score >= threshold:
            return priority
    return ContentPriority.LOW


def recommendation_for_score(score: float) -> str:
    if score >= 0.8:
        return "IMMEDIATE OPPORTUNITY - Create content ASAP"
    elif score >= 0.6:
        return "HIGH POTENTIAL - Strong candidate for content creation"
    elif score >= 0.4:
        return "MODERATE POTENTIAL - Consider if matches your niche"
    return "LOW PRIORITY - Better opportunities available"


def content_angles_for(product: Product) -> List[str]:
    name = product.name
    angles = []

    if product.category == 'beauty':
        angles.extend([
            f"I tested {name} for 30 days - shocking results",
            f"Why beauty brands don't want you to know about {name}",
            f"The {name} that changed my skin forever",
        ])
    elif product.category == 'health':
        angles.extend([
            f"Doctors don't want you to know about {name}",
            f"The {name} that Big Pharma tried to suppress",
            f"Ancient secret: {name} revealed",
        ])
    elif product.category == 'tech':
        angles.extend([
            f"Big Tech tried to hide {name}",
            f"The {name} Apple doesn't want you to have",
            f"Why tech companies fear {name}",
        ])

    angles.extend([
        f"You weren't meant to know about {name}",
        f"The truth about {name} will shock you",
        f"Everyone's buying {name} except you",
    ])
    return angles[:5]


def target_audience_for(product: Product) -> str:
    audience = TARGET_AUDIENCES.get(product.category, 'General audience 18-45')
    if product.price > 50:
        audience += ', higher income'
    elif product.price < 20:
        audience += ', budget-conscious'
    return audience


def estimate_ctr(product: Product, viral_count: int, controversy: float) -> float:
    ctr = 0.03 + viral_count * 0.005 + controversy * 0.02
    if 15 <= product.price <= 40:
        ctr += 0.01
    return min(0.15, ctr)


def market_saturation_for(product: Product) -> str:
    monthly_sales = product.monthly_sales or 0
    competition = (product.competition_level or '').lower()

    if 'high' in competition or monthly_sales > 30000:
        return 'High'
    elif 'medium' in competition or 10000 <= monthly_sales <= 30000:
        return 'Medium'
    return 'Low'


# ============================================================================
# Scorer
# ============================================================================

class OpportunityScorer:
    """
    Ranks products and recommends a production tier.

    The HUMAN_AVATAR budget counter lives in the store so every scorer
    instance in the process draws from the same monthly allowance.
    """

    def __init__(
        self,
        config: Optional[KernelConfig] = None,
        store: Optional[RecordStore] = None,
        scorers: Optional[List[OpportunitySubScorer]] = None,
        weights: Optional[Dict[str, float]] = None
    ):
        self.config = config or KernelConfig()
        self.store = store
        self.scorers = scorers or default_sub_scorers(self.criteria)
        self.weights = weights or OPPORTUNITY_WEIGHTS

        if abs(sum(self.weights.values()) - 1.0) > 1e-9:
            raise ValueError(f"Opportunity weights must sum to 1.0, got {sum(self.weights.values()):.4f}")
        missing = [s.name for s in self.scorers if s.name not in self.weights]
        if missing:
            raise ValueError(f"No weight for scorers: {', '.join(missing)}")

    @property
    def criteria(self) -> PerformanceCriteria:
        return self.config.performance_criteria

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    async def collect(
        self,
        providers: Sequence[CatalogProvider],
        category: Optional[str] = None,
        limit: int = 50,
        diagnostics: Optional[ScoringDiagnostics] = None
    ) -> List[RawProduct]:
        """
        Gather records from providers in order.

        A provider that raises is skipped and its error recorded in
        diagnostics.provider_failures.
        """
        records: List[RawProduct] = []
        for provider in providers:
            try:
                fetched = await provider.list(category=category, limit=limit)
            except Exception as e:
                logger.warning(f"Catalog provider {provider.name} failed, skipping: {e}")
                if diagnostics is not None:
                    diagnostics.provider_failures[provider.name] = str(e)
                continue

            logger.info(f"Collected {len(fetched)} records from {provider.name}")
            records.extend(fetched)
        return records

    # ------------------------------------------------------------------
    # Pure scoring
    # ------------------------------------------------------------------

    def score_product(self, product: Product) -> Opportunity:
        """Score one product. Pure; recommended_tier ignores the budget."""
        subs = {scorer.name: scorer.score(product) for scorer in self.scorers}
        breakdown = ScoreBreakdown(**subs)
        score = _clip(sum(self.weights[name] * value for name, value in subs.items()))
        priority = priority_for_score(score)

        viral_indicators = detect_viral_indicators(_signal_text(product))
        controversy = controversy_potential(_signal_text(product))

        return Opportunity(
            id=_opportunity_id(product.merge_key),
            product_id=product.id,
            product_name=product.name,
            category=product.category,
            price=product.price,
            score=score,
            score_breakdown=breakdown,
            recommended_tier=self.eligible_tier(product.category, priority),
            priority=priority,
            recommendation=recommendation_for_score(score),
            viral_indicators=viral_indicators,
            content_angles=content_angles_for(product),
            target_audience=target_audience_for(product),
            estimated_ctr=estimate_ctr(product, len(viral_indicators), controversy),
            market_saturation=market_saturation_for(product),
        )

    def eligible_tier(self, category: str, priority: ContentPriority) -> ProductionTier:
        trust = [c.lower() for c in self.config.tier_budget.trust_categories]
        if category.lower() in trust and priority in HUMAN_AVATAR_PRIORITIES:
            return ProductionTier.HUMAN_AVATAR
        return ProductionTier.IMAGE_MONTAGE

    def rank(self, records: Sequence[RawProduct], diagnostics: Optional[ScoringDiagnostics] = None) -> ScoringRun:
        """
        Merge, filter, score and sort records. Pure.

        Returns:
            ScoringRun with opportunities best first
        """
        diagnostics = diagnostics if diagnostics is not None else ScoringDiagnostics()
        products = merge_records(records, diagnostics)

        qualifying: Dict[str, Product] = {}
        for product in products:
            reason = filter_reason(product, self.criteria)
            if reason:
                diagnostics.reject(reason)
                logger.debug(f"Filtered '{product.name}': {reason}")
                continue
            qualifying[product.id] = product

        opportunities = [self.score_product(p) for p in qualifying.values()]
        opportunities.sort(key=lambda o: (
            -o.score,
            -o.score_breakdown.trend_momentum,
            o.price,
            o.product_name,
        ))
        diagnostics.scored = len(opportunities)

        return ScoringRun(
            opportunities=opportunities,
            products=qualifying,
            diagnostics=diagnostics,
            criteria=self.criteria,
        )

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    @staticmethod
    def budget_key(now: datetime) -> str:
        return f"human_avatar:{now:%Y-%m}"

    def assign_tiers(self, opportunities: List[Opportunity], now: Optional[datetime] = None) -> List[Opportunity]:
        """
        Reserve HUMAN_AVATAR budget for eligible opportunities in rank order.

        Once the month's budget is spent every remaining opportunity falls
        back to IMAGE_MONTAGE.
        """
        if self.store is None:
            raise ValueError("assign_tiers requires a record store for the budget counter")

        now = now or utcnow()
        key = self.budget_key(now)
        limit = self.config.tier_budget.monthly_human_avatar_limit

        assigned = []
        for opp in opportunities:
            if opp.recommended_tier == ProductionTier.HUMAN_AVATAR:
                if self.store.increment_counter(key, limit) is None:
                    logger.info(f"HUMAN_AVATAR budget exhausted for {now:%Y-%m}, '{opp.product_name}' -> IMAGE_MONTAGE")
                    opp = opp.model_copy(update={"recommended_tier": ProductionTier.IMAGE_MONTAGE})
            assigned.append(opp)
        return assigned

    def budget_status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        limit = self.config.tier_budget.monthly_human_avatar_limit
        used = self.store.get_counter(self.budget_key(now)) if self.store else 0

        month_opportunities = 0
        if self.store is not None:
            month_opportunities = self.store.count(
                KIND_OPPORTUNITY,
                lambda o: (o.scored_at.year, o.scored_at.month) == (now.year, now.month)
            )

        return {
            "month": f"{now:%Y-%m}",
            "used": used,
            "limit": limit,
            "remaining": max(0, limit - used),
            "target_ratio": self.config.tier_budget.target_human_avatar_ratio,
            "actual_ratio": used / month_opportunities if month_opportunities else 0.0,
        }

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def score_records(self, records: Sequence[RawProduct], now: Optional[datetime] = None,
                      diagnostics: Optional[ScoringDiagnostics] = None) -> ScoringRun:
        """Rank records, assign tiers against the budget and persist the run."""
        with kernel_span("score_products", records=len(records)):
            run = self.rank(records, diagnostics)
            if self.store is None:
                return run

            run.opportunities = self.assign_tiers(run.opportunities, now)
            for product in run.products.values():
                self.store.put(KIND_PRODUCT, product)
            for opp in run.opportunities:
                self.store.put(KIND_OPPORTUNITY, opp)

        top = f"{run.opportunities[0].score:.2f}" if run.opportunities else "N/A"
        logger.info(f"Scored {len(run.opportunities)} opportunities from {len(records)} records (top: {top})")
        return run

    async def score(
        self,
        providers: Sequence[CatalogProvider],
        category: Optional[str] = None,
        limit: int = 50,
        now: Optional[datetime] = None
    ) -> ScoringRun:
        """Collect from providers and score the result."""
        diagnostics = ScoringDiagnostics()
        records = await self.collect(providers, category, limit, diagnostics)
        return self.score_records(records, now, diagnostics)
