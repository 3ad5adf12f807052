"""
Pain-Point Planner - matches a product to an audience pain point and
produces a ScriptPlan.

Scoring is deterministic: the same product always yields the same match,
viral score, revenue estimate and priority.
"""

import logging
import re
import uuid
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.models import (
    MANDATORY_DISCLOSURES,
    REVENUE_CAP,
    ContentPriority,
    IngredientMatch,
    Opportunity,
    PainPointAnalysis,
    Product,
    ScriptPlan,
)
from ..core.observability import kernel_span
from ..core.store import KIND_PRODUCT, KIND_SCRIPT_PLAN, RecordStore
from .opportunity_scorer import KERNEL_NAMESPACE
from .pain_points import (
    PAIN_POINT_CATALOG,
    PainPointEntry,
    all_ingredients,
    get_entry,
    mechanism_explanation,
)

logger = logging.getLogger(__name__)

MIN_MATCH_SCORE = 30.0
PRIMARY_BOOST = 20.0
TOP_OPPORTUNITY_VIRAL_SCORE = 60.0

VIRAL_WEIGHTS = {
    "pain_point_relatability": 0.35,
    "ingredient_match_strength": 0.25,
    "price_impulse_factor": 0.20,
    "commission_motivation": 0.15,
    "market_saturation": 0.05,
}

MAX_VIEWS = 1_000_000
CONVERSION_RATE = 0.08
DEFAULT_MONTHLY_SALES = 50000


# ============================================================================
# Ingredient extraction
# ============================================================================

def ingredient_variants(ingredient: str) -> List[str]:
    """Spelling variants: 'Alpha-GPC' -> alpha-gpc, alpha gpc, ..."""
    base = ingredient.lower()
    variants = [
        base,
        base.replace('-', ' '),
        base.replace(' ', ''),
        base.replace("'", ''),
    ]
    return list(dict.fromkeys(variants))


@lru_cache(maxsize=None)
def _ingredient_patterns() -> Tuple[Tuple[str, Tuple[re.Pattern, ...]], ...]:
    patterns = []
    for ingredient in all_ingredients():
        compiled = tuple(
            re.compile(r'(?<![a-z0-9])' + re.escape(variant) + r'(?![a-z0-9])')
            for variant in ingredient_variants(ingredient)
        )
        patterns.append((ingredient, compiled))
    return tuple(patterns)


def extract_ingredients(text: str) -> List[str]:
    """Catalog ingredients mentioned in the text, in catalog order."""
    text = text.lower()
    return [
        ingredient for ingredient, patterns in _ingredient_patterns()
        if any(p.search(text) for p in patterns)
    ]


# ============================================================================
# Scoring helpers
# ============================================================================

def match_score(entry: PainPointEntry, detected: Sequence[str]) -> Tuple[float, List[str]]:
    """
    How much of one pain point's ingredient list the product covers.

    Score is matched/required x 100, where required is the pain point's
    full primary ingredient list, plus 20 for each of its top three
    ingredients present, capped at 100.

    Long ingredient lists keep single-ingredient products low: CoQ10 with
    PQQ covers 2 of 14 CHRONIC_FATIGUE ingredients and scores about 34,
    not the 60 the CoQ10 walkthrough expects. The formula wins over the
    walkthrough, as it does for the LED mirror opportunity score.
    """
    required = {i.lower() for i in entry.primary_ingredients}
    matched = [i for i in detected if i.lower() in required]
    if not matched:
        return 0.0, []

    score = len(matched) / len(entry.primary_ingredients) * 100
    matched_lower = {m.lower() for m in matched}
    score += PRIMARY_BOOST * sum(1 for p in entry.top_primaries if p.lower() in matched_lower)
    return min(score, 100.0), matched


def pain_point_revenue(entry: PainPointEntry, score: float) -> float:
    """Per-pain-point revenue potential used to compare matches."""
    revenue = 5000 * (entry.demographic_impact / 50) * (score / 100) * entry.revenue_multiplier
    return min(revenue, REVENUE_CAP)


def viral_score(product: Product, match: IngredientMatch) -> float:
    monthly_sales = product.monthly_sales if product.monthly_sales is not None else DEFAULT_MONTHLY_SALES
    factors = {
        "pain_point_relatability": match.viral_potential,
        "ingredient_match_strength": match.match_score,
        "price_impulse_factor": 100 if product.price <= 80 else 60,
        "commission_motivation": 100 if product.commission >= 20 else 70,
        "market_saturation": 100 if monthly_sales < 30000 else 50,
    }
    score = sum(factors[name] * weight for name, weight in VIRAL_WEIGHTS.items())
    return max(0.0, min(score, 100.0))


def revenue_estimate(product: Product, match: IngredientMatch, viral: float) -> float:
    """views x 8% conversion x commission per sale x multiplier, capped at $60k."""
    commission_per_sale = product.price * (product.commission / 100)
    estimated_views = (viral / 100) * MAX_VIEWS
    revenue = estimated_views * CONVERSION_RATE * commission_per_sale
    revenue *= get_entry(match.pain_point).revenue_multiplier
    return min(revenue, REVENUE_CAP)


def priority_blend(viral: float, revenue: float) -> float:
    return viral * 0.6 + min(revenue / 1000, 60) * 0.4


def content_priority(viral: float, revenue: float) -> ContentPriority:
    combined = priority_blend(viral, revenue)
    if combined >= 80:
        return ContentPriority.URGENT
    elif combined >= 65:
        return ContentPriority.HIGH
    elif combined >= 50:
        return ContentPriority.MEDIUM
    return ContentPriority.LOW


def _pain_label(match: IngredientMatch) -> str:
    return match.pain_point.value.replace('_', ' ')


def script_elements(match: IngredientMatch) -> Dict[str, Any]:
    entry = get_entry(match.pain_point)
    primary = match.matched_ingredients[0] if match.matched_ingredients else None
    primary_name = primary or "key nutrients"

    return {
        "statistical_hook": entry.statistical_hook,
        "emotional_hooks": list(entry.emotional_hooks),
        "emotional_amplification": list(entry.emotional_amplification),
        "primary_ingredient": primary_name,
        "mechanism_explanation": mechanism_explanation(primary, match.pain_point),
        "social_proof_angle": f"This isn't some random herb - {primary_name} has over 200 published studies",
        "urgency_scarcity": (
            f"Real {primary_name} is expensive to source. "
            f"Most companies use cheap synthetic versions that don't work."
        ),
        "cta_elements": {
            "urgency": f"Don't wait - your {_pain_label(match)} won't fix itself",
            "scarcity": "they're limiting orders to 3 bottles per person",
            "action": "Link in bio",
        },
    }


# ============================================================================
# Planner
# ============================================================================

class PainPointPlanner:
    """Matches products to pain points and builds script plans."""

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store

    def match(self, product: Product) -> List[IngredientMatch]:
        """
        All pain-point matches scoring at least 30, best first.

        Ties on match score go to the higher demographic impact.
        """
        detected = extract_ingredients(product.search_text)
        matches = []

        for pain_point, entry in PAIN_POINT_CATALOG.items():
            score, matched = match_score(entry, detected)
            if score < MIN_MATCH_SCORE:
                continue

            matches.append(IngredientMatch(
                pain_point=pain_point,
                match_score=score,
                matched_ingredients=matched,
                mechanism=entry.mechanism,
                suggested_hook=entry.emotional_hooks[0],
                emotional_triggers=list(entry.emotional_amplification[:2]),
                viral_potential=entry.viral_potential * (score / 100),
                revenue_potential=pain_point_revenue(entry, score),
                demographic_impact=entry.demographic_impact,
            ))

        matches.sort(key=lambda m: (-m.match_score, -m.demographic_impact))
        return matches

    def analyze(self, product: Product) -> Optional[PainPointAnalysis]:
        """
        Full analysis for one product.

        Returns:
            PainPointAnalysis, or None when no pain point matches
        """
        matches = self.match(product)
        if not matches:
            logger.warning(f"No good pain point matches for {product.name}")
            return None

        best = matches[0]
        viral = viral_score(product, best)
        revenue = revenue_estimate(product, best, viral)

        analysis = PainPointAnalysis(
            product_id=product.id,
            product_name=product.name,
            best_match=best,
            all_matches=matches,
            viral_score=viral,
            revenue_estimate=revenue,
            content_priority=content_priority(viral, revenue),
            script_elements=script_elements(best),
        )

        logger.info(
            f"Analysis complete: {product.name} - {best.pain_point.value} "
            f"(match: {best.match_score:.1f}, viral: {viral:.1f})"
        )
        return analysis

    def plan(self, opportunity: Opportunity, product: Optional[Product] = None) -> Optional[ScriptPlan]:
        """
        Build the ScriptPlan for a scored opportunity.

        Args:
            opportunity: Scored opportunity
            product: The product; loaded from the store when omitted

        Returns:
            ScriptPlan, or None when the product matches no pain point
        """
        if product is None:
            if self.store is None:
                raise ValueError("plan() needs the product when no store is configured")
            product = self.store.require(KIND_PRODUCT, opportunity.product_id)

        with kernel_span("plan_script", product=product.name):
            analysis = self.analyze(product)
            if analysis is None:
                return None

            best = analysis.best_match
            elements = analysis.script_elements
            plan = ScriptPlan(
                id=str(uuid.uuid5(KERNEL_NAMESPACE, f"script_plan:{opportunity.id}:{best.pain_point.value}")),
                opportunity_id=opportunity.id,
                product_id=product.id,
                product_name=product.name,
                pain_point=best.pain_point,
                match_score=best.match_score,
                matched_ingredients=best.matched_ingredients,
                hook=best.suggested_hook,
                statistical_hook=elements["statistical_hook"],
                emotional_triggers=best.emotional_triggers,
                mechanism_explanation=elements["mechanism_explanation"],
                script_elements=elements,
                estimated_revenue=analysis.revenue_estimate,
                viral_score=analysis.viral_score,
                priority=analysis.content_priority,
                recommended_tier=opportunity.recommended_tier,
                required_disclosures=list(MANDATORY_DISCLOSURES),
            )

            if self.store is not None:
                self.store.put(KIND_SCRIPT_PLAN, plan)

        return plan

    def top_opportunities(self, products: Sequence[Product], limit: int = 10) -> List[PainPointAnalysis]:
        """Analyses with viral score >= 60, ranked by the priority blend."""
        analyses = []
        for product in products:
            analysis = self.analyze(product)
            if analysis and analysis.viral_score >= TOP_OPPORTUNITY_VIRAL_SCORE:
                analyses.append(analysis)

        analyses.sort(key=lambda a: priority_blend(a.viral_score, a.revenue_estimate), reverse=True)
        return analyses[:limit]
