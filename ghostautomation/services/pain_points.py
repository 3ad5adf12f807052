"""
Pain-point catalog: seven audience health complaints with their ingredient
sets, hooks and economics. Read-only and shared by every planner.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..core.models import PainPoint


@dataclass(frozen=True)
class PainPointEntry:
    """Catalog data for one pain point."""
    pain_point: PainPoint
    primary_ingredients: Tuple[str, ...]
    mechanism: str
    statistical_hook: str
    emotional_hooks: Tuple[str, ...]
    emotional_amplification: Tuple[str, ...]
    specificity: str
    demographic_impact: int
    viral_potential: float
    revenue_multiplier: float

    @property
    def top_primaries(self) -> Tuple[str, ...]:
        """The three most important ingredients."""
        return self.primary_ingredients[:3]


PAIN_POINT_CATALOG: Dict[PainPoint, PainPointEntry] = {
    PainPoint.CHRONIC_FATIGUE: PainPointEntry(
        pain_point=PainPoint.CHRONIC_FATIGUE,
        primary_ingredients=(
            "CoQ10", "B-Complex", "Iron", "Vitamin D3", "Rhodiola Rosea",
            "Cordyceps", "NAD+", "PQQ", "Ribose", "Magnesium", "B12",
            "Adaptogens", "Ginseng", "Ashwagandha",
        ),
        mechanism="mitochondrial_energy_production",
        statistical_hook="73% of Americans are exhausted by 2pm every single day",
        emotional_hooks=(
            "Why are 80% of Americans exhausted by 2pm every day?",
            "Your ancestors worked 12-hour days and weren't this tired",
            "This is why you're more tired than your grandparents ever were",
            "The energy crisis isn't just about gas prices",
        ),
        emotional_amplification=(
            "You're drinking 3 cups of coffee just to feel human",
            "You're canceling plans because you're too exhausted to socialize",
            "Your kids think you're lazy but you're actually dying inside",
            "You feel guilty for being tired when you 'should' have energy",
        ),
        specificity="corporate_exhaustion_epidemic",
        demographic_impact=73,
        viral_potential=95,
        revenue_multiplier=1.4,
    ),
    PainPoint.SLEEP_EPIDEMIC: PainPointEntry(
        pain_point=PainPoint.SLEEP_EPIDEMIC,
        primary_ingredients=(
            "Magnesium Glycinate", "L-Theanine", "GABA", "Melatonin",
            "Valerian Root", "Passionflower", "Ashwagandha", "Glycine",
            "Chamomile", "5-HTP", "Tart Cherry", "Lemon Balm",
        ),
        mechanism="nervous_system_calm_cortisol_reduction",
        statistical_hook="68% of Americans can't fall asleep naturally anymore",
        emotional_hooks=(
            "70% of Americans can't sleep naturally anymore - here's why",
            "Your phone isn't the only thing keeping you awake",
            "This is what 60 years of processed food did to your sleep",
            "Why melatonin stopped working for you",
        ),
        emotional_amplification=(
            "You're lying awake replaying every mistake you've ever made",
            "You're too wired to sleep but too tired to function",
            "You dread bedtime because you know you'll just stare at the ceiling",
            "You wake up more tired than when you went to bed",
        ),
        specificity="stress_cortisol_epidemic",
        demographic_impact=68,
        viral_potential=92,
        revenue_multiplier=1.3,
    ),
    PainPoint.BRAIN_FOG_MEMORY: PainPointEntry(
        pain_point=PainPoint.BRAIN_FOG_MEMORY,
        primary_ingredients=(
            "Lion's Mane", "Alpha-GPC", "Phosphatidylserine", "Omega-3 DHA",
            "Bacopa Monnieri", "Ginkgo Biloba", "Huperzine A", "PQQ",
            "Acetyl-L-Carnitine", "Rhodiola", "MCT Oil", "Curcumin",
        ),
        mechanism="neuroplasticity_acetylcholine_brain_derived_neurotrophic_factor",
        statistical_hook="Over 40% of Americans under 40 have memory problems",
        emotional_hooks=(
            "Can't remember where you put your keys 5 minutes ago?",
            "Your brain isn't aging - it's being poisoned",
            "Why your focus is worse than a goldfish",
            "The cognitive decline epidemic they don't want you to know about",
        ),
        emotional_amplification=(
            "You feel stupid in meetings when you used to be sharp",
            "You can't finish sentences without forgetting what you were saying",
            "You're embarrassed by your memory in front of coworkers",
            "You feel like your intelligence is slipping away",
        ),
        specificity="digital_brain_damage",
        demographic_impact=42,
        viral_potential=88,
        revenue_multiplier=1.5,
    ),
    PainPoint.METABOLIC_DAMAGE: PainPointEntry(
        pain_point=PainPoint.METABOLIC_DAMAGE,
        primary_ingredients=(
            "Berberine", "Chromium", "Alpha Lipoic Acid", "Cinnamon Extract",
            "Green Tea EGCG", "Bitter Melon", "Gymnema Sylvestre", "Vanadium",
            "White Kidney Bean", "Forskolin", "CLA", "Green Coffee Bean",
        ),
        mechanism="insulin_sensitivity_glucose_metabolism_mitochondrial_function",
        statistical_hook="Only 12% of Americans have healthy metabolism",
        emotional_hooks=(
            "Why Americans gain weight eating the same calories as skinny Europeans",
            "Your metabolism was sabotaged before you were born",
            "This is why your grandma stayed thin eating butter and cream",
            "The real reason 73% of Americans are overweight",
        ),
        emotional_amplification=(
            "You're eating less than your thin friends but still gaining weight",
            "You avoid mirrors and photos of yourself",
            "You're buying bigger clothes every few months",
            "You feel betrayed by your own body",
        ),
        specificity="processed_food_metabolic_destruction",
        demographic_impact=88,
        viral_potential=94,
        revenue_multiplier=1.6,
    ),
    PainPoint.ANXIETY_DEPRESSION: PainPointEntry(
        pain_point=PainPoint.ANXIETY_DEPRESSION,
        primary_ingredients=(
            "Ashwagandha", "L-Theanine", "GABA", "Magnesium", "5-HTP",
            "SAM-e", "Rhodiola", "Holy Basil", "Lemon Balm", "Passionflower",
            "St. John's Wort", "Inositol", "Taurine",
        ),
        mechanism="cortisol_regulation_neurotransmitter_balance_HPA_axis",
        statistical_hook="Anxiety rates tripled in the last 20 years",
        emotional_hooks=(
            "Why anxiety and depression rates tripled in 20 years",
            "Your mental health crisis has a physical cause",
            "This deficiency is making 40% of Americans depressed",
            "Why therapy isn't fixing your anxiety",
        ),
        emotional_amplification=(
            "Your heart races over things that shouldn't matter",
            "You're avoiding situations you used to enjoy",
            "You feel like you're going crazy but all your tests are 'normal'",
            "You're exhausted from worrying about everything",
        ),
        specificity="stress_anxiety_epidemic",
        demographic_impact=45,
        viral_potential=90,
        revenue_multiplier=1.3,
    ),
    PainPoint.CHRONIC_INFLAMMATION: PainPointEntry(
        pain_point=PainPoint.CHRONIC_INFLAMMATION,
        primary_ingredients=(
            "Curcumin", "Omega-3 EPA", "Quercetin", "Resveratrol",
            "Boswellia", "Ginger", "Tart Cherry", "Green Tea EGCG",
            "Bromelain", "MSM", "Frankincense", "Black Pepper Extract",
        ),
        mechanism="inflammatory_pathway_inhibition_antioxidant_protection",
        statistical_hook="90% of American diseases are caused by chronic inflammation",
        emotional_hooks=(
            "This is in 90% of American foods and its slowly killing you",
            "Why your joints hurt more than your parents' did at your age",
            "The inflammation epidemic destroying American health",
            "Why young people have arthritis now",
        ),
        emotional_amplification=(
            "You wake up stiff and sore every morning",
            "Your joints ache when the weather changes",
            "You feel older than your age",
            "You're popping ibuprofen like candy",
        ),
        specificity="inflammatory_food_epidemic",
        demographic_impact=90,
        viral_potential=87,
        revenue_multiplier=1.2,
    ),
    PainPoint.HORMONAL_IMBALANCE: PainPointEntry(
        pain_point=PainPoint.HORMONAL_IMBALANCE,
        primary_ingredients=(
            "DIM", "Vitex", "Maca Root", "Ashwagandha", "Zinc",
            "Vitamin D3", "Magnesium", "Omega-3", "Evening Primrose",
            "Black Cohosh", "Red Clover", "DHEA", "Pregnenolone",
        ),
        mechanism="hormone_production_detoxification_endocrine_support",
        statistical_hook="80% of American women have hormonal imbalances",
        emotional_hooks=(
            "Why your hormones are more damaged than your grandparents ever were",
            "This is what birth control and processed food did to your hormones",
            "Why American women feel crazy during their cycles",
            "The endocrine disruption epidemic",
        ),
        emotional_amplification=(
            "You feel like a different person depending on the week",
            "Your mood swings are destroying your relationships",
            "You don't recognize yourself anymore",
            "You feel broken and unfixable",
        ),
        specificity="endocrine_disruption_epidemic",
        demographic_impact=75,
        viral_potential=85,
        revenue_multiplier=1.4,
    ),
}


# (ingredient, pain point) -> how the ingredient addresses it
MECHANISM_EXPLANATIONS: Dict[Tuple[str, PainPoint], str] = {
    ("CoQ10", PainPoint.CHRONIC_FATIGUE):
        "powers your cellular energy factories (mitochondria) that have been damaged by processed food and stress",
    ("Magnesium Glycinate", PainPoint.SLEEP_EPIDEMIC):
        "calms your overactive nervous system and reduces the cortisol keeping you wired at night",
    ("Lion's Mane", PainPoint.BRAIN_FOG_MEMORY):
        "regenerates brain cells and rebuilds the neural pathways damaged by inflammation",
    ("Berberine", PainPoint.METABOLIC_DAMAGE):
        "resets your insulin sensitivity and repairs the metabolic damage from decades of processed food",
    ("Ashwagandha", PainPoint.ANXIETY_DEPRESSION):
        "regulates cortisol and rebalances the stress hormones wreaking havoc on your mental health",
    ("Curcumin", PainPoint.CHRONIC_INFLAMMATION):
        "shuts down the inflammatory pathways causing 90% of American diseases",
    ("DIM", PainPoint.HORMONAL_IMBALANCE):
        "helps your liver detox excess estrogen and rebalance your hormones naturally",
}

GENERIC_MECHANISM = "supports your body's natural healing processes"


def get_entry(pain_point: PainPoint) -> PainPointEntry:
    return PAIN_POINT_CATALOG[pain_point]


def all_ingredients() -> List[str]:
    """Every catalog ingredient once, in catalog order."""
    seen: Dict[str, str] = {}
    for entry in PAIN_POINT_CATALOG.values():
        for ingredient in entry.primary_ingredients:
            seen.setdefault(ingredient.lower(), ingredient)
    return list(seen.values())


def mechanism_explanation(ingredient: Optional[str], pain_point: PainPoint) -> str:
    if ingredient is None:
        return GENERIC_MECHANISM
    return MECHANISM_EXPLANATIONS.get((ingredient, pain_point), GENERIC_MECHANISM)
