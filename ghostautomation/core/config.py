"""
Configuration management for Ghost Automation
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, List, Any
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration"""

    # Supabase
    SUPABASE_URL: str = os.getenv('SUPABASE_URL', '')
    SUPABASE_SERVICE_KEY: str = os.getenv('SUPABASE_SERVICE_KEY', '')

    # Anthropic (script generation, product enhancement)
    ANTHROPIC_API_KEY: str = os.getenv('ANTHROPIC_API_KEY', '')
    SCRIPT_MODEL: str = os.getenv('SCRIPT_MODEL', 'claude-sonnet-4-5-20250929')

    # ElevenLabs (voiceover)
    ELEVENLABS_API_KEY: str = os.getenv('ELEVENLABS_API_KEY', '')
    ELEVENLABS_VOICE_ID: str = os.getenv('ELEVENLABS_VOICE_ID', '')
    AUDIO_OUTPUT_DIR: str = os.getenv('AUDIO_OUTPUT_DIR', 'output/audio')

    # HeyGen (human avatar video)
    HEYGEN_API_KEY: str = os.getenv('HEYGEN_API_KEY', '')
    HEYGEN_AVATAR_ID: str = os.getenv('HEYGEN_AVATAR_ID', '')

    # Catalog provider HTTP endpoint
    CATALOG_API_URL: str = os.getenv('CATALOG_API_URL', '')
    CATALOG_API_KEY: str = os.getenv('CATALOG_API_KEY', '')

    # API auth (unset = development mode)
    GHOST_API_KEY: str = os.getenv('GHOST_API_KEY', '')

    # Kernel
    STORE_BACKEND: str = os.getenv('STORE_BACKEND', 'memory')
    KERNEL_CONFIG_PATH: str = os.getenv('KERNEL_CONFIG_PATH', '')

    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration"""
        required = {
            'SUPABASE_URL': cls.SUPABASE_URL,
            'SUPABASE_SERVICE_KEY': cls.SUPABASE_SERVICE_KEY,
        }

        missing = [k for k, v in required.items() if not v]

        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        return True

    @classmethod
    def get(cls, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get configuration value"""
        return getattr(cls, key, default)


# Kernel Configuration

DEFAULT_KERNEL_CONFIG_PATH = Path("config/kernel.yml")

MANDATORY_COMPLIANCE_CHECKS = [
    "uk_asa_advertising_disclosure",
    "traffic_quality_standards",
    "privacy_data_protection",
    "tiktok_affiliate_terms",
    "content_authenticity_verification",
]


@dataclass
class PerformanceCriteria:
    """Product filter thresholds applied before scoring"""
    max_price: float = 100.0
    min_commission: float = 15.0
    min_rating: float = 4.5
    min_monthly_sales: int = 1000
    max_monthly_sales: int = 50000
    min_profit_per_sale: float = 15.0
    blacklisted_keywords: List[str] = field(default_factory=lambda: [
        'adult', 'nsfw', 'explicit', 'gambling', 'casino',
        'crypto', 'bitcoin', 'investment', 'forex', 'trading',
    ])
    preferred_categories: List[str] = field(default_factory=lambda: [
        'health', 'beauty', 'fitness', 'wellness', 'skincare',
        'tech', 'gadgets', 'home', 'kitchen', 'lifestyle',
    ])


@dataclass
class TierBudgetConfig:
    """Monthly HUMAN_AVATAR production budget"""
    monthly_human_avatar_limit: int = 10
    target_human_avatar_ratio: float = 0.25
    trust_categories: List[str] = field(default_factory=lambda: ['health', 'beauty', 'tech'])


@dataclass
class DisclosureVocabulary:
    """Token sets that count as advertising and affiliate disclosures"""
    advertising: List[str] = field(default_factory=lambda: [
        'ad', 'advertisement', 'sponsored', 'paid partnership',
    ])
    affiliate: List[str] = field(default_factory=lambda: [
        'affiliate', 'commission', 'earn from',
    ])


@dataclass
class ComplianceConfig:
    """Preview queue compliance settings"""
    mandatory_checks: List[str] = field(default_factory=lambda: list(MANDATORY_COMPLIANCE_CHECKS))
    disclosure_vocabulary: DisclosureVocabulary = field(default_factory=DisclosureVocabulary)
    advertising_disclosure_text: str = "This is a paid advertisement"
    compliance_timeout_hours: float = 24.0
    max_queue_size: int = 100
    auto_cleanup_days: int = 30
    engagement_bait_phrases: List[str] = field(default_factory=lambda: [
        'follow for follow', 'like for like', 'comment for a chance',
        'tag 3 friends', 'share to win',
    ])
    unverified_claims: List[str] = field(default_factory=lambda: [
        'cure', 'cures', 'guaranteed results', 'fda approved',
        'miracle', '100% effective', 'no side effects',
    ])


@dataclass
class LeadScoringConfig:
    """Viral-to-leads qualification settings"""
    weights: Dict[str, float] = field(default_factory=lambda: {
        'engagement_rate': 0.25,
        'content_resonance': 0.20,
        'demographic_match': 0.20,
        'intent_signals': 0.15,
        'traffic_quality': 0.10,
        'conversion_indicators': 0.10,
    })
    thresholds: Dict[str, float] = field(default_factory=lambda: {
        'hot': 0.8,
        'warm': 0.6,
        'qualified': 0.4,
        'cold': 0.2,
    })
    lead_rate: float = 0.001
    max_leads_per_video: int = 50
    traffic_quality: float = 0.8
    data_retention_days: int = 2555
    estimated_lead_value: float = 55.56


@dataclass
class GeneratorConfig:
    """Generator timeouts (seconds) and the enhancement iteration budget"""
    timeouts: Dict[str, float] = field(default_factory=lambda: {
        'script': 120.0,
        'voice': 120.0,
        'video': 600.0,
    })
    default_timeout: float = 120.0
    iteration_budget: int = 1
    enhance_below_viral_score: float = 60.0

    def timeout_for(self, kind: str) -> float:
        return self.timeouts.get(kind, self.default_timeout)


@dataclass
class FeedbackRuleConfig:
    """One feedback rule: regex pattern -> change key/value"""
    pattern: str
    key: str
    value: Any


DEFAULT_FEEDBACK_RULES: List[Dict[str, Any]] = [
    {'pattern': r'\bhair\b.*\bshorter\b|\bshorter\b.*\bhair\b', 'key': 'persona_hair_length', 'value': 'short'},
    {'pattern': r'\bhair\b.*\blonger\b|\blonger\b.*\bhair\b', 'key': 'persona_hair_length', 'value': 'long'},
    {'pattern': r'\blighting\b.*\bblue\b|\bblue\b.*\blighting\b', 'key': 'video_lighting_color', 'value': 'blue'},
    {'pattern': r'\blighting\b.*\bwarm(er)?\b|\bwarm(er)?\b.*\blighting\b', 'key': 'video_lighting_color', 'value': 'warm'},
    {'pattern': r'\bfaster\b.*\b(pacing|pace|slow)\b|\b(pacing|pace|slow)\b.*\bfaster\b', 'key': 'script_pacing', 'value': 'fast'},
    {'pattern': r'\bslower\b.*\b(pacing|pace)\b|\b(pacing|pace)\b.*\bslower\b', 'key': 'script_pacing', 'value': 'slow'},
]


@dataclass
class KernelConfig:
    """Complete configuration for the content pipeline kernel"""
    performance_criteria: PerformanceCriteria = field(default_factory=PerformanceCriteria)
    tier_budget: TierBudgetConfig = field(default_factory=TierBudgetConfig)
    compliance: ComplianceConfig = field(default_factory=ComplianceConfig)
    lead_scoring: LeadScoringConfig = field(default_factory=LeadScoringConfig)
    generators: GeneratorConfig = field(default_factory=GeneratorConfig)
    feedback_rules: List[FeedbackRuleConfig] = field(
        default_factory=lambda: [FeedbackRuleConfig(**rule) for rule in DEFAULT_FEEDBACK_RULES]
    )

    def validate(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            ValueError: If weights do not sum to 1, thresholds are out of
                order, or an unknown compliance check is configured
        """
        weights = self.lead_scoring.weights
        if abs(sum(weights.values()) - 1.0) > 1e-9:
            raise ValueError(f"lead_scoring_weights must sum to 1.0, got {sum(weights.values()):.4f}")

        t = self.lead_scoring.thresholds
        if not (t['hot'] >= t['warm'] >= t['qualified'] >= t['cold']):
            raise ValueError("qualification_thresholds must satisfy hot >= warm >= qualified >= cold")

        unknown = [c for c in self.compliance.mandatory_checks if c not in MANDATORY_COMPLIANCE_CHECKS]
        if unknown:
            raise ValueError(f"Unknown compliance checks: {', '.join(unknown)}")

        if self.compliance.max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")

        if self.generators.iteration_budget < 1:
            raise ValueError("iteration_budget must be at least 1")


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    return raw.get(name) or {}


def load_kernel_config(config_path: Optional[str] = None) -> KernelConfig:
    """
    Load kernel configuration.

    Loads from: the given path, else KERNEL_CONFIG_PATH, else config/kernel.yml.
    Sections that are absent fall back to defaults.

    Args:
        config_path: Optional explicit YAML path

    Returns:
        KernelConfig instance

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist
        ValueError: If configuration is invalid
    """
    explicit = config_path or Config.KERNEL_CONFIG_PATH
    path = Path(explicit) if explicit else DEFAULT_KERNEL_CONFIG_PATH

    if not path.exists():
        if explicit:
            raise FileNotFoundError(
                f"Kernel configuration not found at {path}\n"
                f"Create a kernel.yml file or unset KERNEL_CONFIG_PATH."
            )
        config = KernelConfig()
        config.validate()
        return config

    # Load YAML
    with open(path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    criteria = PerformanceCriteria(**_section(raw_config, 'performance_criteria'))
    tier_budget = TierBudgetConfig(**_section(raw_config, 'tier_budget'))

    compliance_data = dict(_section(raw_config, 'compliance'))
    vocabulary = DisclosureVocabulary(**(compliance_data.pop('disclosure_vocabulary', None) or {}))
    compliance = ComplianceConfig(disclosure_vocabulary=vocabulary, **compliance_data)

    lead_data = dict(_section(raw_config, 'lead_scoring'))
    lead_defaults = LeadScoringConfig()
    lead_scoring = LeadScoringConfig(
        weights=lead_data.pop('weights', None) or lead_defaults.weights,
        thresholds={**lead_defaults.thresholds, **(lead_data.pop('thresholds', None) or {})},
        **lead_data
    )

    generator_data = dict(_section(raw_config, 'generators'))
    generator_defaults = GeneratorConfig()
    generators = GeneratorConfig(
        timeouts={**generator_defaults.timeouts, **(generator_data.pop('timeouts', None) or {})},
        **generator_data
    )

    rules = raw_config.get('feedback_rules') or DEFAULT_FEEDBACK_RULES
    feedback_rules = [FeedbackRuleConfig(**rule) for rule in rules]

    config = KernelConfig(
        performance_criteria=criteria,
        tier_budget=tier_budget,
        compliance=compliance,
        lead_scoring=lead_scoring,
        generators=generators,
        feedback_rules=feedback_rules
    )
    config.validate()
    return config
