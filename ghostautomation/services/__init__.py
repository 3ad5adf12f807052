"""
Services layer for the content pipeline kernel.

Scoring (OpportunityScorer), planning (PainPointPlanner), review
(PreviewQueue, ComplianceValidator), lead generation (ViralToLeadsBridge)
and the adapters for external providers and sinks.
"""

from .catalog import CatalogProvider, StaticCatalogProvider, HttpCatalogProvider
from .opportunity_scorer import OpportunityScorer, ScoringRun
from .pain_point_planner import PainPointPlanner
from .compliance import ComplianceValidator
from .feedback_rules import FeedbackRuleSet
from .preview_queue import PreviewQueue
from .viral_leads_bridge import ViralToLeadsBridge, SimulatedEngagementSource
from .sinks import (
    Publisher,
    InMemoryPublisher,
    NurtureSink,
    InMemoryNurtureSink,
    SupabaseNurtureSink,
)
from .generators import (
    Generator,
    ClaudeScriptGenerator,
    ClaudeProductEnhancer,
    ElevenLabsVoiceGenerator,
    HeyGenVideoGenerator,
    StaticGenerator,
)

__all__ = [
    'CatalogProvider',
    'StaticCatalogProvider',
    'HttpCatalogProvider',
    'OpportunityScorer',
    'ScoringRun',
    'PainPointPlanner',
    'ComplianceValidator',
    'FeedbackRuleSet',
    'PreviewQueue',
    'ViralToLeadsBridge',
    'SimulatedEngagementSource',
    'Publisher',
    'InMemoryPublisher',
    'NurtureSink',
    'InMemoryNurtureSink',
    'SupabaseNurtureSink',
    'Generator',
    'ClaudeScriptGenerator',
    'ClaudeProductEnhancer',
    'ElevenLabsVoiceGenerator',
    'HeyGenVideoGenerator',
    'StaticGenerator',
]
