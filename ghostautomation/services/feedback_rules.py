"""
Feedback rules - turn free-text reviewer feedback into typed changes.

Keyword rules only. Each rule is a regex and the change key/value it
produces; the first matching rule for a key wins. The table comes from
KernelConfig.feedback_rules so deployments and tests can supply their own.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from ..core.config import DEFAULT_FEEDBACK_RULES, FeedbackRuleConfig
from ..core.models import Change

logger = logging.getLogger(__name__)

# Key prefixes whose changes need the video regenerated
REGENERATION_TRIGGERS = (
    "persona_appearance",
    "persona_hair",
    "persona_clothing",
    "video_lighting",
    "video_background",
    "script_content",
)


class FeedbackRuleSet:
    """Compiled feedback rule table."""

    def __init__(self, rules: Optional[Sequence[FeedbackRuleConfig]] = None):
        if rules is None:
            rules = [FeedbackRuleConfig(**rule) for rule in DEFAULT_FEEDBACK_RULES]

        self.rules: List[Tuple[re.Pattern, FeedbackRuleConfig]] = []
        for rule in rules:
            # fail fast on bad keys
            Change.from_key(rule.key, rule.value)
            self.rules.append((re.compile(rule.pattern, re.IGNORECASE), rule))

    def parse(self, feedback: str) -> List[Change]:
        """
        Changes requested by the feedback, in rule order.

        Example:
            "make the hair shorter and lighting blue" ->
            [persona_hair_length=short, video_lighting_color=blue]
        """
        changes: List[Change] = []
        seen = set()
        for pattern, rule in self.rules:
            if rule.key in seen or not pattern.search(feedback):
                continue
            seen.add(rule.key)
            changes.append(Change.from_key(rule.key, rule.value))

        logger.debug(f"Feedback parsed into {len(changes)} changes: {[c.key for c in changes]}")
        return changes


def requires_regeneration(changes: Sequence[Change]) -> bool:
    return any(change.key.startswith(REGENERATION_TRIGGERS) for change in changes)
