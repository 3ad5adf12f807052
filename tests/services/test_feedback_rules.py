"""
Tests for feedback parsing into typed changes.
"""

import pytest

from ghostautomation.core.config import FeedbackRuleConfig
from ghostautomation.core.models import Change
from ghostautomation.services.feedback_rules import FeedbackRuleSet, requires_regeneration


@pytest.fixture
def rules():
    return FeedbackRuleSet()


class TestParse:
    def test_hair_and_lighting(self, rules):
        changes = rules.parse("make the hair shorter and lighting blue")

        assert [c.key for c in changes] == ["persona_hair_length", "video_lighting_color"]
        assert [c.value for c in changes] == ["short", "blue"]

    def test_case_insensitive(self, rules):
        assert [c.value for c in rules.parse("Warmer LIGHTING please")] == ["warm"]

    def test_first_rule_per_key_wins(self, rules):
        changes = rules.parse("hair shorter, no wait, hair longer")
        assert [(c.key, c.value) for c in changes] == [("persona_hair_length", "short")]

    def test_pacing(self, rules):
        assert [c.key for c in rules.parse("the pacing should be slower")] == ["script_pacing"]

    def test_unrecognised_feedback(self, rules):
        assert rules.parse("looks great") == []

    def test_custom_rules(self):
        rules = FeedbackRuleSet([FeedbackRuleConfig(pattern=r"darker background", key="video_background", value="dark")])
        assert [c.key for c in rules.parse("use a darker background")] == ["video_background"]

    def test_bad_rule_key_fails_fast(self):
        with pytest.raises(ValueError, match="Unknown change key"):
            FeedbackRuleSet([FeedbackRuleConfig(pattern="x", key="audio_volume", value=1)])


class TestRequiresRegeneration:
    @pytest.mark.parametrize("key,expected", [
        ("persona_hair_length", True),
        ("video_lighting_color", True),
        ("video_background", True),
        ("script_content_body", True),
        ("script_pacing", False),
        ("persona_voice_type", False),
    ])
    def test_keys(self, key, expected):
        assert requires_regeneration([Change.from_key(key, "x")]) is expected

    def test_empty(self):
        assert requires_regeneration([]) is False
