"""
Tests for generator adapters. External APIs are mocked: the anthropic
client with MagicMock, ElevenLabs and HeyGen with httpx.MockTransport.
"""

import json
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from ghostautomation.core.errors import InvalidInput, ProviderUnavailable, QuotaExceeded
from ghostautomation.core.models import ContentPriority, PainPoint, Product, ProductionTier, ScriptPlan
from ghostautomation.services.generators import (
    ClaudeProductEnhancer,
    ClaudeScriptGenerator,
    ElevenLabsVoiceGenerator,
    HeyGenVideoGenerator,
    StaticGenerator,
)


def _plan(tier=ProductionTier.HUMAN_AVATAR):
    return ScriptPlan(
        id="plan-1",
        opportunity_id="opp-1",
        product_id="prod-1",
        product_name="CoQ10",
        pain_point=PainPoint.CHRONIC_FATIGUE,
        match_score=100,
        hook="Why are 80% of Americans exhausted by 2pm every day?",
        emotional_triggers=["You're drinking 3 cups of coffee", "You're canceling plans"],
        mechanism_explanation="powers your mitochondria",
        estimated_revenue=1000,
        viral_score=90,
        priority=ContentPriority.URGENT,
        recommended_tier=tier,
    )


def _claude(text):
    client = MagicMock()
    client.messages.create.return_value = MagicMock(content=[MagicMock(text=text)])
    return client


# ============================================================================
# Claude
# ============================================================================

class TestClaudeScriptGenerator:
    @pytest.mark.asyncio
    async def test_generate(self):
        client = _claude("  Why are 80% of Americans exhausted?\n#ad - I earn a commission.  ")
        generator = ClaudeScriptGenerator(client=client, model="claude-test")

        script = await generator.generate(_plan())

        assert script.startswith("Why are 80%")
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        prompt = kwargs["messages"][0]["content"]
        assert "chronic fatigue" in prompt
        assert ClaudeScriptGenerator.DISCLOSURE_LINE in prompt

    @pytest.mark.asyncio
    async def test_empty_script(self):
        generator = ClaudeScriptGenerator(client=_claude("   "))
        with pytest.raises(InvalidInput, match="empty script"):
            await generator.generate(_plan())

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=httpx.Response(429, request=request), body=None
        )

        with pytest.raises(QuotaExceeded):
            await ClaudeScriptGenerator(client=client).generate(_plan())

    @pytest.mark.asyncio
    async def test_no_content_blocks(self):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(content=[])
        with pytest.raises(ProviderUnavailable, match="no text content"):
            await ClaudeScriptGenerator(client=client).generate(_plan())

    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch):
        monkeypatch.setattr("ghostautomation.services.generators.Config.ANTHROPIC_API_KEY", "")
        with pytest.raises(ProviderUnavailable, match="ANTHROPIC_API_KEY"):
            await ClaudeScriptGenerator().generate(_plan())


class TestClaudeProductEnhancer:
    @pytest.mark.asyncio
    async def test_enhance_parses_fenced_json(self):
        body = json.dumps({"description": "Energy support", "ingredients": "CoQ10, PQQ"})
        enhancer = ClaudeProductEnhancer(client=_claude(f"```json\n{body}\n```"))
        product = Product(id="p", name="Energy Caps", merge_key="energy caps", price=30, source_set=["fastmoss"])

        enhanced = await enhancer.enhance(product)

        assert enhanced.ingredients == "CoQ10, PQQ"
        assert enhanced.description == "Energy support"
        assert product.ingredients == ""

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        enhancer = ClaudeProductEnhancer(client=_claude("not json"))
        product = Product(id="p", name="Energy Caps", merge_key="energy caps", price=30, source_set=["fastmoss"])
        with pytest.raises(InvalidInput, match="JSON"):
            await enhancer.enhance(product)

    @pytest.mark.asyncio
    async def test_json_array_rejected(self):
        enhancer = ClaudeProductEnhancer(client=_claude('["CoQ10"]'))
        product = Product(id="p", name="Energy Caps", merge_key="energy caps", price=30, source_set=["fastmoss"])
        with pytest.raises(InvalidInput, match="JSON object"):
            await enhancer.enhance(product)


# ============================================================================
# ElevenLabs
# ============================================================================

class TestElevenLabsVoiceGenerator:
    @pytest.mark.asyncio
    async def test_generate_writes_audio(self, tmp_path):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("xi-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"ID3-audio")

        generator = ElevenLabsVoiceGenerator(
            api_key="el-key", voice_id="voice-1", output_dir=str(tmp_path),
            transport=httpx.MockTransport(handler),
        )

        path = await generator.generate(_plan(), {"script": "Hello there"})

        assert path.endswith(".mp3")
        assert open(path, "rb").read() == b"ID3-audio"
        assert seen["url"] == "https://api.elevenlabs.io/v1/text-to-speech/voice-1"
        assert seen["key"] == "el-key"
        assert seen["body"]["text"] == "Hello there"

    @pytest.mark.asyncio
    async def test_needs_script(self, tmp_path):
        generator = ElevenLabsVoiceGenerator(api_key="el-key", voice_id="voice-1", output_dir=str(tmp_path))
        with pytest.raises(InvalidInput, match="needs a script"):
            await generator.generate(_plan(), {})

    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch):
        monkeypatch.setattr("ghostautomation.services.generators.Config.ELEVENLABS_API_KEY", "")
        with pytest.raises(ProviderUnavailable):
            await ElevenLabsVoiceGenerator(voice_id="voice-1").generate(_plan(), {"script": "Hi"})

    @pytest.mark.asyncio
    async def test_quota(self, tmp_path):
        generator = ElevenLabsVoiceGenerator(
            api_key="el-key", voice_id="voice-1", output_dir=str(tmp_path),
            transport=httpx.MockTransport(lambda request: httpx.Response(429, text="quota")),
        )
        with pytest.raises(QuotaExceeded):
            await generator.generate(_plan(), {"script": "Hi"})

    @pytest.mark.asyncio
    async def test_unwritable_output_dir(self, tmp_path):
        blocker = tmp_path / "audio"
        blocker.write_text("not a directory")
        generator = ElevenLabsVoiceGenerator(
            api_key="el-key", voice_id="voice-1", output_dir=str(blocker),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"ID3-audio")),
        )
        with pytest.raises(ProviderUnavailable, match="Failed to write voiceover"):
            await generator.generate(_plan(), {"script": "Hi"})


# ============================================================================
# HeyGen
# ============================================================================

def _heygen(handler):
    return HeyGenVideoGenerator(
        api_key="hg-key", avatar_id="avatar-1", voice_id="hg-voice",
        transport=httpx.MockTransport(handler),
    )


class TestHeyGenVideoGenerator:
    @pytest.mark.asyncio
    async def test_generate_returns_video_id(self):
        seen = {}

        def handler(request):
            seen["key"] = request.headers.get("X-Api-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"video_id": "hg_123"}})

        video_id = await _heygen(handler).generate(_plan(), {"script": "Hello"})

        assert video_id == "hg_123"
        assert seen["key"] == "hg-key"
        assert seen["body"]["callback_id"] == "plan-1"
        video_input = seen["body"]["video_inputs"][0]
        assert video_input["character"]["avatar_id"] == "avatar-1"
        assert video_input["voice"]["voice_id"] == "hg-voice"
        assert seen["body"]["dimension"] == {"width": 1080, "height": 1920}

    @pytest.mark.asyncio
    async def test_montage_plans_rejected(self):
        generator = _heygen(lambda request: httpx.Response(200, json={}))
        with pytest.raises(InvalidInput, match="not a human avatar"):
            await generator.generate(_plan(ProductionTier.IMAGE_MONTAGE), {"script": "Hello"})

    @pytest.mark.asyncio
    async def test_server_error(self):
        with pytest.raises(ProviderUnavailable, match="heygen"):
            await _heygen(lambda request: httpx.Response(500, text="boom")).generate(_plan(), {"script": "Hello"})

    @pytest.mark.asyncio
    async def test_missing_video_id(self):
        generator = _heygen(lambda request: httpx.Response(200, json={"data": {}}))
        with pytest.raises(ProviderUnavailable, match="video_id"):
            await generator.generate(_plan(), {"script": "Hello"})

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        generator = _heygen(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(ProviderUnavailable, match="invalid JSON"):
            await generator.generate(_plan(), {"script": "Hello"})


# ============================================================================
# Static
# ============================================================================

class TestStaticGenerator:
    @pytest.mark.asyncio
    async def test_fills_plan_id(self):
        generator = StaticGenerator("video", "https://cdn.example.com/{plan_id}.mp4")

        handle = await generator.generate(_plan())

        assert handle == "https://cdn.example.com/plan-1.mp4"
        assert generator.calls == 1
