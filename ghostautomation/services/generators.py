"""
Generator adapters - external AI providers that turn a ScriptPlan into
artifacts.

Every generator returns an ArtifactHandle: an opaque string the queue stores
under the generator's kind (script text, audio file path, HeyGen video id).
Provider failures are raised as GeneratorError subclasses; the pipeline
records them on the queue item.

    script  ClaudeScriptGenerator    anthropic Messages API
    voice   ElevenLabsVoiceGenerator ElevenLabs text-to-speech (httpx)
    video   HeyGenVideoGenerator     HeyGen v2 video generation (httpx)
"""

import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import anthropic
import httpx

from ..core.config import Config
from ..core.errors import (
    GeneratorError,
    InvalidInput,
    ProviderUnavailable,
    QuotaExceeded,
    from_http_error,
)
from ..core.models import Product, ProductionTier, ScriptPlan

logger = logging.getLogger(__name__)

ArtifactHandle = str


class Generator(ABC):
    """One artifact-producing provider."""

    kind: str = "artifact"

    @abstractmethod
    async def generate(self, plan: ScriptPlan, inputs: Optional[Dict[str, ArtifactHandle]] = None) -> ArtifactHandle:
        """
        Produce an artifact for the plan.

        Args:
            plan: Script plan being rendered
            inputs: Handles produced earlier in the same render, by kind

        Raises:
            ProviderUnavailable, QuotaExceeded, InvalidInput
        """
        pass


def _anthropic_error(error: anthropic.APIError, provider: str) -> GeneratorError:
    if isinstance(error, anthropic.RateLimitError):
        return QuotaExceeded(f"{provider} rate limit: {error}", provider)
    if isinstance(error, (anthropic.BadRequestError, anthropic.UnprocessableEntityError)):
        return InvalidInput(f"{provider} rejected request: {error}", provider)
    return ProviderUnavailable(f"{provider} unavailable: {error}", provider)


def _response_text(response: Any, provider: str) -> str:
    """Text of the first content block of a Messages API response."""
    try:
        return response.content[0].text
    except (IndexError, AttributeError, TypeError) as e:
        raise ProviderUnavailable(f"{provider} returned no text content: {e}", provider) from e


def _parse_json_response(content: str) -> Dict[str, Any]:
    """Parse JSON from an LLM response, stripping markdown code fences."""
    content = content.strip()

    if content.startswith("```"):
        lines = content.split("\n")
        start_idx = 1 if lines[0].startswith("```") else 0
        end_idx = len(lines) - 1 if lines[-1].strip() == "```" else len(lines)
        content = "\n".join(lines[start_idx:end_idx])

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.debug(f"Raw content: {content[:1000]}")
        raise InvalidInput(f"Failed to parse LLM response as JSON: {e}", "anthropic")

    if not isinstance(data, dict):
        raise InvalidInput(f"Expected a JSON object, got {type(data).__name__}", "anthropic")
    return data


# ============================================================================
# Script (Claude)
# ============================================================================

class ClaudeScriptGenerator(Generator):
    """Writes the spoken script with Claude. The script text is its own handle."""

    kind = "script"

    SCRIPT_PROMPT = """You are writing a 30-45 second TikTok voiceover script for a supplement affiliate video.

Product: {product_name}
Pain point: {pain_point}
Opening hook: {hook}
Statistic: {statistical_hook}
Emotional triggers:
{emotional_triggers}
How it works: {mechanism}
Call to action: {cta}

Rules:
- Open with the hook word for word
- Speak to the viewer directly, short sentences
- Make no medical claims beyond the mechanism above
- End with this exact line: "{disclosure}"

Return ONLY the script text, no headings or stage directions."""

    DISCLOSURE_LINE = "#ad - I earn a commission from purchases made through my link."

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[anthropic.Anthropic] = None,
        max_tokens: int = 1500
    ):
        api_key = api_key or Config.ANTHROPIC_API_KEY
        if client is not None:
            self.client = client
        elif api_key:
            self.client = anthropic.Anthropic(api_key=api_key)
        else:
            logger.warning("ANTHROPIC_API_KEY not set - script generation will fail")
            self.client = None

        self.model = model or Config.SCRIPT_MODEL
        self.max_tokens = max_tokens

    def build_prompt(self, plan: ScriptPlan) -> str:
        cta = plan.script_elements.get("cta_elements", {})
        return self.SCRIPT_PROMPT.format(
            product_name=plan.product_name,
            pain_point=plan.pain_point.value.replace('_', ' '),
            hook=plan.hook,
            statistical_hook=plan.statistical_hook,
            emotional_triggers="\n".join(f"- {t}" for t in plan.emotional_triggers),
            mechanism=plan.mechanism_explanation,
            cta=cta.get("action", "Link in bio"),
            disclosure=self.DISCLOSURE_LINE,
        )

    async def generate(self, plan: ScriptPlan, inputs: Optional[Dict[str, ArtifactHandle]] = None) -> ArtifactHandle:
        if self.client is None:
            raise ProviderUnavailable("Anthropic client not configured. Set ANTHROPIC_API_KEY.", "anthropic")

        logger.info(f"Generating script for {plan.product_name} ({plan.pain_point.value})")

        try:
            response = await asyncio.to_thread(
                self.client.messages.create,
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "user", "content": self.build_prompt(plan)}
                ]
            )
        except anthropic.APIError as e:
            raise _anthropic_error(e, "anthropic") from e

        script = _response_text(response, "anthropic").strip()
        if not script:
            raise InvalidInput("Claude returned an empty script", "anthropic")
        return script


class ClaudeProductEnhancer:
    """
    Rewrites a weak product listing with Claude so it can be re-scored.

    Used by the pipeline's enhancement loop; the loop, not this class,
    decides how many rounds to run.
    """

    ENHANCE_PROMPT = """Improve this TikTok Shop product listing for discovery. Keep every fact; do not invent ingredients.

Name: {name}
Category: {category}
Description: {description}
Ingredients: {ingredients}

Return JSON only:
{{"description": "...", "ingredients": "comma-separated ingredient list"}}"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[anthropic.Anthropic] = None
    ):
        api_key = api_key or Config.ANTHROPIC_API_KEY
        self.client = client or (anthropic.Anthropic(api_key=api_key) if api_key else None)
        self.model = model or Config.SCRIPT_MODEL

    async def enhance(self, product: Product) -> Product:
        if self.client is None:
            raise ProviderUnavailable("Anthropic client not configured. Set ANTHROPIC_API_KEY.", "anthropic")

        prompt = self.ENHANCE_PROMPT.format(
            name=product.name,
            category=product.category,
            description=product.description or "(none)",
            ingredients=product.ingredients or "(none)",
        )

        try:
            response = await asyncio.to_thread(
                self.client.messages.create,
                model=self.model,
                max_tokens=1000,
                messages=[{"role": "user", "content": prompt}]
            )
        except anthropic.APIError as e:
            raise _anthropic_error(e, "anthropic") from e

        data = _parse_json_response(_response_text(response, "anthropic"))
        enhanced = product.model_copy(update={
            "description": data.get("description") or product.description,
            "ingredients": data.get("ingredients") or product.ingredients,
        })
        logger.info(f"Enhanced listing for {product.name}")
        return enhanced


# ============================================================================
# Voice (ElevenLabs)
# ============================================================================

class ElevenLabsVoiceGenerator(Generator):
    """Voiceover via ElevenLabs. Handle is the written audio file path."""

    kind = "voice"

    BASE_URL = "https://api.elevenlabs.io/v1"
    MODEL_ID = "eleven_turbo_v2_5"

    DEFAULT_SETTINGS = {
        "stability": 0.8,
        "similarity_boost": 0.75,
        "style": 0.3,
        "use_speaker_boost": True,
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        output_dir: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0
    ):
        self.api_key = api_key or Config.ELEVENLABS_API_KEY
        self.voice_id = voice_id or Config.ELEVENLABS_VOICE_ID
        self.output_dir = Path(output_dir or Config.AUDIO_OUTPUT_DIR)
        self.transport = transport
        self.timeout = timeout

        if not self.api_key:
            logger.warning("ElevenLabs API key not configured")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.voice_id)

    async def generate(self, plan: ScriptPlan, inputs: Optional[Dict[str, ArtifactHandle]] = None) -> ArtifactHandle:
        if not self.enabled:
            raise ProviderUnavailable("ElevenLabs service not configured", "elevenlabs")

        text = (inputs or {}).get("script")
        if not text:
            raise InvalidInput("Voice generation needs a script", "elevenlabs")

        payload = {
            "text": text,
            "model_id": self.MODEL_ID,
            "voice_settings": self.DEFAULT_SETTINGS,
        }

        try:
            async with httpx.AsyncClient(
                headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(f"{self.BASE_URL}/text-to-speech/{self.voice_id}", json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise from_http_error(e, "elevenlabs") from e

        output_path = self.output_dir / f"{plan.id}_{uuid.uuid4().hex[:8]}.mp3"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(response.content)
        except OSError as e:
            raise ProviderUnavailable(f"Failed to write voiceover {output_path}: {e}", "elevenlabs") from e

        logger.info(f"Generated voiceover: {output_path} ({len(response.content)} bytes)")
        return str(output_path)


# ============================================================================
# Video (HeyGen)
# ============================================================================

class HeyGenVideoGenerator(Generator):
    """
    Talking-avatar video via HeyGen. Handle is the HeyGen video id.

    Submission only: HeyGen renders asynchronously and the id is enough to
    fetch the finished video later.
    """

    kind = "video"

    BASE_URL = "https://api.heygen.com/v2"

    def __init__(
        self,
        api_key: Optional[str] = None,
        avatar_id: Optional[str] = None,
        voice_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0
    ):
        self.api_key = api_key or Config.HEYGEN_API_KEY
        self.avatar_id = avatar_id or Config.HEYGEN_AVATAR_ID
        self.voice_id = voice_id
        self.transport = transport
        self.timeout = timeout

    def build_payload(self, plan: ScriptPlan, script: str) -> Dict[str, Any]:
        voice: Dict[str, Any] = {"type": "text", "input_text": script, "speed": 1.0}
        if self.voice_id:
            voice["voice_id"] = self.voice_id

        return {
            "video_inputs": [{
                "character": {
                    "type": "avatar",
                    "avatar_id": self.avatar_id,
                    "avatar_style": "normal",
                },
                "voice": voice,
                "background": {"type": "color", "value": "#FFFFFF"},
            }],
            "dimension": {"width": 1080, "height": 1920},
            "callback_id": plan.id,
        }

    async def generate(self, plan: ScriptPlan, inputs: Optional[Dict[str, ArtifactHandle]] = None) -> ArtifactHandle:
        if not self.api_key or not self.avatar_id:
            raise ProviderUnavailable("HeyGen service not configured", "heygen")
        if plan.recommended_tier != ProductionTier.HUMAN_AVATAR:
            raise InvalidInput(f"Plan {plan.id} is not a human avatar video", "heygen")

        script = (inputs or {}).get("script")
        if not script:
            raise InvalidInput("Video generation needs a script", "heygen")

        try:
            async with httpx.AsyncClient(
                headers={"X-Api-Key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(f"{self.BASE_URL}/video/generate", json=self.build_payload(plan, script))
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise from_http_error(e, "heygen") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderUnavailable(f"HeyGen returned invalid JSON: {e}", "heygen") from e

        data = (body.get("data") if isinstance(body, dict) else None) or {}
        video_id = data.get("video_id") if isinstance(data, dict) else None
        if not video_id:
            raise ProviderUnavailable("HeyGen response did not include a video_id", "heygen")

        logger.info(f"Submitted HeyGen video {video_id} for {plan.product_name}")
        return video_id


# ============================================================================
# Static
# ============================================================================

class StaticGenerator(Generator):
    """
    Returns a fixed handle. Used by demos and tests.

    The handle may contain '{plan_id}' which is filled from the plan.
    """

    def __init__(self, kind: str, handle: ArtifactHandle, delay: float = 0.0):
        self.kind = kind
        self.handle = handle
        self.delay = delay
        self.calls = 0

    async def generate(self, plan: ScriptPlan, inputs: Optional[Dict[str, ArtifactHandle]] = None) -> ArtifactHandle:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.handle.replace("{plan_id}", plan.id)
