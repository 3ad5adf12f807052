"""
Tests for ContentPipeline: rendering, failure capture, timeouts,
cancellation, publishing, enhancement rounds and the end-to-end run.
"""

import asyncio
import json
import random
from unittest.mock import MagicMock

import httpx
import pytest

from ghostautomation.core.config import KernelConfig
from ghostautomation.core.errors import Cancelled, InvalidTransition, ProviderUnavailable
from ghostautomation.core.models import PainPoint, Product, ProductionTier, VideoStatus
from ghostautomation.core.store import KIND_OPPORTUNITY, KIND_PRODUCT, InMemoryRecordStore
from ghostautomation.pipelines.content_pipeline import CANCELLED_ERROR, ContentPipeline
from ghostautomation.pipelines.kernel import KernelContext
from ghostautomation.services.catalog import StaticCatalogProvider
from ghostautomation.services.generators import (
    ClaudeProductEnhancer,
    Generator,
    HeyGenVideoGenerator,
    StaticGenerator,
)
from ghostautomation.services.sinks import InMemoryNurtureSink
from ghostautomation.services.viral_leads_bridge import SimulatedEngagementSource

SCRIPT = (
    "Why are 80% of Americans exhausted by 2pm every day? "
    "This is a paid advertisement. I earn a commission from purchases made through my link."
)


class FailingGenerator(Generator):
    def __init__(self, kind="video"):
        self.kind = kind

    async def generate(self, plan, inputs=None):
        raise ProviderUnavailable(f"{self.kind} provider error (503): down", "heygen")


class BrokenGenerator(Generator):
    kind = "voice"

    async def generate(self, plan, inputs=None):
        raise RuntimeError("disk full")


def _context(config=None):
    return KernelContext.create(
        config=config or KernelConfig(),
        store=InMemoryRecordStore(),
        nurture_sink=InMemoryNurtureSink(),
    )


def _generators(video_delay=0.0):
    return [
        StaticGenerator("script", SCRIPT),
        StaticGenerator("voice", "output/audio/{plan_id}.mp3"),
        StaticGenerator("video", "hg_{plan_id}", delay=video_delay),
    ]


def coq10(**kwargs):
    fields = dict(id="p-coq10", name="CoQ10 Ubiquinol 200mg with PQQ", merge_key="coq10 ubiquinol 200mg with pqq",
                  price=45.99, commission=25, rating=4.7, monthly_sales=12500, category="health",
                  source_set=["fastmoss"])
    fields.update(kwargs)
    return Product(**fields)


def _opportunity(ctx, product, tier=ProductionTier.HUMAN_AVATAR):
    ctx.store.put(KIND_PRODUCT, product)
    opportunity = ctx.scorer.score_product(product).model_copy(update={"recommended_tier": tier})
    ctx.store.put(KIND_OPPORTUNITY, opportunity)
    return opportunity


def _queued_item(ctx, tier=ProductionTier.HUMAN_AVATAR):
    product = coq10()
    plan = ctx.planner.plan(_opportunity(ctx, product, tier), product)
    return ctx.queue.add(plan)


@pytest.fixture
def ctx():
    return _context()


# ============================================================================
# Rendering
# ============================================================================

class TestRender:
    @pytest.mark.asyncio
    async def test_render_success(self, ctx):
        generators = _generators()
        pipeline = ContentPipeline(ctx, generators)
        item = _queued_item(ctx)

        rendered = await pipeline.render(item.id)

        assert rendered.status == VideoStatus.READY_FOR_PREVIEW
        assert rendered.script_content["body"] == SCRIPT
        assert set(rendered.artifacts) == {"script", "voice", "video"}
        assert rendered.artifacts["video"] == f"hg_{item.script_plan_id}"
        assert all(g.calls == 1 for g in generators)

    @pytest.mark.asyncio
    async def test_generator_failure_requires_fixes(self, ctx):
        pipeline = ContentPipeline(ctx, [StaticGenerator("script", SCRIPT), FailingGenerator()])
        item = _queued_item(ctx)

        failed = await pipeline.render(item.id)

        assert failed.status == VideoStatus.REQUIRES_FIXES
        assert "503" in failed.last_error
        assert "video" not in failed.artifacts

    @pytest.mark.asyncio
    async def test_timeout_requires_fixes(self):
        config = KernelConfig()
        config.generators.timeouts["video"] = 0.01
        ctx = _context(config)
        pipeline = ContentPipeline(ctx, _generators(video_delay=1.0))
        item = _queued_item(ctx)

        failed = await pipeline.render(item.id)

        assert failed.status == VideoStatus.REQUIRES_FIXES
        assert "timed out" in failed.last_error

    @pytest.mark.asyncio
    async def test_unexpected_exception_requires_fixes(self, ctx):
        pipeline = ContentPipeline(ctx, [StaticGenerator("script", SCRIPT), BrokenGenerator()])
        item = _queued_item(ctx)

        failed = await pipeline.render(item.id)

        assert failed.status == VideoStatus.REQUIRES_FIXES
        assert failed.last_error == "RuntimeError: disk full"
        assert ctx.queue.get(item.id).status == VideoStatus.REQUIRES_FIXES

    @pytest.mark.asyncio
    async def test_malformed_provider_payload_requires_fixes(self, ctx):
        heygen = HeyGenVideoGenerator(
            api_key="hg-key", avatar_id="avatar-1", voice_id="hg-voice",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>")),
        )
        pipeline = ContentPipeline(ctx, [StaticGenerator("script", SCRIPT), heygen])
        item = _queued_item(ctx)

        failed = await pipeline.render(item.id)

        assert failed.status == VideoStatus.REQUIRES_FIXES
        assert "invalid JSON" in failed.last_error

    @pytest.mark.asyncio
    async def test_rerender_after_failure(self, ctx):
        item = _queued_item(ctx)
        await ContentPipeline(ctx, [FailingGenerator()]).render(item.id)

        rendered = await ContentPipeline(ctx, _generators()).render(item.id)

        assert rendered.status == VideoStatus.READY_FOR_PREVIEW
        assert rendered.last_error is None

    @pytest.mark.asyncio
    async def test_cancel_restores_prior_status(self, ctx):
        item = _queued_item(ctx)
        await ContentPipeline(ctx, [FailingGenerator()]).render(item.id)

        pipeline = ContentPipeline(ctx, _generators(video_delay=10.0))
        task = asyncio.ensure_future(pipeline.render(item.id))
        await asyncio.sleep(0.05)

        assert ctx.queue.get(item.id).status == VideoStatus.GENERATING
        assert pipeline.cancel(item.id) is True
        with pytest.raises(Cancelled):
            await task

        restored = ctx.queue.get(item.id)
        assert restored.status == VideoStatus.REQUIRES_FIXES
        assert restored.last_error == CANCELLED_ERROR

    def test_cancel_without_pending_render(self, ctx):
        assert ContentPipeline(ctx, _generators()).cancel("video_missing") is False

    @pytest.mark.asyncio
    async def test_item_without_plan(self, ctx):
        item = ctx.queue.add()
        with pytest.raises(InvalidTransition, match="no script plan"):
            await ContentPipeline(ctx, _generators()).render(item.id)

    @pytest.mark.asyncio
    async def test_terminal_item_not_rendered(self, ctx):
        item = _queued_item(ctx)
        ctx.queue.reject(item.id, "off brand")
        with pytest.raises(InvalidTransition):
            await ContentPipeline(ctx, _generators()).render(item.id)


class TestMontage:
    @pytest.mark.asyncio
    async def test_montage_skips_avatar_video(self, ctx):
        generators = _generators()
        item = _queued_item(ctx, ProductionTier.IMAGE_MONTAGE)

        rendered = await ContentPipeline(ctx, generators).render(item.id)

        assert generators[2].calls == 0
        assert "video" not in rendered.artifacts
        assert rendered.status == VideoStatus.READY_FOR_PREVIEW

    @pytest.mark.asyncio
    async def test_montage_generator_replaces_video(self, ctx):
        generators = _generators()
        montage = StaticGenerator("video", "montage_{plan_id}.mp4")
        item = _queued_item(ctx, ProductionTier.IMAGE_MONTAGE)

        rendered = await ContentPipeline(ctx, generators, montage_generator=montage).render(item.id)

        assert generators[2].calls == 0
        assert montage.calls == 1
        assert rendered.artifacts["video"].startswith("montage_")


# ============================================================================
# Publishing
# ============================================================================

class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_is_idempotent(self, ctx):
        pipeline = ContentPipeline(ctx, _generators())
        item = _queued_item(ctx)
        await pipeline.render(item.id)
        ctx.queue.approve(item.id, "ship it")

        first = await pipeline.publish(item.id)
        second = await pipeline.publish(item.id)

        assert first == second
        published = ctx.queue.get(item.id)
        assert published.status == VideoStatus.PUBLISHED
        assert published.artifacts["published_video_id"] == first.video_id

    @pytest.mark.asyncio
    async def test_publish_needs_approval(self, ctx):
        pipeline = ContentPipeline(ctx, _generators())
        item = _queued_item(ctx)
        await pipeline.render(item.id)

        with pytest.raises(InvalidTransition, match="Cannot publish"):
            await pipeline.publish(item.id)


# ============================================================================
# Enhancement
# ============================================================================

def _enhancer(payload):
    client = MagicMock()
    client.messages.create.return_value = MagicMock(content=[MagicMock(text=json.dumps(payload))])
    return ClaudeProductEnhancer(client=client)


class TestEnhancement:
    def _bare_product(self):
        return coq10(id="p-energy", name="Daily Energy Caps", merge_key="daily energy caps")

    @pytest.mark.asyncio
    async def test_enhancement_round_finds_pain_point(self):
        config = KernelConfig()
        config.generators.iteration_budget = 2
        ctx = _context(config)
        enhancer = _enhancer({"description": "Cellular energy support", "ingredients": "CoQ10, PQQ"})
        pipeline = ContentPipeline(ctx, _generators(), enhancer=enhancer)
        opportunity = _opportunity(ctx, self._bare_product())

        plan = await pipeline.plan_opportunity(opportunity)

        assert plan.pain_point == PainPoint.CHRONIC_FATIGUE
        assert plan.recommended_tier == ProductionTier.HUMAN_AVATAR
        assert ctx.store.get(KIND_PRODUCT, "p-energy").ingredients == "CoQ10, PQQ"
        assert enhancer.client.messages.create.call_count == 1

    @pytest.mark.asyncio
    async def test_budget_of_one_never_enhances(self, ctx):
        enhancer = _enhancer({"ingredients": "CoQ10"})
        pipeline = ContentPipeline(ctx, _generators(), enhancer=enhancer)

        plan = await pipeline.plan_opportunity(_opportunity(ctx, self._bare_product()))

        assert plan is None
        enhancer.client.messages.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_enhancer_failure_keeps_plan(self):
        config = KernelConfig()
        config.generators.iteration_budget = 3
        ctx = _context(config)
        pipeline = ContentPipeline(ctx, _generators(), enhancer=_enhancer({}))
        pipeline.enhancer.client.messages.create.return_value = MagicMock(content=[MagicMock(text="not json")])

        plan = await pipeline.plan_opportunity(_opportunity(ctx, self._bare_product()))

        assert plan is None
        assert pipeline.enhancer.client.messages.create.call_count == 1


# ============================================================================
# End to end
# ============================================================================

CATALOG = [{
    "id": "fm-coq10-200",
    "name": "CoQ10 Ubiquinol 200mg with PQQ",
    "price": "$69.99",
    "commission": "25%",
    "rating": "4.7",
    "monthly_sales": "12.5k",
    "growth_rate": "35%",
    "competition_level": "low",
    "trend_score": "82",
    "category": "health",
}]


class TestRun:
    @pytest.mark.asyncio
    async def test_run_without_approval(self, ctx):
        pipeline = ContentPipeline(ctx, _generators())

        result = await pipeline.run([StaticCatalogProvider("fastmoss", CATALOG)])

        assert result.scored == 1
        assert result.planned == 1
        assert result.ready == result.queued
        assert result.published == []

    @pytest.mark.asyncio
    async def test_run_auto_approve_produces_leads(self, ctx):
        pipeline = ContentPipeline(ctx, _generators())

        result = await pipeline.run(
            [StaticCatalogProvider("fastmoss", CATALOG)],
            auto_approve=True,
            engagement_source=SimulatedEngagementSource(random.Random(3)),
            tenant_id="acme",
        )
        summary = result.to_dict()

        assert len(result.published) == 1
        assert ctx.queue.get(result.queued[0]).status == VideoStatus.PUBLISHED
        assert summary["leads_created"] > 0
        assert len(ctx.nurture_sink.tasks) == summary["leads_created"]

    @pytest.mark.asyncio
    async def test_run_records_failures(self, ctx):
        pipeline = ContentPipeline(ctx, [FailingGenerator("script")])

        result = await pipeline.run([StaticCatalogProvider("fastmoss", CATALOG)], auto_approve=True)

        item_id = result.queued[0]
        assert "503" in result.failed[item_id]
        assert result.ready == []
        assert result.published == []
