"""
Content Pipeline - drives opportunities through planning, generation,
review and publication.

    score -> plan (with optional enhancement rounds) -> queue -> render
          -> approve (auto or human) -> publish -> engagement -> leads

Generators are the only slow steps. Each call runs under the per-kind
timeout from GeneratorConfig; failures and timeouts put the item in
REQUIRES_FIXES with the error recorded, and a cancelled render puts the
item back in the status it had before the render started.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from ..core.errors import (
    Cancelled,
    ComplianceBlocked,
    GeneratorError,
    InvalidTransition,
    ProviderUnavailable,
    QueueFull,
)
from ..core.models import (
    Opportunity,
    ProductionTier,
    PublishReceipt,
    QueueItem,
    ScriptPlan,
    VideoStatus,
    ViralAnalysisResult,
)
from ..core.observability import kernel_span
from ..core.store import KIND_OPPORTUNITY, KIND_PRODUCT, KIND_SCRIPT_PLAN
from ..services.catalog import CatalogProvider
from ..services.generators import ArtifactHandle, ClaudeProductEnhancer, Generator
from ..services.viral_leads_bridge import SimulatedEngagementSource
from .kernel import KernelContext

logger = logging.getLogger(__name__)

RENDERABLE_STATUSES = (
    VideoStatus.GENERATING,
    VideoStatus.COMPLIANCE_REVIEW,
    VideoStatus.READY_FOR_PREVIEW,
    VideoStatus.REQUIRES_FIXES,
)

CANCELLED_ERROR = "cancelled"


@dataclass
class PipelineRunResult:
    """Summary of one end-to-end run."""
    scored: int = 0
    planned: int = 0
    queued: List[str] = field(default_factory=list)
    ready: List[str] = field(default_factory=list)
    needs_review: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    published: List[PublishReceipt] = field(default_factory=list)
    lead_results: List[ViralAnalysisResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scored": self.scored,
            "planned": self.planned,
            "queued": list(self.queued),
            "ready": list(self.ready),
            "needs_review": list(self.needs_review),
            "failed": dict(self.failed),
            "published": [r.model_dump(mode="json") for r in self.published],
            "leads_created": sum(r.leads_created for r in self.lead_results),
            "hot_leads": sum(r.hot_leads for r in self.lead_results),
        }


class ContentPipeline:
    """
    Kernel-driven loop over one KernelContext.

    Args:
        context: Store, config and components to run on
        generators: Generators in call order; each sees the handles produced
            before it
        montage_generator: Replaces the 'video' generator for IMAGE_MONTAGE
            plans; without one, montage plans skip the video step
        enhancer: Rewrites weak listings between planning rounds
    """

    def __init__(
        self,
        context: KernelContext,
        generators: Sequence[Generator],
        montage_generator: Optional[Generator] = None,
        enhancer: Optional[ClaudeProductEnhancer] = None
    ):
        self.context = context
        self.generators = list(generators)
        self.montage_generator = montage_generator
        self.enhancer = enhancer
        self._pending: Dict[str, asyncio.Task] = {}
        self._cancel_requested: Set[str] = set()

    @property
    def generator_config(self):
        return self.context.config.generators

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def plan_opportunity(self, opportunity: Opportunity) -> Optional[ScriptPlan]:
        """
        Plan a script, enhancing the listing while the plan is weak.

        Runs at most `iteration_budget` planning rounds. The first round
        always plans the listing as scored; later rounds need an enhancer.
        The opportunity keeps the tier the budget already granted it.
        """
        ctx = self.context
        product = ctx.store.require(KIND_PRODUCT, opportunity.product_id)
        threshold = self.generator_config.enhance_below_viral_score

        plan = ctx.planner.plan(opportunity, product)
        rounds = 1
        while (
            self.enhancer is not None
            and rounds < self.generator_config.iteration_budget
            and (plan is None or plan.viral_score < threshold)
        ):
            try:
                product = await self.enhancer.enhance(product)
            except GeneratorError as e:
                logger.warning(f"Enhancement failed for {product.name}, keeping current plan: {e}")
                break

            ctx.store.put(KIND_PRODUCT, product)
            rescored = ctx.scorer.score_product(product)
            opportunity = rescored.model_copy(update={"recommended_tier": opportunity.recommended_tier})
            ctx.store.put(KIND_OPPORTUNITY, opportunity)

            plan = ctx.planner.plan(opportunity, product)
            rounds += 1
            logger.info(f"Enhancement round {rounds - 1} for {product.name}: "
                        f"viral {plan.viral_score if plan else 0:.1f}")

        return plan

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _generators_for(self, plan: ScriptPlan) -> List[Generator]:
        if plan.recommended_tier == ProductionTier.HUMAN_AVATAR:
            return list(self.generators)

        selected = []
        for generator in self.generators:
            if generator.kind != "video":
                selected.append(generator)
            elif self.montage_generator is not None:
                selected.append(self.montage_generator)
        return selected

    async def _generate(self, plan: ScriptPlan) -> Dict[str, ArtifactHandle]:
        artifacts: Dict[str, ArtifactHandle] = {}
        for generator in self._generators_for(plan):
            timeout = self.generator_config.timeout_for(generator.kind)
            try:
                handle = await asyncio.wait_for(generator.generate(plan, dict(artifacts)), timeout=timeout)
            except asyncio.TimeoutError:
                raise ProviderUnavailable(
                    f"{generator.kind} generator timed out after {timeout:g}s",
                    type(generator).__name__
                )
            artifacts[generator.kind] = handle
        return artifacts

    async def render(self, item_id: str) -> QueueItem:
        """
        Run the generators for a queued item and record the result.

        Returns:
            The item after the post-generation check, or in REQUIRES_FIXES
            with last_error set when a generator failed

        Raises:
            InvalidTransition: If the item cannot be (re)rendered
            Cancelled: If cancel(item_id) stopped the render
        """
        queue = self.context.queue
        item = queue.get(item_id)
        if item.status not in RENDERABLE_STATUSES:
            raise InvalidTransition(f"Cannot render item {item_id} in status {item.status.value}")
        if item.script_plan_id is None:
            raise InvalidTransition(f"Item {item_id} has no script plan to render")

        plan = self.context.store.require(KIND_SCRIPT_PLAN, item.script_plan_id)
        prior_status = item.status
        queue.start_generation(item_id)

        with kernel_span("render", item_id=item_id, tier=plan.recommended_tier.value):
            task = asyncio.ensure_future(self._generate(plan))
            self._pending[item_id] = task
            try:
                artifacts = await task
            except GeneratorError as e:
                return queue.mark_failed(item_id, str(e))
            except Exception as e:
                logger.error(f"Unexpected generator failure for {item_id}: {e}", exc_info=True)
                return queue.mark_failed(item_id, f"{type(e).__name__}: {e}")
            except asyncio.CancelledError:
                queue.restore(item_id, prior_status, CANCELLED_ERROR)
                if item_id in self._cancel_requested:
                    self._cancel_requested.discard(item_id)
                    raise Cancelled(item_id)
                raise
            finally:
                self._pending.pop(item_id, None)

        return queue.on_generated(item_id, artifacts, script_body=artifacts.get("script"))

    def cancel(self, item_id: str) -> bool:
        """Cancel a pending render. Returns False if none is running."""
        task = self._pending.get(item_id)
        if task is None or task.done():
            return False
        self._cancel_requested.add(item_id)
        task.cancel()
        logger.info(f"Cancelling render for {item_id}")
        return True

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish(self, item_id: str) -> PublishReceipt:
        """
        Publish an approved item. Publishing a published item returns the
        publisher's existing receipt.

        Raises:
            InvalidTransition: If the item is neither APPROVED nor PUBLISHED
        """
        queue = self.context.queue
        item = queue.get(item_id)
        if item.status not in (VideoStatus.APPROVED, VideoStatus.PUBLISHED):
            raise InvalidTransition(f"Cannot publish item {item_id} in status {item.status.value}")

        with kernel_span("publish", item_id=item_id):
            receipt = await self.context.publisher.publish(item)
            if item.status == VideoStatus.APPROVED:
                queue.mark_published(item_id, receipt)
        return receipt

    # ------------------------------------------------------------------
    # End to end
    # ------------------------------------------------------------------

    async def run(
        self,
        providers: Sequence[CatalogProvider],
        category: Optional[str] = None,
        limit: int = 50,
        top: int = 5,
        auto_approve: bool = False,
        engagement_source: Optional[SimulatedEngagementSource] = None,
        tenant_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> PipelineRunResult:
        """
        Score, plan, queue and render the top opportunities.

        With auto_approve, READY_FOR_PREVIEW items are approved and
        published, and when an engagement source is given its snapshot for
        each published video is fed to the bridge.
        """
        ctx = self.context
        result = PipelineRunResult()

        run = await ctx.scorer.score(providers, category=category, limit=limit, now=now)
        result.scored = len(run.opportunities)

        for opportunity in run.opportunities[:top]:
            plan = await self.plan_opportunity(opportunity)
            if plan is None:
                continue
            result.planned += 1

            try:
                item = ctx.queue.add(plan, tenant_id=tenant_id)
            except QueueFull as e:
                logger.warning(f"Stopping run: {e}")
                break
            result.queued.append(item.id)

            item = await self.render(item.id)
            if item.status == VideoStatus.REQUIRES_FIXES:
                result.failed[item.id] = item.last_error or "; ".join(item.compliance_issues)
                continue
            if item.status != VideoStatus.READY_FOR_PREVIEW:
                result.needs_review.append(item.id)
                continue
            result.ready.append(item.id)

            if not auto_approve:
                continue

            try:
                ctx.queue.approve(item.id, reviewer_notes="auto-approved")
            except ComplianceBlocked as e:
                result.needs_review.append(item.id)
                logger.warning(str(e))
                continue

            receipt = await self.publish(item.id)
            result.published.append(receipt)

            if engagement_source is not None:
                event = engagement_source.sample(receipt.video_id, timestamp=now)
                results = await ctx.bridge.process_events([event], tenant_id=tenant_id, now=now)
                result.lead_results.extend(results)

        logger.info(
            f"Run complete: {result.scored} scored, {result.planned} planned, "
            f"{len(result.ready)} ready, {len(result.published)} published"
        )
        return result
