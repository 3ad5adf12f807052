"""
Preview Queue - compliance-gated review of generated videos.

The queue never mutates items itself: every operation builds a
QueueTransition and hands it to the record store, which checks the status
lattice and applies it atomically. Any edit re-runs the full compliance
validation in the same transition.

Status flow:
    GENERATING -> COMPLIANCE_REVIEW -> READY_FOR_PREVIEW -> APPROVED -> PUBLISHED
    NON_COMPLIANT validations send items to REQUIRES_FIXES; REJECTED is terminal.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..core.config import ComplianceConfig, KernelConfig
from ..core.errors import ComplianceBlocked, QueueFull
from ..core.models import (
    MANDATORY_DISCLOSURES,
    TERMINAL_STATUSES,
    Change,
    ComplianceStatus,
    ComplianceValidation,
    ContentPriority,
    FeedbackResponse,
    PublishReceipt,
    QueueItem,
    QueuePriority,
    QueueTransition,
    ScriptPlan,
    VideoStatus,
    apply_changes,
    utcnow,
)
from ..core.observability import kernel_span
from ..core.store import KIND_QUEUE_ITEM, RecordStore
from .compliance import ComplianceValidator, status_for
from .feedback_rules import FeedbackRuleSet, requires_regeneration

logger = logging.getLogger(__name__)

QUEUE_PRIORITY_FOR_PLAN = {
    ContentPriority.URGENT: QueuePriority.URGENT,
    ContentPriority.HIGH: QueuePriority.HIGH,
    ContentPriority.MEDIUM: QueuePriority.NORMAL,
    ContentPriority.LOW: QueuePriority.LOW,
}

STUCK_STATUSES = (VideoStatus.COMPLIANCE_REVIEW, VideoStatus.REQUIRES_FIXES)

AFFILIATE_DISCLOSURE_TEXT = "I earn a commission from purchases made through my link"


def script_from_plan(plan: ScriptPlan) -> Dict[str, Any]:
    """Script sections seeded from a plan, before the script generator runs."""
    cta = plan.script_elements.get("cta_elements", {})
    return {
        "hook": plan.hook,
        "statistical_hook": plan.statistical_hook,
        "emotional_triggers": list(plan.emotional_triggers),
        "mechanism": plan.mechanism_explanation,
        "social_proof": plan.script_elements.get("social_proof_angle", ""),
        "cta": cta.get("action", "Link in bio"),
        "affiliate_disclosure": AFFILIATE_DISCLOSURE_TEXT,
    }


def video_title(product_name: Optional[str], persona_type: Optional[str]) -> str:
    product_name = product_name or "Product"
    persona_type = persona_type or "persona"
    return f"{product_name} - {persona_type[:1].upper() + persona_type[1:]} Video"


class PreviewQueue:
    """
    Compliance state machine over queue items held in the record store.

    Usage:
        queue = PreviewQueue(store, config)
        item = queue.add(plan, {"persona": {"voice_type": "nurse"}})
        item = queue.on_generated(item.id, {"voice": "output/audio/x.mp3"})
        item = queue.approve(item.id, "Looks good")
    """

    def __init__(
        self,
        store: RecordStore,
        config: Optional[KernelConfig] = None,
        validator: Optional[ComplianceValidator] = None,
        feedback_rules: Optional[FeedbackRuleSet] = None
    ):
        self.store = store
        self.config = config or KernelConfig()
        self.validator = validator or ComplianceValidator(self.compliance_config)
        self.feedback_rules = feedback_rules or FeedbackRuleSet(self.config.feedback_rules)

    @property
    def compliance_config(self) -> ComplianceConfig:
        return self.config.compliance

    def get(self, item_id: str) -> QueueItem:
        """Raises NotFound when absent."""
        return self.store.require(KIND_QUEUE_ITEM, item_id)

    def items(self, status: Optional[VideoStatus] = None) -> List[QueueItem]:
        if status is None:
            return list(self.store.list(KIND_QUEUE_ITEM))
        return self.store.query(KIND_QUEUE_ITEM, status=status)

    def active_count(self) -> int:
        return self.store.count(KIND_QUEUE_ITEM, lambda item: item.status not in TERMINAL_STATUSES)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add(self, plan: Optional[ScriptPlan] = None, video_config: Optional[Dict[str, Any]] = None,
            tenant_id: Optional[str] = None) -> QueueItem:
        """
        Queue a video for generation.

        The item starts in GENERATING with the pre-check recorded and the
        mandatory disclosures required.

        Args:
            plan: Script plan the video is produced from
            video_config: Optional sections: persona, product, video_settings, script

        Raises:
            QueueFull: If max_queue_size active items are queued
        """
        video_config = video_config or {}
        if self.active_count() >= self.compliance_config.max_queue_size:
            raise QueueFull(f"Preview queue is full ({self.compliance_config.max_queue_size} active items)")

        product = dict(video_config.get("product") or {})
        persona = dict(video_config.get("persona") or {})
        script = video_config.get("script")

        if plan is not None:
            product.setdefault("id", plan.product_id)
            product.setdefault("name", plan.product_name)
            persona.setdefault("tier", plan.recommended_tier.value)
            if script is None:
                script = script_from_plan(plan)

        item = QueueItem(
            id=f"video_{uuid.uuid4().hex[:8]}",
            script_plan_id=plan.id if plan else None,
            tenant_id=tenant_id,
            title=video_title(product.get("name"), persona.get("voice_type")),
            priority=QUEUE_PRIORITY_FOR_PLAN[plan.priority] if plan else QueuePriority.NORMAL,
            persona_config=persona,
            product_data=product,
            video_config=dict(video_config.get("video_settings") or {}),
            script_content=dict(script or {}),
            required_disclosures=list(MANDATORY_DISCLOSURES),
            viral_potential=plan.viral_score if plan else 0.0,
        )

        disclosure = self.validator.disclosure_change(item)
        if disclosure is not None:
            item = apply_changes(item, [disclosure])

        precheck = self.validator.precheck(item)
        item = item.model_copy(update={
            "compliance_validation": precheck,
            "compliance_status": precheck.overall_status,
            "compliance_issues": precheck.issues_found,
        })

        with kernel_span("queue_add", item_id=item.id):
            stored = self.store.put(KIND_QUEUE_ITEM, item)

        logger.info(f"Added video {stored.id} to preview queue (compliance: {precheck.overall_status.value})")
        return stored

    def _revalidate(
        self,
        item: QueueItem,
        changes: Sequence[Change],
        check: Optional[Callable[[QueueItem], ComplianceValidation]] = None
    ) -> Tuple[List[Change], ComplianceValidation]:
        """Apply changes plus disclosure re-insertion and validate the result."""
        check = check or self.validator.full_validation
        changes = list(changes)
        edited = apply_changes(item, changes)
        disclosure = self.validator.disclosure_change(edited)
        if disclosure is not None:
            changes.append(disclosure)
            edited = apply_changes(edited, [disclosure])
        return changes, check(edited)

    def update(self, item_id: str, changes: Sequence[Change]) -> QueueItem:
        """
        Edit an item and re-validate compliance.

        An empty change list still re-validates.

        Raises:
            NotFound: If the item does not exist
            InvalidTransition: If the item is terminal
        """
        item = self.get(item_id)
        changes, validation = self._revalidate(item, changes)

        updated = self.store.advance(item_id, QueueTransition(
            status=status_for(validation.overall_status),
            reason="update",
            from_status=item.status,
            changes=changes,
            compliance_status=validation.overall_status,
            compliance_validation=validation,
            compliance_issues=validation.issues_found,
            required_disclosures=list(MANDATORY_DISCLOSURES),
        ))

        logger.info(f"Video {item_id} updated with compliance status: {validation.overall_status.value}")
        return updated

    def on_generated(self, item_id: str, artifacts: Dict[str, str],
                     script_body: Optional[str] = None) -> QueueItem:
        """
        Record generated artifacts and run the post-generation check.

        Raises:
            NotFound: If the item does not exist
            InvalidTransition: If the item is not GENERATING
        """
        item = self.get(item_id)
        body = [Change.from_key("script_body", script_body)] if script_body is not None else []
        changes, validation = self._revalidate(item, body, self.validator.post_generation_check)

        updated = self.store.advance(item_id, QueueTransition(
            status=status_for(validation.overall_status),
            reason="generated",
            from_status=VideoStatus.GENERATING,
            changes=changes,
            artifacts=artifacts,
            compliance_status=validation.overall_status,
            compliance_validation=validation,
            compliance_issues=validation.issues_found,
            regeneration_required=False,
            clear_last_error=True,
        ))

        logger.info(f"Video {item_id} generated: {updated.status.value}")
        return updated

    def process_feedback(self, item_id: str, feedback: str) -> FeedbackResponse:
        """
        Apply free-text reviewer feedback.

        NON_COMPLIANT results go to REQUIRES_FIXES; otherwise visual, persona
        or script content changes send the item back to GENERATING.
        """
        item = self.get(item_id)
        requested = self.feedback_rules.parse(feedback)
        regeneration = requires_regeneration(requested)
        changes, validation = self._revalidate(item, requested)

        if validation.overall_status == ComplianceStatus.NON_COMPLIANT:
            status = VideoStatus.REQUIRES_FIXES
        elif regeneration:
            status = VideoStatus.GENERATING
        else:
            status = status_for(validation.overall_status)

        updated = self.store.advance(item_id, QueueTransition(
            status=status,
            reason="feedback",
            from_status=item.status,
            changes=changes,
            compliance_status=validation.overall_status,
            compliance_validation=validation,
            compliance_issues=validation.issues_found,
            regeneration_required=regeneration,
        ))

        logger.info(f"Processed feedback for video {item_id}: {len(requested)} changes applied")
        return FeedbackResponse(
            item_id=item_id,
            original_feedback=feedback,
            changes_applied=[c.key for c in requested],
            compliance_revalidation=validation,
            new_status=updated.status,
            regeneration_required=regeneration,
        )

    def approve(self, item_id: str, reviewer_notes: Optional[str] = None) -> QueueItem:
        """
        Approve an item after the final compliance check.

        Raises:
            NotFound: If the item does not exist
            ComplianceBlocked: If the final check is not COMPLIANT
            InvalidTransition: If the item is not READY_FOR_PREVIEW
        """
        item = self.get(item_id)
        final = self.validator.final_check(item)

        if final.overall_status != ComplianceStatus.COMPLIANT:
            logger.warning(f"Approval blocked for {item_id}: {final.issues_found}")
            raise ComplianceBlocked(item_id, final.issues_found)

        approved = self.store.advance(item_id, QueueTransition(
            status=VideoStatus.APPROVED,
            reason="approve",
            from_status=item.status,
            compliance_status=final.overall_status,
            compliance_validation=final,
            compliance_issues=[],
            reviewer_notes=reviewer_notes,
            approval_date=utcnow(),
        ))

        logger.info(f"Video {item_id} approved for publication")
        return approved

    def reject(self, item_id: str, reason: str) -> QueueItem:
        rejected = self.store.advance(item_id, QueueTransition(
            status=VideoStatus.REJECTED,
            reason="reject",
            rejection_reason=reason,
        ))
        logger.info(f"Video {item_id} rejected: {reason}")
        return rejected

    def start_generation(self, item_id: str) -> QueueItem:
        """Move an item back to GENERATING ahead of a (re)render."""
        item = self.get(item_id)
        if item.status == VideoStatus.GENERATING:
            return item
        return self.store.advance(item_id, QueueTransition(
            status=VideoStatus.GENERATING,
            reason="regenerate",
            from_status=item.status,
        ))

    def mark_failed(self, item_id: str, error: str) -> QueueItem:
        """Generation failed: REQUIRES_FIXES with the error recorded."""
        failed = self.store.advance(item_id, QueueTransition(
            status=VideoStatus.REQUIRES_FIXES,
            reason="generation_failed",
            last_error=error,
        ))
        logger.warning(f"Video {item_id} generation failed: {error}")
        return failed

    def restore(self, item_id: str, status: VideoStatus, error: str) -> QueueItem:
        """Return an item to a prior status after a cancelled generation."""
        restored = self.store.advance(item_id, QueueTransition(
            status=status,
            reason="restore",
            last_error=error,
        ))
        logger.info(f"Video {item_id} restored to {status.value}: {error}")
        return restored

    def mark_published(self, item_id: str, receipt: PublishReceipt) -> QueueItem:
        published = self.store.advance(item_id, QueueTransition(
            status=VideoStatus.PUBLISHED,
            reason="publish",
            from_status=VideoStatus.APPROVED,
            artifacts={"published_video_id": receipt.video_id, "published_url": receipt.url},
        ))
        logger.info(f"Video {item_id} published as {receipt.video_id}")
        return published

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def alerts(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = now or utcnow()
        timeout_hours = self.compliance_config.compliance_timeout_hours
        cutoff = now - timedelta(hours=timeout_hours)

        alerts = []
        for item in self.store.list(KIND_QUEUE_ITEM):
            if item.status == VideoStatus.COMPLIANCE_REVIEW and item.created_at < cutoff:
                alerts.append({
                    "type": "compliance_timeout",
                    "video_id": item.id,
                    "message": f"Video {item.id} stuck in compliance review for {timeout_hours:g}+ hours",
                    "severity": "high",
                })

            if item.status == VideoStatus.REQUIRES_FIXES and item.compliance_issues:
                alerts.append({
                    "type": "compliance_issues",
                    "video_id": item.id,
                    "message": f"Video {item.id} has {len(item.compliance_issues)} compliance issues",
                    "issues": list(item.compliance_issues),
                    "severity": "medium",
                })

            if item.status == VideoStatus.REQUIRES_FIXES and item.last_error:
                alerts.append({
                    "type": "generation_failed",
                    "video_id": item.id,
                    "message": f"Video {item.id} generation failed: {item.last_error}",
                    "severity": "medium",
                })

        return alerts

    def health(self) -> Dict[str, Any]:
        """0.7 x compliance rate + 0.3 x share of items not stuck in review."""
        items = list(self.store.list(KIND_QUEUE_ITEM))
        if not items:
            return {"status": "healthy", "score": 1.0, "compliance_rate": 1.0, "efficiency_rate": 1.0, "issues": []}

        total = len(items)
        compliance_rate = sum(1 for i in items if i.compliance_status == ComplianceStatus.COMPLIANT) / total
        efficiency_rate = 1.0 - sum(1 for i in items if i.status in STUCK_STATUSES) / total
        score = compliance_rate * 0.7 + efficiency_rate * 0.3

        issues = []
        if compliance_rate < 0.8:
            issues.append("Low compliance rate - review content generation process")
        if efficiency_rate < 0.7:
            issues.append("High number of videos stuck in review - check compliance validation")

        if score < 0.6:
            status = "unhealthy"
        elif score < 0.8:
            status = "needs_attention"
        else:
            status = "healthy"

        return {
            "status": status,
            "score": score,
            "compliance_rate": compliance_rate,
            "efficiency_rate": efficiency_rate,
            "issues": issues,
        }

    def get_status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        items = list(self.store.list(KIND_QUEUE_ITEM))

        status_breakdown = {status.value: 0 for status in VideoStatus}
        compliance_breakdown = {status.value: 0 for status in ComplianceStatus}
        pending, ready = [], []

        for item in items:
            status_breakdown[item.status.value] += 1
            compliance_breakdown[item.compliance_status.value] += 1

            if item.status in STUCK_STATUSES:
                pending.append({
                    "video_id": item.id,
                    "title": item.title,
                    "status": item.status.value,
                    "compliance_issues": list(item.compliance_issues),
                    "last_error": item.last_error,
                    "created_at": item.created_at.isoformat(),
                })

            if item.status == VideoStatus.READY_FOR_PREVIEW and item.compliance_status == ComplianceStatus.COMPLIANT:
                ready.append({
                    "video_id": item.id,
                    "title": item.title,
                    "engagement_score": item.engagement_score,
                    "compliance_status": item.compliance_status.value,
                    "created_at": item.created_at.isoformat(),
                })

        return {
            "total_videos": len(items),
            "status_breakdown": status_breakdown,
            "compliance_breakdown": compliance_breakdown,
            "pending_compliance_review": pending,
            "ready_for_approval": ready,
            "compliance_alerts": self.alerts(now),
            "queue_health": self.health(),
        }

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Delete PUBLISHED/REJECTED items untouched for auto_cleanup_days."""
        now = now or utcnow()
        cutoff = now - timedelta(days=self.compliance_config.auto_cleanup_days)

        stale = [
            item.id for item in self.store.list(KIND_QUEUE_ITEM)
            if item.status in TERMINAL_STATUSES and item.updated_at < cutoff
        ]
        for item_id in stale:
            self.store.delete(KIND_QUEUE_ITEM, item_id)

        if stale:
            logger.info(f"Cleaned up {len(stale)} finished videos older than {self.compliance_config.auto_cleanup_days} days")
        return len(stale)
