"""
Outbound sinks: the Publisher that posts approved videos and the Nurture
sink that receives qualified leads.

Both are suspension points for the kernel, so their interfaces are async.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from supabase import Client

from ..core.database import get_supabase_client
from ..core.models import Lead, PublishReceipt, QueueItem
from .opportunity_scorer import KERNEL_NAMESPACE

logger = logging.getLogger(__name__)

NURTURE_TABLE = "nurture_tasks"


# ============================================================================
# Publisher
# ============================================================================

class Publisher(ABC):
    """Posts an approved queue item. Must be idempotent per item id."""

    @abstractmethod
    async def publish(self, item: QueueItem) -> PublishReceipt:
        pass


class InMemoryPublisher(Publisher):
    """
    Publisher that records receipts instead of posting.

    Publishing the same item twice returns the first receipt.
    """

    def __init__(self, account: str = "ghostautomation"):
        self.account = account
        self.receipts: Dict[str, PublishReceipt] = {}

    async def publish(self, item: QueueItem) -> PublishReceipt:
        if item.id in self.receipts:
            logger.debug(f"Item {item.id} already published, returning existing receipt")
            return self.receipts[item.id]

        video_id = str(uuid.uuid5(KERNEL_NAMESPACE, f"publish:{item.id}").int)[:19]
        receipt = PublishReceipt(
            item_id=item.id,
            video_id=video_id,
            url=f"https://www.tiktok.com/@{self.account}/video/{video_id}",
        )
        self.receipts[item.id] = receipt
        logger.info(f"Published {item.id} as {video_id}")
        return receipt


# ============================================================================
# Nurture sink
# ============================================================================

def nurture_task(lead: Lead, nurture_type: str, priority: str) -> Dict[str, Any]:
    """Row handed to the nurture system for one lead."""
    return {
        "lead_id": lead.id,
        "source_video_id": lead.source_video_id,
        "tenant_id": lead.tenant_id,
        "nurture_type": nurture_type,
        "priority": priority,
        "lead_tier": lead.tier.value,
        "qualification_score": lead.qualification_score,
        "payload": {
            "description": f"Execute {nurture_type} for qualified lead",
            "lead_category": lead.lead_category,
            "qualification": lead.qualification.model_dump(mode="json") if lead.qualification else None,
            "service_recommendations": [s.model_dump(mode="json") for s in lead.recommended_services],
            "lead_source": "viral_video",
        },
    }


class NurtureSink(ABC):
    """Receives qualified leads. Must accept duplicates."""

    @abstractmethod
    async def enqueue(self, lead: Lead, nurture_type: str, priority: str) -> None:
        pass


class InMemoryNurtureSink(NurtureSink):
    """Keeps nurture tasks in a list (demos and tests)."""

    def __init__(self):
        self.tasks: List[Dict[str, Any]] = []

    async def enqueue(self, lead: Lead, nurture_type: str, priority: str) -> None:
        self.tasks.append(nurture_task(lead, nurture_type, priority))


class SupabaseNurtureSink(NurtureSink):
    """Inserts nurture tasks into the `nurture_tasks` table."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_client()

    async def enqueue(self, lead: Lead, nurture_type: str, priority: str) -> None:
        row = nurture_task(lead, nurture_type, priority)
        self.client.table(NURTURE_TABLE).insert(row).execute()
        logger.info(f"Queued {nurture_type} ({priority}) for lead {lead.id}")
