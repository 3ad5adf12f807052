"""
Tests for the publisher and nurture sinks.
"""

from unittest.mock import MagicMock

import pytest

from ghostautomation.core.models import AccountType, EngagementType, Lead, LeadTier, QueueItem
from ghostautomation.services.sinks import (
    NURTURE_TABLE,
    InMemoryNurtureSink,
    InMemoryPublisher,
    SupabaseNurtureSink,
    nurture_task,
)


@pytest.fixture
def mock_db():
    """Create a mock Supabase client."""
    return MagicMock()


def _lead():
    return Lead(
        id="lead-1",
        source_video_id="tt_1",
        tenant_id="acme",
        engagement_type=EngagementType.LINK_CLICK,
        account_type=AccountType.BUSINESS,
        qualification_score=0.83,
        tier=LeadTier.HOT,
        lead_category="business_owner",
    )


class TestInMemoryPublisher:
    @pytest.mark.asyncio
    async def test_publish_is_idempotent(self):
        publisher = InMemoryPublisher(account="glowshop")
        item = QueueItem(id="video_1")

        first = await publisher.publish(item)
        second = await publisher.publish(item)

        assert first == second
        assert first.url == f"https://www.tiktok.com/@glowshop/video/{first.video_id}"
        assert len(publisher.receipts) == 1

    @pytest.mark.asyncio
    async def test_distinct_items_distinct_videos(self):
        publisher = InMemoryPublisher()
        a = await publisher.publish(QueueItem(id="video_1"))
        b = await publisher.publish(QueueItem(id="video_2"))
        assert a.video_id != b.video_id


class TestNurture:
    def test_nurture_task_row(self):
        row = nurture_task(_lead(), "hot_lead_sequence", "urgent")

        assert row["lead_id"] == "lead-1"
        assert row["lead_tier"] == "hot"
        assert row["tenant_id"] == "acme"
        assert row["payload"]["lead_source"] == "viral_video"
        assert row["payload"]["qualification"] is None

    @pytest.mark.asyncio
    async def test_in_memory_sink_accepts_duplicates(self):
        sink = InMemoryNurtureSink()
        await sink.enqueue(_lead(), "hot_lead_sequence", "urgent")
        await sink.enqueue(_lead(), "hot_lead_sequence", "urgent")
        assert len(sink.tasks) == 2

    @pytest.mark.asyncio
    async def test_supabase_sink_inserts(self, mock_db):
        sink = SupabaseNurtureSink(client=mock_db)

        await sink.enqueue(_lead(), "hot_lead_sequence", "urgent")

        mock_db.table.assert_called_with(NURTURE_TABLE)
        row = mock_db.table.return_value.insert.call_args[0][0]
        assert row["nurture_type"] == "hot_lead_sequence"
        assert row["priority"] == "urgent"
        mock_db.table.return_value.insert.return_value.execute.assert_called_once()
