"""
Unit tests for the delivery pipeline.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from econcal.ingestion.delivery import DeliveryMode
from econcal.ingestion.pipeline import DeliveryPipeline
from econcal.schemas.quality import DataIssueType
from econcal.schemas.subscriber import SubscriberPreferences

# =============================================================================
# FIXTURES
# =============================================================================


def make_pipeline(events, browser=None):
    """Create a pipeline over a mocked aggregator."""
    aggregator = MagicMock()
    aggregator.aggregate = AsyncMock(return_value=events)
    aggregator.forexfactory.close = AsyncMock()
    aggregator.myfxbook.close = AsyncMock()
    return DeliveryPipeline(aggregator, browser=browser)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestDeliveryPipeline:
    """Tests for DeliveryPipeline."""

    def test_run_filters_aggregated_events(self, create_event, now):
        """Should deliver upcoming events and skip stale ones."""
        upcoming = create_event(time_iso=now + timedelta(hours=1))
        stale = create_event(title="GDP q/q", time_iso=now - timedelta(hours=3))
        pipeline = make_pipeline([upcoming, stale])

        result = asyncio.run(pipeline.run(SubscriberPreferences(), now=now))

        assert result.deliver == [upcoming]
        assert [issue.type for issue in result.skipped] == [DataIssueType.PAST_TOO_FAR]
        pipeline.aggregator.aggregate.assert_awaited_once()

    def test_run_forwards_day_and_mode(self, create_event, now):
        """Should pass the day to the aggregator and apply the chosen mode."""
        result_event = create_event(time_iso=now - timedelta(minutes=30), actual="0.4%")
        pipeline = make_pipeline([result_event])
        prefs = SubscriberPreferences()

        result = asyncio.run(
            pipeline.run(prefs, mode=DeliveryMode.AI_RESULTS, for_tomorrow=True, now=now)
        )

        pipeline.aggregator.aggregate.assert_awaited_once_with(prefs, for_tomorrow=True, now=now)
        assert result.deliver == [result_event]

    def test_close_without_browser(self):
        """Should close both adapters and drain the issue log."""
        pipeline = make_pipeline([])
        asyncio.run(pipeline.close())
        pipeline.aggregator.forexfactory.close.assert_awaited_once()
        pipeline.aggregator.myfxbook.close.assert_awaited_once()
        pipeline.aggregator.issue_log.close.assert_called_once()

    def test_close_with_browser(self):
        """Should also close the shared browser."""
        browser = MagicMock()
        browser.close = AsyncMock()
        pipeline = make_pipeline([], browser=browser)
        asyncio.run(pipeline.close())
        browser.close.assert_awaited_once()
