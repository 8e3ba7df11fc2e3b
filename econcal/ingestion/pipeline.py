"""
Delivery Pipeline.

Chains aggregation and the delivery filter: the deliver list of the result
is what the messaging layer formats and sends.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from econcal.ingestion.aggregator import EventAggregator
from econcal.ingestion.browser import BrowserCoordinator
from econcal.ingestion.delivery import DeliveryMode, filter_for_delivery
from econcal.schemas.quality import FilterResult
from econcal.schemas.subscriber import SubscriberPreferences

logger = logging.getLogger(__name__)


class DeliveryPipeline:
    """
    End-to-end selection of events for one subscriber.

    Args:
        aggregator: Configured EventAggregator
        browser: Shared browser of the page adapters, closed with the pipeline
    """

    def __init__(
        self,
        aggregator: EventAggregator,
        browser: BrowserCoordinator | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.browser = browser

    async def run(
        self,
        prefs: SubscriberPreferences,
        mode: DeliveryMode | str = DeliveryMode.GENERAL,
        for_scheduler: bool = True,
        for_tomorrow: bool = False,
        now: datetime | None = None,
    ) -> FilterResult:
        """
        Aggregate and filter.

        Args:
            prefs: Resolved subscriber preferences
            mode: Delivery mode
            for_scheduler: Scheduler tick (True) or on-demand view (False)
            for_tomorrow: Tomorrow's events instead of today's
            now: Reference instant shared by both stages

        Returns:
            FilterResult with the deliver list and skipped issues
        """
        events = await self.aggregator.aggregate(prefs, for_tomorrow=for_tomorrow, now=now)
        result = filter_for_delivery(events, mode=mode, now=now, for_scheduler=for_scheduler)
        logger.info(
            f"Pipeline ({DeliveryMode(mode).value}): {len(events)} aggregated, "
            f"{len(result.deliver)} delivered"
        )
        return result

    async def close(self) -> None:
        """Close both adapters and the shared browser, then drain the issue log."""
        await self.aggregator.forexfactory.close()
        await self.aggregator.myfxbook.close()
        if self.browser is not None:
            await self.browser.close()
        await asyncio.to_thread(self.aggregator.issue_log.close)
