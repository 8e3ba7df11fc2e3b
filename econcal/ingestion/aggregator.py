"""
Event Aggregator.

Merges the per-adapter outputs relevant to one subscriber:

1. Fetch the preferred sources concurrently (a failing source contributes nothing)
2. De-duplicate with a source-qualified key, so only repeats from the same
   source collapse and both sources' versions of a release are kept
3. Keep monitored currencies and the subscriber's local day (untimed kept)
4. With both sources present, report cross-source time conflicts
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from econcal.ingestion.adapters.base_adapter import BaseCalendarAdapter
from econcal.ingestion.conflicts import ConflictDetector
from econcal.ingestion.issue_log import IssueLog
from econcal.ingestion.normalization.time_parsing import select_local_day
from econcal.ingestion.normalization.values import collapse_whitespace, has_real_value
from econcal.schemas.event import CalendarEvent, Impact
from econcal.schemas.subscriber import SubscriberPreferences

logger = logging.getLogger(__name__)

# Near-simultaneous repeats within one source share a bucket
DEDUP_BUCKET_MINUTES = 5


def aggregation_key(event: CalendarEvent) -> str:
    """
    Source-qualified de-duplication key.

    md5 over source, UTC time floored to 5 minutes (or the display time),
    currency and the lower-cased title.
    """
    if event.time_iso is not None:
        instant = event.time_iso.astimezone(UTC)
        floored = instant.replace(
            minute=instant.minute - instant.minute % DEDUP_BUCKET_MINUTES,
            second=0,
            microsecond=0,
        )
        time_key = floored.strftime("%Y-%m-%dT%H:%M")
    else:
        time_key = event.time
    title = collapse_whitespace(event.title.lower())
    return hashlib.md5(f"{event.source}_{time_key}_{event.currency}_{title}".encode("utf-8")).hexdigest()


def _has_data(event: CalendarEvent) -> bool:
    return event.is_result or has_real_value(event.forecast)


def prefer_replacement(existing: CalendarEvent, candidate: CalendarEvent) -> bool:
    """Whether a same-source repeat should replace the kept event."""
    if _has_data(candidate) and not _has_data(existing):
        return True
    return candidate.impact == Impact.HIGH.value and existing.impact != Impact.HIGH.value


def deduplicate(events: list[CalendarEvent]) -> list[CalendarEvent]:
    """Collapse same-source repeats, keeping the more useful version in first-seen order."""
    kept: dict[str, CalendarEvent] = {}
    for event in events:
        key = aggregation_key(event)
        existing = kept.get(key)
        if existing is None:
            kept[key] = event
        elif prefer_replacement(existing, event):
            logger.debug(f"Replaced duplicate within {event.source}: {existing.title} -> {event.title}")
            kept[key] = event
    return list(kept.values())


class EventAggregator:
    """
    Per-subscriber merge of the ForexFactory and Myfxbook adapters.

    Args:
        forexfactory: Adapter serving ForexFactory events
        myfxbook: Adapter serving Myfxbook events
        issue_log: Destination of cross-source conflicts
        conflict_detector: Cross-source check
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        forexfactory: BaseCalendarAdapter,
        myfxbook: BaseCalendarAdapter,
        *,
        issue_log: IssueLog | None = None,
        conflict_detector: ConflictDetector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.forexfactory = forexfactory
        self.myfxbook = myfxbook
        self.issue_log = issue_log or IssueLog()
        self.conflict_detector = conflict_detector or ConflictDetector()
        self._clock = clock or (lambda: datetime.now(UTC))

    async def aggregate(
        self,
        prefs: SubscriberPreferences,
        for_tomorrow: bool = False,
        now: datetime | None = None,
    ) -> list[CalendarEvent]:
        """
        Build the merged event list of one subscriber.

        Args:
            prefs: Resolved subscriber preferences
            for_tomorrow: Tomorrow's events instead of today's
            now: Reference instant (defaults to the aggregator clock)

        Returns:
            De-duplicated events of the subscriber's local day
        """
        now = now or self._clock()
        day_offset = 1 if for_tomorrow else 0
        label = "Tomorrow" if for_tomorrow else "Today"

        try:
            ff_events, mfb_events = await asyncio.gather(
                self._safe_day(self.forexfactory, prefs.news_source.includes_forexfactory, day_offset, prefs.timezone),
                self._safe_day(self.myfxbook, prefs.news_source.includes_myfxbook, day_offset, prefs.timezone),
            )
            logger.debug(
                f"Source: {prefs.news_source.value} | {label} | "
                f"ForexFactory: {len(ff_events)}, Myfxbook: {len(mfb_events)}"
            )

            all_events = ff_events + mfb_events
            merged = deduplicate(all_events)
            merged = [event for event in merged if prefs.follows(event.currency)]
            merged = select_local_day(merged, prefs.timezone, now=now, day_offset=day_offset)

            if ff_events and mfb_events:
                conflicts = self.conflict_detector.check_cross_source_conflicts(all_events)
                if conflicts:
                    logger.info(f"Found {len(conflicts)} cross-source conflicts")
                    self.issue_log.submit(conflicts)

            logger.info(f"{label} ({prefs.timezone}): {len(merged)} events")
            return merged
        except Exception as e:
            logger.error(f"Aggregation failed, falling back to ForexFactory only: {e}")
            fallback = await self._safe_day(self.forexfactory, True, day_offset, prefs.timezone)
            return [event for event in fallback if prefs.follows(event.currency)]

    async def _safe_day(
        self,
        adapter: BaseCalendarAdapter,
        enabled: bool,
        day_offset: int,
        tz: str,
    ) -> list[CalendarEvent]:
        if not enabled:
            return []
        try:
            return await adapter.get_events_for_day(day_offset, tz)
        except Exception as e:
            logger.error(f"Error fetching {adapter.source_id} events: {e}")
            return []
