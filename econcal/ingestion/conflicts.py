"""
Cross-source Conflict Detector.

Flags events that two sources describe with clearly different times. The
check is advisory: it reports disagreement and never merges or drops events.

Known limitation: title similarity is a positional character heuristic.
Abbreviations ("NFP" vs "Non-Farm Payrolls") score far below the threshold,
so such pairs are not compared: an NFP release listed under its abbreviation
by one source and in full by the other raises no conflict even when the two
times differ by more than five minutes. There is deliberately no
abbreviation table. Equivalent spellings ("Non-Farm Payrolls" vs
"Non Farm Payrolls") are compared as expected.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import timedelta

from econcal.schemas.event import CalendarEvent, EventSource
from econcal.schemas.quality import DataIssue, DataIssueType

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.7
MAX_TIME_DIFF_MINUTES = 5

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _clean(title: str) -> str:
    return _NON_ALNUM.sub("", (title or "").lower())


def title_similarity(title1: str, title2: str) -> float:
    """
    Score how alike two titles are, between 0 and 1.

    Exact match after cleanup scores 1.0; containment scores shorter/longer;
    otherwise the share of equal characters at equal positions.
    """
    t1, t2 = _clean(title1), _clean(title2)
    if t1 == t2:
        return 1.0

    longer, shorter = (t1, t2) if len(t1) > len(t2) else (t2, t1)
    if shorter in longer:
        return len(shorter) / len(longer)

    matches = sum(1 for a, b in zip(shorter, longer) if a == b)
    return matches / len(longer)


class ConflictDetector:
    """
    Pairwise time comparison of similar events from different sources.

    Args:
        similarity_threshold: Titles must score above this to be compared
        max_diff_minutes: Larger time differences raise a conflict
    """

    def __init__(
        self,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        max_diff_minutes: float = MAX_TIME_DIFF_MINUTES,
    ) -> None:
        self.similarity_threshold = similarity_threshold
        self.max_diff_minutes = max_diff_minutes

    def check_cross_source_conflicts(self, events: Iterable[CalendarEvent]) -> list[DataIssue]:
        """
        Compare every cross-source pair within each currency group.

        Returns:
            CONFLICT_BETWEEN_SOURCES issues (source "Merge"), possibly empty
        """
        by_currency: dict[str, list[CalendarEvent]] = defaultdict(list)
        for event in events:
            by_currency[event.currency].append(event)

        conflicts: list[DataIssue] = []
        for group in by_currency.values():
            for i, first in enumerate(group):
                for second in group[i + 1 :]:
                    issue = self._compare(first, second)
                    if issue is not None:
                        conflicts.append(issue)

        if conflicts:
            logger.info(f"Found {len(conflicts)} cross-source conflicts")
        return conflicts

    def _compare(self, first: CalendarEvent, second: CalendarEvent) -> DataIssue | None:
        if first.source == second.source:
            return None
        if title_similarity(first.title, second.title) <= self.similarity_threshold:
            return None
        if first.time_iso is None or second.time_iso is None:
            return None

        diff_minutes = abs(first.time_iso - second.time_iso) / timedelta(minutes=1)
        if diff_minutes <= self.max_diff_minutes:
            return None

        return DataIssue(
            event_id=None,
            source=EventSource.MERGE.value,
            type=DataIssueType.CONFLICT_BETWEEN_SOURCES,
            message=(
                f"Time conflict between sources: {first.source} vs {second.source} "
                f'for "{first.title}"'
            ),
            details={
                "event1": {"source": first.source, "title": first.title, "time_iso": first.time_key},
                "event2": {"source": second.source, "title": second.title, "time_iso": second.time_key},
                "diff_minutes": diff_minutes,
            },
        )


def check_cross_source_conflicts(events: Iterable[CalendarEvent]) -> list[DataIssue]:
    """Run the default conflict detector."""
    return ConflictDetector().check_cross_source_conflicts(events)
