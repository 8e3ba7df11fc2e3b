"""
Quality Gate.

Validates and de-duplicates one adapter batch before it is cached. Issues
are collected for every event, including the ones that end up excluded:

1. Required fields (title, currency, source, impact) -> MISSING_REQUIRED_FIELD
2. Impact outside High/Medium/Low -> INVALID_RANGE (advisory)
3. No absolute time -> NO_TIME (advisory)
4. Time more than two days away from now -> TIME_INCONSISTENCY (advisory)
5. Repeat of an already accepted event -> DUPLICATE_EVENT (always excluded)

An event is valid iff it is not a duplicate and has no missing required field.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from econcal.ingestion.normalization.values import is_placeholder
from econcal.schemas.event import CalendarEvent, Impact
from econcal.schemas.quality import DataIssue, DataIssueType, ValidationResult

logger = logging.getLogger(__name__)

MAX_DAYS_FROM_NOW = 2
REQUIRED_FIELDS = ("title", "currency", "source", "impact")


def dedup_key(event: CalendarEvent) -> str:
    """Intra-source duplicate key: source, currency, title and instant (or display time)."""
    return f"{event.source}_{event.currency}_{event.title}_{event.time_key}"


def _issue_source(event: CalendarEvent) -> str:
    return event.source or "unknown"


class QualityGate:
    """
    Validation and intra-source de-duplication of raw adapter output.

    Args:
        max_days_from_now: Allowed distance of an event from now before it is flagged
        clock: Returns the current aware UTC time; injectable for tests
    """

    def __init__(
        self,
        max_days_from_now: float = MAX_DAYS_FROM_NOW,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.max_days_from_now = max_days_from_now
        self._clock = clock or (lambda: datetime.now(UTC))

    def check_raw_and_normalize(
        self,
        events: Iterable[CalendarEvent],
        now: datetime | None = None,
    ) -> ValidationResult:
        """
        Run every check over a batch.

        Args:
            events: Freshly parsed events of one adapter fetch
            now: Reference instant (defaults to the gate clock)

        Returns:
            ValidationResult with the valid events and all issues raised
        """
        now = now or self._clock()
        result = ValidationResult()
        accepted: dict[str, CalendarEvent] = {}
        total = 0

        for event in events:
            total += 1
            event_id = event.event_id
            source = _issue_source(event)
            event_issues: list[DataIssue] = []

            # 1. Required fields
            missing = [name for name in REQUIRED_FIELDS if is_placeholder(getattr(event, name))]
            if missing:
                event_issues.append(
                    DataIssue(
                        event_id=event_id,
                        source=source,
                        type=DataIssueType.MISSING_REQUIRED_FIELD,
                        message=f"Missing required fields: {', '.join(missing)}",
                        details={"missing_fields": missing, "event": event.model_dump(mode="json")},
                    )
                )

            # 2. Impact value
            if not is_placeholder(event.impact) and event.impact not in Impact.values():
                event_issues.append(
                    DataIssue(
                        event_id=event_id,
                        source=source,
                        type=DataIssueType.INVALID_RANGE,
                        message=f"Invalid impact value: {event.impact}",
                        details={"impact": event.impact, "valid_values": list(Impact.values())},
                    )
                )

            # 3. Recommended time
            if event.time_iso is None:
                event_issues.append(
                    DataIssue(
                        event_id=event_id,
                        source=source,
                        type=DataIssueType.NO_TIME,
                        message="Event is missing time_iso (recommended field)",
                        details={"event": event.model_dump(mode="json")},
                    )
                )
            else:
                # 4. Time window
                diff_days = abs((event.time_iso - now) / timedelta(days=1))
                if diff_days > self.max_days_from_now:
                    event_issues.append(
                        DataIssue(
                            event_id=event_id,
                            source=source,
                            type=DataIssueType.TIME_INCONSISTENCY,
                            message=f"Event time is too far from now: {diff_days:.1f} days",
                            details={"time_iso": event.time_key, "diff_days": round(diff_days, 3)},
                        )
                    )

            # 5. Duplicates within the batch
            key = dedup_key(event)
            existing = accepted.get(key)
            if existing is not None:
                event_issues.append(
                    DataIssue(
                        event_id=event_id,
                        source=source,
                        type=DataIssueType.DUPLICATE_EVENT,
                        message=f"Duplicate event detected: {event.title}",
                        details={
                            "existing_event": {"title": existing.title, "time": existing.time_key},
                            "current_event": {"title": event.title, "time": event.time_key},
                        },
                    )
                )
                result.issues.extend(event_issues)
                continue

            # 6. Only missing required fields exclude
            if not any(i.type == DataIssueType.MISSING_REQUIRED_FIELD for i in event_issues):
                result.valid.append(event)
                accepted[key] = event

            result.issues.extend(event_issues)

        logger.info(
            f"Validation complete: {len(result.valid)}/{total} valid, {len(result.issues)} issues"
        )
        if result.issues:
            summary = Counter(issue.type.value for issue in result.issues)
            logger.debug(f"Issue summary: {dict(summary)}")

        return result


def check_raw_and_normalize(
    events: Iterable[CalendarEvent],
    now: datetime | None = None,
) -> ValidationResult:
    """Run the default quality gate over a batch."""
    return QualityGate().check_raw_and_normalize(events, now=now)
