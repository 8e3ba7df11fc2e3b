"""
Delivery Filter.

Selects which validated events may reach a consumer. Each consumption mode
is a policy object with a common ``evaluate(event, now)`` contract returning
None (keep) or the DataIssue explaining the exclusion:

- general: on-demand views and scheduler checks (2h or 24h past cutoff)
- reminder: periodic reminders (2h past cutoff)
- ai_forecast: pre-event analysis, strictly future events only
- ai_results: post-event analysis, needs real actual and forecast values
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from enum import Enum

from econcal.ingestion.normalization.values import has_real_value
from econcal.schemas.event import CalendarEvent
from econcal.schemas.quality import DataIssue, DataIssueType, FilterResult

logger = logging.getLogger(__name__)

# Scheduler checks must not resurface stale events
SCHEDULER_PAST_THRESHOLD = timedelta(hours=2)
# On-demand daily views keep events through the day they occurred
DAILY_PAST_THRESHOLD = timedelta(hours=24)


class DeliveryMode(str, Enum):
    """Consumption modes of the delivery list."""

    REMINDER = "reminder"
    AI_FORECAST = "ai_forecast"
    AI_RESULTS = "ai_results"
    GENERAL = "general"


def _issue(event: CalendarEvent, issue_type: DataIssueType, message: str, /, **details) -> DataIssue:
    return DataIssue(
        event_id=event.event_id,
        source=event.source or "unknown",
        type=issue_type,
        message=message,
        details=details,
    )


# =============================================================================
# POLICIES
# =============================================================================


class DeliveryPolicy:
    """
    Common evaluation order shared by every mode.

    1. Untimed events are excluded unless the mode accepts them
    2. Events past the mode threshold are excluded unless already realized
    3. Mode-specific requirements
    """

    mode: DeliveryMode = DeliveryMode.GENERAL
    past_threshold: timedelta | None = SCHEDULER_PAST_THRESHOLD

    def evaluate(self, event: CalendarEvent, now: datetime) -> DataIssue | None:
        if event.time_iso is None:
            if not self.accepts_untimed(event):
                return _issue(
                    event,
                    DataIssueType.NO_TIME,
                    f"Event has no valid time: {event.title}",
                    event=event.model_dump(mode="json"),
                )
        elif self.past_threshold is not None:
            elapsed = now - event.time_iso
            if elapsed > self.past_threshold and not event.is_result:
                elapsed_minutes = elapsed / timedelta(minutes=1)
                return _issue(
                    event,
                    DataIssueType.PAST_TOO_FAR,
                    f"Event is too far in the past: {elapsed_minutes:.0f} minutes ago",
                    time_iso=event.time_key,
                    diff_minutes=round(elapsed_minutes, 1),
                )

        return self.check_mode(event, now)

    def accepts_untimed(self, event: CalendarEvent) -> bool:
        return False

    def check_mode(self, event: CalendarEvent, now: datetime) -> DataIssue | None:
        return None


class GeneralPolicy(DeliveryPolicy):
    """On-demand views (24h cutoff) or scheduler checks (2h cutoff)."""

    mode = DeliveryMode.GENERAL

    def __init__(self, for_scheduler: bool = True) -> None:
        self.for_scheduler = for_scheduler
        self.past_threshold = SCHEDULER_PAST_THRESHOLD if for_scheduler else DAILY_PAST_THRESHOLD


class ReminderPolicy(DeliveryPolicy):
    mode = DeliveryMode.REMINDER


class AiForecastPolicy(DeliveryPolicy):
    """Forecast analysis only makes sense before the release."""

    mode = DeliveryMode.AI_FORECAST

    def check_mode(self, event: CalendarEvent, now: datetime) -> DataIssue | None:
        if event.time_iso is not None and event.time_iso <= now:
            return _issue(
                event,
                DataIssueType.PAST_TOO_FAR,
                "Event is not in the future (forecast analysis requires future events)",
                time_iso=event.time_key,
            )
        return None


class AiResultsPolicy(DeliveryPolicy):
    """Result analysis needs both the actual and the forecast to compare."""

    mode = DeliveryMode.AI_RESULTS
    past_threshold = None

    def accepts_untimed(self, event: CalendarEvent) -> bool:
        # Realized events may lack a clean scheduled time
        return event.is_result

    def check_mode(self, event: CalendarEvent, now: datetime) -> DataIssue | None:
        has_actual = event.is_result
        has_forecast = has_real_value(event.forecast)
        if has_actual and has_forecast:
            return None
        return _issue(
            event,
            DataIssueType.MISSING_REQUIRED_FIELD,
            "Event missing actual or forecast data (result analysis requires both)",
            event=event.model_dump(mode="json"),
            has_actual=has_actual,
            has_forecast=has_forecast,
        )


def policy_for(mode: DeliveryMode | str = DeliveryMode.GENERAL, for_scheduler: bool = True) -> DeliveryPolicy:
    """Select the policy of a delivery mode."""
    mode = DeliveryMode(mode)
    if mode == DeliveryMode.GENERAL:
        return GeneralPolicy(for_scheduler=for_scheduler)
    if mode == DeliveryMode.REMINDER:
        return ReminderPolicy()
    if mode == DeliveryMode.AI_FORECAST:
        return AiForecastPolicy()
    return AiResultsPolicy()


# =============================================================================
# FILTER
# =============================================================================


def filter_for_delivery(
    events: Iterable[CalendarEvent],
    mode: DeliveryMode | str = DeliveryMode.GENERAL,
    now: datetime | None = None,
    for_scheduler: bool = True,
) -> FilterResult:
    """
    Split events into the deliver list and the skipped issues.

    Args:
        events: Validated events
        mode: Consumption mode (default general)
        now: Reference instant (defaults to the current UTC time)
        for_scheduler: General mode only; True applies the 2h past cutoff, False the 24h one

    Returns:
        FilterResult pairing every exclusion with its issue
    """
    policy = policy_for(mode, for_scheduler)
    now = now or datetime.now(UTC)
    result = FilterResult()

    for event in events:
        issue = policy.evaluate(event, now)
        if issue is None:
            result.deliver.append(event)
        else:
            logger.debug(
                f"Filtered out ({issue.type.value}): {event.currency} '{event.title}' - {issue.message}"
            )
            result.skipped.append(issue)

    logger.info(
        f"Delivery filter ({policy.mode.value}): {len(result.deliver)} to deliver, "
        f"{len(result.skipped)} skipped"
    )
    return result
