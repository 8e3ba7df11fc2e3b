"""Canonical schemas shared by every pipeline stage."""

from .event import (
    CalendarEvent,
    EventSource,
    Impact,
    coerce_utc,
    compute_event_id,
    iso_utc,
)
from .quality import (
    CRITICAL_ISSUE_TYPES,
    DataIssue,
    DataIssueType,
    FilterResult,
    ValidationResult,
)
from .subscriber import NewsSource, SubscriberPreferences

__all__ = [
    "CalendarEvent",
    "EventSource",
    "Impact",
    "coerce_utc",
    "compute_event_id",
    "iso_utc",
    "CRITICAL_ISSUE_TYPES",
    "DataIssue",
    "DataIssueType",
    "FilterResult",
    "ValidationResult",
    "NewsSource",
    "SubscriberPreferences",
]
