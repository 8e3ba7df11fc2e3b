# econcal/schemas/event.py
"""
Canonical Calendar Event Schema.

Every source adapter (ForexFactory page, ForexFactory CSV export, Myfxbook
feed/page) produces CalendarEvent objects. The schema is the single shape the
quality gate, conflict detector, aggregator and delivery filter work with.

Events are immutable: a fresh object is built on every fetch and nothing
downstream mutates it.
"""

import hashlib
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field, field_validator

from econcal.ingestion.normalization.values import (
    EMPTY_MARKER,
    collapse_whitespace,
    has_real_value,
    normalize_value,
)

# Sanity range for absolute instants; anything outside is treated as unparseable
MIN_EVENT_YEAR = 2000
MAX_EVENT_YEAR = 2100


class Impact(str, Enum):
    """Impact levels published by the calendars."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        """Return the valid string values."""
        return tuple(member.value for member in cls)


class EventSource(str, Enum):
    """Originating adapter of an event or issue."""

    FOREXFACTORY = "ForexFactory"
    MYFXBOOK = "Myfxbook"
    # Synthetic source for cross-source findings
    MERGE = "Merge"


def iso_utc(value: datetime) -> str:
    """Format an aware datetime as a compact UTC ISO string (``...Z``)."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def coerce_utc(value: Any) -> datetime | None:
    """
    Coerce an ISO string or datetime into an aware UTC datetime.

    Naive datetimes are taken as UTC. Returns None for unparseable input and
    for instants outside the sanity year range.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    parsed = parsed.astimezone(UTC)

    if not MIN_EVENT_YEAR <= parsed.year <= MAX_EVENT_YEAR:
        return None
    return parsed


class CalendarEvent(BaseModel):
    """
    One scheduled or realized economic indicator release.

    Attributes:
        title: Event name, whitespace-collapsed
        currency: 3-letter code of the economic area
        impact: Impact string as published (High/Medium/Low after validation)
        time: Display time exactly as the source showed it
        time_iso: Absolute UTC instant, None when the source gave no concrete time
        forecast/previous/actual: Values, placeholders normalized to EMPTY_MARKER
        source: Originating adapter name
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    currency: str = ""
    impact: str = ""
    time: str = EMPTY_MARKER
    time_iso: datetime | None = None
    forecast: str = EMPTY_MARKER
    previous: str = EMPTY_MARKER
    actual: str = EMPTY_MARKER
    source: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def collapse_title(cls, v: Any) -> str:
        """Collapse whitespace in titles."""
        return collapse_whitespace(v if isinstance(v, str) else None)

    @field_validator("currency", "source", "impact", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> str:
        """Strip identifiers; enums are stored by value."""
        if v is None:
            return ""
        if isinstance(v, Enum):
            v = v.value
        return str(v).strip()

    @field_validator("time", mode="before")
    @classmethod
    def display_time(cls, v: Any) -> str:
        """Keep the display time, defaulting to the empty marker."""
        text = str(v).strip() if v is not None else ""
        return text or EMPTY_MARKER

    @field_validator("forecast", "previous", "actual", mode="before")
    @classmethod
    def normalize_values(cls, v: Any) -> str:
        """Replace placeholder spellings with the canonical empty marker."""
        return normalize_value(v)

    @field_validator("time_iso", mode="before")
    @classmethod
    def validate_time_iso(cls, v: Any) -> datetime | None:
        """Coerce to aware UTC; out-of-range or garbage becomes None."""
        return coerce_utc(v)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_result(self) -> bool:
        """True once ``actual`` holds real data (a realized event)."""
        return has_real_value(self.actual)

    @property
    def time_key(self) -> str:
        """UTC ISO instant when known, otherwise the display time."""
        if self.time_iso is not None:
            return iso_utc(self.time_iso)
        return self.time

    @property
    def event_id(self) -> str:
        """Deterministic identifier used to correlate issues with this event."""
        return compute_event_id(self)


def compute_event_id(event: CalendarEvent) -> str:
    """
    Derive the md5 identity of an event.

    The hash covers source, currency, title and the UTC instant (or display
    time). It is stable across runs for the same logical event but is never
    used as a long-term primary key.
    """
    key = f"{event.source}_{event.currency}_{event.title}_{event.time_key}"
    return hashlib.md5(key.encode("utf-8")).hexdigest()
