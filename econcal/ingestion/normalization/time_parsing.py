"""
Calendar Time Parsing.

Turns the display times shown by each calendar into absolute UTC instants.
Display times are interpreted in the source's IANA zone (fixed per source, or
detected from the source's own settings) and combined with the calendar date
of the page being parsed. Anything that is not a concrete clock time yields
None rather than a guessed instant.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime, time, timedelta
from typing import Iterable, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Kyiv"

MIN_YEAR = 2000
MAX_YEAR = 2100

# GMT offsets the ForexFactory settings page is known to report.
# Offsets outside this table fall back to DEFAULT_TIMEZONE (approximation).
OFFSET_TO_ZONE: dict[str, str] = {
    "+02:00": "Europe/Kyiv",
    "+03:00": "Europe/Moscow",
    "+00:00": "Europe/London",
    "+01:00": "Europe/Paris",
    "-05:00": "America/New_York",
    "-08:00": "America/Los_Angeles",
    "+08:00": "Asia/Shanghai",
    "+09:00": "Asia/Tokyo",
}

# "(GMT+02:00) Bucharest, Kyiv" as rendered by the timezone settings page
GMT_LABEL_PATTERN = re.compile(r"\(GMT([+-]\d{2}:\d{2})\)\s*([A-Za-z\s,]+)")

_CLOCK_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*([ap]m)$", re.IGNORECASE)
_CLOCK_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_MONTH_DAY_CLOCK = re.compile(
    r"^([A-Za-z]{3})[a-z]*\.?\s+(\d{1,2}),?\s+(\d{1,2}):(\d{2})$"
)

_MONTHS = {
    name: index
    for index, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}

# Cells that mean "same time as the row above"
_BLANK_TIME_CELLS = ("", "—")

T = TypeVar("T")


# =============================================================================
# ZONES
# =============================================================================


def resolve_zone(tz_name: str | None, fallback: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """
    Resolve an IANA zone name, falling back when it is unknown or empty.

    Args:
        tz_name: IANA zone name (e.g. "Europe/Kyiv")
        fallback: Zone used when tz_name is missing or invalid

    Returns:
        ZoneInfo instance
    """
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone '{tz_name}', using {fallback}")
    return ZoneInfo(fallback)


def zone_for_gmt_offset(offset: str | None) -> str:
    """Map a "+HH:MM" offset to the IANA zone the source most likely uses."""
    if not offset:
        return DEFAULT_TIMEZONE
    return OFFSET_TO_ZONE.get(offset.strip(), DEFAULT_TIMEZONE)


def zone_from_gmt_label(text: str) -> str:
    """
    Detect the source zone from a settings page text.

    Returns DEFAULT_TIMEZONE when no "(GMT+HH:MM) City" label is present.
    """
    match = GMT_LABEL_PATTERN.search(text or "")
    if not match:
        logger.warning(f"Could not detect source timezone, using {DEFAULT_TIMEZONE}")
        return DEFAULT_TIMEZONE
    offset, city = match.group(1), match.group(2).strip()
    zone = zone_for_gmt_offset(offset)
    logger.info(f"Source timezone detected: GMT{offset} ({city}) -> {zone}")
    return zone


# =============================================================================
# CLOCK PARSING
# =============================================================================


def is_special_time_string(raw: str | None) -> bool:
    """True for time cells that are not a concrete clock time."""
    text = (raw or "").strip().lower()
    return (
        not text
        or text == "tentative"
        or text == "all day"
        or "day" in text
        or text in ("—", "-")
    )


def parse_clock(raw: str) -> time | None:
    """Parse "3:30pm", "3:30 PM", "15:30" or "9:05" into a time of day."""
    text = raw.strip()

    match = _CLOCK_12H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if not 1 <= hour <= 12 or minute > 59:
            return None
        meridiem = match.group(3).lower()
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
        return time(hour, minute)

    match = _CLOCK_24H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return None
        return time(hour, minute)

    return None


def _to_utc(local: datetime) -> datetime | None:
    instant = local.astimezone(UTC)
    if not MIN_YEAR <= instant.year <= MAX_YEAR:
        return None
    return instant


def parse_local_time(raw: str | None, base_date: date, tz_name: str) -> datetime | None:
    """
    Combine a display time with a calendar date in the source zone.

    Args:
        raw: Display time as shown by the source
        base_date: Calendar date of the page in the source zone
        tz_name: IANA zone the source's times are expressed in

    Returns:
        Aware UTC datetime, or None for special strings and unparseable input
    """
    if is_special_time_string(raw):
        return None

    clock = parse_clock(raw)
    if clock is None:
        logger.warning(f"Could not parse time: '{raw}'")
        return None

    local = datetime.combine(base_date, clock, tzinfo=resolve_zone(tz_name))
    return _to_utc(local)


def parse_month_day_time(raw: str | None, year: int, tz_name: str) -> datetime | None:
    """
    Parse a "Jan 5, 13:30" stamp in a zone.

    Args:
        raw: Month/day/clock stamp
        year: Calendar year to apply
        tz_name: IANA zone of the stamp

    Returns:
        Aware UTC datetime or None
    """
    match = _MONTH_DAY_CLOCK.match((raw or "").strip())
    if not match:
        return None

    month = _MONTHS.get(match.group(1).lower())
    day, hour, minute = int(match.group(2)), int(match.group(3)), int(match.group(4))
    if month is None or hour > 23 or minute > 59:
        return None

    try:
        local = datetime(year, month, day, hour, minute, tzinfo=resolve_zone(tz_name))
    except ValueError:
        return None
    return _to_utc(local)


class TimeCarryForward:
    """
    Remembers the last concrete time of a simultaneous release group.

    Calendars print the time only on the first row of a group. Blank cells
    inherit the remembered time; special strings (Tentative, All Day, dash)
    are kept as-is and reset the memory.
    """

    def __init__(self) -> None:
        self.last_seen = "—"

    def resolve(self, raw: str | None) -> str:
        """Return the effective display time for a row."""
        text = (raw or "").strip()
        if text in _BLANK_TIME_CELLS:
            return self.last_seen
        if is_special_time_string(text):
            self.last_seen = "—"
            return text
        self.last_seen = text
        return text


# =============================================================================
# LOCAL DAY WINDOWS
# =============================================================================


def local_day_bounds(
    tz_name: str | None,
    now: datetime | None = None,
    day_offset: int = 0,
) -> tuple[datetime, datetime]:
    """
    Return the [start, end) UTC bounds of a local calendar day.

    Args:
        tz_name: Subscriber zone
        now: Reference instant (defaults to the current time)
        day_offset: 0 for today, 1 for tomorrow

    Returns:
        (start, end) aware UTC datetimes
    """
    zone = resolve_zone(tz_name)
    now = now or datetime.now(UTC)
    local_day = now.astimezone(zone).date() + timedelta(days=day_offset)
    start = datetime.combine(local_day, time.min, tzinfo=zone)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(UTC), end.astimezone(UTC)


def source_base_date(tz_name: str, now: datetime | None = None, day_offset: int = 0) -> date:
    """Calendar date currently shown by a source in its own zone."""
    now = now or datetime.now(UTC)
    return now.astimezone(resolve_zone(tz_name)).date() + timedelta(days=day_offset)


def select_local_day(
    events: Iterable[T],
    tz_name: str | None,
    now: datetime | None = None,
    day_offset: int = 0,
    keep_untimed: bool = True,
) -> list[T]:
    """
    Keep events whose instant falls on the given local day.

    Events are anything with a ``time_iso`` attribute. Untimed events are kept
    unless keep_untimed is False.
    """
    start, end = local_day_bounds(tz_name, now, day_offset)
    selected = []
    for event in events:
        instant = getattr(event, "time_iso", None)
        if instant is None:
            if keep_untimed:
                selected.append(event)
            continue
        if start <= instant < end:
            selected.append(event)
    return selected
