"""
ForexFactory CSV Export Adapter.

Downloads the weekly calendar export published by faireconomy.media:

    Title,Country,Date,Time,Impact,Forecast,Previous,URL
    Unemployment Claims,USD,01-15-2026,1:30pm,High,215K,210K,https://...

Dates are MM-DD-YYYY and times h:mma, both in UTC. The export carries no
actual values. It is updated hourly and answers HTTP 429 to frequent
polling, hence the long cache lifetime.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime

from econcal.ingestion.errors import SourceStructureError
from econcal.ingestion.normalization.time_parsing import parse_local_time
from econcal.ingestion.normalization.values import (
    EMPTY_MARKER,
    collapse_whitespace,
    passes_source_filter,
)
from econcal.schemas.event import CalendarEvent, EventSource, Impact

from .http_adapter import HttpAdapterConfig, HttpCalendarAdapter

CSV_TIMEZONE = "UTC"
REQUIRED_COLUMNS = ("Title",)

_DATE_PATTERN = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")


@dataclass
class ForexFactoryCsvConfig(HttpAdapterConfig):
    """
    Configuration for the weekly CSV export.
    """

    source_id: str = "forexfactory_csv"
    url: str = "https://nfs.faireconomy.media/ff_calendar_thisweek.csv"
    accept: str = "text/csv"
    cache_ttl_s: float = 60 * 60
    request_timeout_s: float = 15.0


def parse_csv_date(value: str | None) -> date | None:
    """Parse an MM-DD-YYYY date."""
    match = _DATE_PATTERN.match((value or "").strip())
    if not match:
        return None
    month, day, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _column(row: dict[str, str | None], name: str) -> str:
    return (row.get(name) or "").strip()


class ForexFactoryCsvAdapter(HttpCalendarAdapter):
    """
    Adapter for the ForexFactory weekly CSV export.

    The whole week is a single request; today/tomorrow views are derived in
    the caller's zone by the shared day selection.
    """

    source_name = EventSource.FOREXFACTORY.value

    def __init__(self, config: ForexFactoryCsvConfig | None = None, **kwargs):
        super().__init__(config or ForexFactoryCsvConfig(), **kwargs)

    def _key_for_day(self, day_offset: int, now: datetime) -> str:
        return self.http_config.url

    async def _fetch_raw_events(self, key: str) -> list[CalendarEvent]:
        self.logger.info(f"Downloading {key}")
        text = await self._get_text(key)
        return self.parse_csv(text)

    def parse_csv(self, text: str) -> list[CalendarEvent]:
        """
        Parse the export into raw events.

        Optional columns may be missing or reordered.

        Raises:
            SourceStructureError: Header row lacks the Title column
        """
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
        header = [name.strip() for name in (reader.fieldnames or [])]
        missing = [name for name in REQUIRED_COLUMNS if name not in header]
        if missing:
            raise SourceStructureError(
                f"CSV export is missing columns: {', '.join(missing)}",
                source=self.source_id,
            )
        reader.fieldnames = header

        events: list[CalendarEvent] = []
        for line_no, row in enumerate(reader, start=2):
            try:
                event = self._parse_row(row)
            except Exception as e:
                self.logger.warning(f"Skipping CSV line {line_no}: {e}")
                continue
            if event is not None:
                events.append(event)

        self.logger.info(f"Parsed {len(events)} High/Medium events from CSV")
        return events

    def _parse_row(self, row: dict[str, str | None]) -> CalendarEvent | None:
        impact_raw = _column(row, "Impact")
        impact = impact_raw if impact_raw in (Impact.HIGH.value, Impact.MEDIUM.value) else Impact.LOW.value

        title = collapse_whitespace(_column(row, "Title"))
        currency = _column(row, "Country")
        if not title or not currency:
            return None

        forecast = _column(row, "Forecast")
        previous = _column(row, "Previous")
        if not passes_source_filter(impact, title, forecast, previous, EMPTY_MARKER):
            return None

        time_raw = _column(row, "Time")
        event_date = parse_csv_date(_column(row, "Date"))
        time_iso = parse_local_time(time_raw, event_date, CSV_TIMEZONE) if event_date else None

        return CalendarEvent(
            title=title,
            currency=currency,
            impact=impact,
            time=time_raw,
            time_iso=time_iso,
            forecast=forecast,
            previous=previous,
            actual=EMPTY_MARKER,
            source=self.source_name,
        )
