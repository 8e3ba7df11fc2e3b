"""
Myfxbook Calendar Page Adapter.

Renders the Myfxbook economic calendar for one GMT day through the shared
browser. The browser context is pinned to GMT so that the page renders GMT
times, and images, stylesheets, fonts and media are blocked to keep page
memory low.

Row layout (by cell position, at least nine cells):
    0 time | 3 currency | 4 event | 5 impact | 6 previous | 7 consensus | 8 actual
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from econcal.ingestion.browser import BrowserCoordinator
from econcal.ingestion.normalization.time_parsing import (
    parse_local_time,
    parse_month_day_time,
    source_base_date,
)
from econcal.ingestion.normalization.values import collapse_whitespace, passes_source_filter
from econcal.schemas.event import CalendarEvent, EventSource, Impact

from .base_adapter import AdapterConfig, BaseCalendarAdapter

MYFXBOOK_TZ = "GMT"
MIN_ROW_CELLS = 9
# Any table or the dedicated row class signals that data has rendered
DATA_SELECTOR = "table, .calendar-row"

_START_DATE_PATTERN = re.compile(r"startDate=(\d{4}-\d{2}-\d{2})")


@dataclass
class MyfxbookHtmlConfig(AdapterConfig):
    """
    Configuration for the Myfxbook calendar page.
    """

    source_id: str = "myfxbook_html"
    calendar_url: str = "https://www.myfxbook.com/forex-economic-calendar"
    # Impact filters: 1 = medium, 2 = high
    impact_filters: tuple[str, ...] = ("1", "2")
    cache_ttl_s: float = 10 * 60
    request_timeout_s: float = 15.0
    selector_timeout_s: float = 10.0
    settle_s: float = 1.0
    block_resources: list[str] = field(
        default_factory=lambda: ["image", "stylesheet", "font", "media"]
    )


def parse_impact_text(text: str) -> str:
    lowered = (text or "").strip().lower()
    if "high" in lowered:
        return Impact.HIGH.value
    if "medium" in lowered:
        return Impact.MEDIUM.value
    return Impact.LOW.value


def resolve_row_time(raw: str, base_date: date) -> datetime | None:
    """
    Convert a GMT row time to UTC.

    "13:30" is taken on the page date; "Jan 5, 13:30" carries its own day and
    gets the year closest to the page date (year boundary pages).
    """
    text = (raw or "").strip()
    if "," not in text:
        return parse_local_time(text, base_date, MYFXBOOK_TZ)

    candidates = [
        parsed
        for year in (base_date.year - 1, base_date.year, base_date.year + 1)
        if (parsed := parse_month_day_time(text, year, MYFXBOOK_TZ)) is not None
    ]
    if not candidates:
        return None
    anchor = datetime(base_date.year, base_date.month, base_date.day, tzinfo=candidates[0].tzinfo)
    return min(candidates, key=lambda instant: abs(instant - anchor))


class MyfxbookHtmlAdapter(BaseCalendarAdapter):
    """
    Adapter for the browser-rendered Myfxbook calendar.

    One request per GMT day (startDate = endDate).
    """

    source_name = EventSource.MYFXBOOK.value

    def __init__(
        self,
        config: MyfxbookHtmlConfig | None = None,
        *,
        browser: BrowserCoordinator,
        **kwargs,
    ):
        self.browser = browser
        super().__init__(config or MyfxbookHtmlConfig(), **kwargs)

    @property
    def mfb_config(self) -> MyfxbookHtmlConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        if not self.mfb_config.calendar_url:
            raise ValueError("Myfxbook page adapter requires calendar_url")
        if self.browser is None:
            raise ValueError("Myfxbook page adapter requires a BrowserCoordinator")

    def calendar_url(self, day: date) -> str:
        """URL of the calendar restricted to one GMT day."""
        params = [("filter[]", value) for value in self.mfb_config.impact_filters]
        params += [("startDate", day.isoformat()), ("endDate", day.isoformat())]
        return f"{self.mfb_config.calendar_url}?{urlencode(params)}"

    def _key_for_day(self, day_offset: int, now: datetime) -> str:
        return self.calendar_url(source_base_date(MYFXBOOK_TZ, now, day_offset))

    async def _fetch_raw_events(self, key: str) -> list[CalendarEvent]:
        self.logger.info(f"Fetching {key}")
        html = await self.browser.fetch_html(
            key,
            wait_for=DATA_SELECTOR,
            nav_timeout_s=self.mfb_config.request_timeout_s,
            selector_timeout_s=self.mfb_config.selector_timeout_s,
            timezone_id=MYFXBOOK_TZ,
            block_resources=self.mfb_config.block_resources,
            settle_s=self.mfb_config.settle_s,
        )

        match = _START_DATE_PATTERN.search(key)
        base_date = (
            date.fromisoformat(match.group(1))
            if match
            else source_base_date(MYFXBOOK_TZ, self.now())
        )
        return self.parse_html(html, base_date)

    def parse_html(self, html: str, base_date: date) -> list[CalendarEvent]:
        """Parse every calendar row of a rendered page."""
        soup = BeautifulSoup(html, "lxml")
        events: list[CalendarEvent] = []

        for row in soup.select("table tr"):
            cells = row.find_all("td")
            if len(cells) < MIN_ROW_CELLS:
                continue
            try:
                texts = [collapse_whitespace(cell.get_text(" ", strip=True)) for cell in cells]
                time_text, currency, title = texts[0], texts[3], texts[4]

                if not currency or not title or len(currency) > 3:
                    continue
                if currency == "Currency" or title in ("Event", "Date"):
                    continue

                impact = parse_impact_text(texts[5])
                previous, forecast, actual = texts[6], texts[7], texts[8]
                if not passes_source_filter(impact, title, forecast, previous, actual):
                    continue

                events.append(
                    CalendarEvent(
                        title=title,
                        currency=currency,
                        impact=impact,
                        time=time_text,
                        time_iso=resolve_row_time(time_text, base_date),
                        forecast=forecast,
                        previous=previous,
                        actual=actual,
                        source=self.source_name,
                    )
                )
            except Exception as e:
                self.logger.warning(f"Skipping unparseable row: {e}")

        if not events:
            self.logger.warning("No events found in calendar rows; selectors may have changed")
        else:
            self.logger.info(f"Parsed {len(events)} High/Medium events for {base_date}")
        return events
