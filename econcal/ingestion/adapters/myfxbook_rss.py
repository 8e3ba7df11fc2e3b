"""
Myfxbook Calendar Feed Adapter.

Parses the Myfxbook economic calendar RSS feed with feedparser. No browser
is involved. Each item looks like:

    title:       "USD - Nonfarm Payrolls"
    link:        https://www.myfxbook.com/forex-economic-calendar/united-states/...
    pubDate:     release instant (UTC)
    description: HTML table, header row then one data row of
                 time left | impact | previous | consensus | actual
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import feedparser
from bs4 import BeautifulSoup

from econcal.ingestion.errors import SourceStructureError
from econcal.ingestion.normalization.currency import extract_currency, split_title
from econcal.ingestion.normalization.values import EMPTY_MARKER, passes_source_filter
from econcal.schemas.event import CalendarEvent, EventSource, Impact, coerce_utc

from .http_adapter import HttpAdapterConfig, HttpCalendarAdapter


@dataclass
class MyfxbookRssConfig(HttpAdapterConfig):
    """
    Configuration for the Myfxbook calendar feed.
    """

    source_id: str = "myfxbook_rss"
    url: str = "https://www.myfxbook.com/rss/forex-economic-calendar-events"
    accept: str = "application/rss+xml, application/xml;q=0.9, */*;q=0.8"
    cache_ttl_s: float = 3 * 60
    request_timeout_s: float = 15.0


def parse_impact_html(html: str) -> str:
    """Impact from the sprite class embedded in the description."""
    lowered = (html or "").lower()
    if "sprite-high-impact" in lowered:
        return Impact.HIGH.value
    if "sprite-medium-impact" in lowered:
        return Impact.MEDIUM.value
    return Impact.LOW.value


def parse_description_table(description: str) -> dict[str, str]:
    """
    Extract impact and values from an item description.

    Returns:
        dict with impact, previous, consensus and actual (placeholders as "—")
    """
    values = {
        "impact": parse_impact_html(description),
        "previous": EMPTY_MARKER,
        "consensus": EMPTY_MARKER,
        "actual": EMPTY_MARKER,
    }
    soup = BeautifulSoup(description or "", "lxml")
    rows = soup.select("table tr")
    if len(rows) >= 2:
        cells = rows[1].find_all("td")
        if len(cells) >= 5:
            values["previous"] = cells[2].get_text(strip=True)
            values["consensus"] = cells[3].get_text(strip=True)
            values["actual"] = cells[4].get_text(strip=True)
    return values


def _published_at(entry: Any) -> datetime | None:
    parsed = entry.get("published_parsed")
    if parsed:
        return coerce_utc(datetime.fromtimestamp(calendar.timegm(parsed), tz=UTC))
    return None


def _description(entry: Any) -> str:
    content = entry.get("content")
    if content:
        return content[0].get("value", "")
    return entry.get("summary") or entry.get("description") or ""


class MyfxbookRssAdapter(HttpCalendarAdapter):
    """
    Adapter for the Myfxbook calendar RSS feed.

    The feed is a single request spanning several days; day views are
    derived in the caller's zone by the shared day selection.
    """

    source_name = EventSource.MYFXBOOK.value

    def __init__(self, config: MyfxbookRssConfig | None = None, **kwargs):
        super().__init__(config or MyfxbookRssConfig(), **kwargs)

    def _key_for_day(self, day_offset: int, now: datetime) -> str:
        return self.http_config.url

    async def _fetch_raw_events(self, key: str) -> list[CalendarEvent]:
        self.logger.info(f"Fetching feed {key}")
        text = await self._get_text(key)
        return self.parse_feed(text)

    def parse_feed(self, text: str) -> list[CalendarEvent]:
        """
        Parse the feed document.

        Raises:
            SourceStructureError: The document is not a feed at all
        """
        feed = feedparser.parse(text, sanitize_html=False)
        if feed.bozo and not feed.entries:
            raise SourceStructureError(
                f"Feed could not be parsed: {feed.get('bozo_exception')}",
                source=self.source_id,
            )
        if not feed.entries:
            self.logger.info("No items in feed")
            return []

        events: list[CalendarEvent] = []
        for entry in feed.entries:
            try:
                event = self._parse_entry(entry)
            except Exception as e:
                self.logger.warning(f"Skipping feed item: {e}")
                continue
            if event is not None:
                events.append(event)

        self.logger.info(f"Parsed {len(events)} High/Medium events from {len(feed.entries)} items")
        return events

    def _parse_entry(self, entry: Any) -> CalendarEvent | None:
        raw_title = (entry.get("title") or "").strip()
        _, event_name = split_title(raw_title)
        if not event_name:
            return None

        currency = extract_currency(raw_title, entry.get("link"))
        if not currency or len(currency) > 3:
            return None

        table = parse_description_table(_description(entry))
        impact = table["impact"]
        if not passes_source_filter(
            impact, event_name, table["consensus"], table["previous"], table["actual"]
        ):
            return None

        published = _published_at(entry)
        return CalendarEvent(
            title=event_name,
            currency=currency,
            impact=impact,
            time=published.strftime("%H:%M") if published else EMPTY_MARKER,
            time_iso=published,
            forecast=table["consensus"],
            previous=table["previous"],
            actual=table["actual"],
            source=self.source_name,
        )
