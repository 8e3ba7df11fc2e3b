"""
ForexFactory Calendar Page Adapter.

Renders the ForexFactory calendar through the shared browser and parses
``table.calendar__table``. Times are shown in the zone configured in the
site's session, so the zone is detected from the ``/timezone`` settings page
(cached for an hour) before the table is parsed.

Row layout (by CSS class):
    .calendar__time, .calendar__currency, .calendar__impact span,
    .calendar__event-title, .calendar__actual, .calendar__forecast,
    .calendar__previous
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from bs4 import BeautifulSoup, Tag

from econcal.ingestion.browser import BrowserCoordinator
from econcal.ingestion.cache import ResultCache
from econcal.ingestion.errors import FetchError, SourceStructureError
from econcal.ingestion.normalization.time_parsing import (
    DEFAULT_TIMEZONE,
    TimeCarryForward,
    parse_local_time,
    source_base_date,
    zone_from_gmt_label,
)
from econcal.ingestion.normalization.values import (
    collapse_whitespace,
    passes_source_filter,
)
from econcal.schemas.event import CalendarEvent, EventSource, Impact

from .base_adapter import AdapterConfig, BaseCalendarAdapter

CALENDAR_TABLE_SELECTOR = "table.calendar__table"
HEADER_CURRENCIES = ("Currency", "All")
DAY_PARAMS = {0: "today", 1: "tomorrow"}


@dataclass
class ForexFactoryHtmlConfig(AdapterConfig):
    """
    Configuration for the ForexFactory calendar page.
    """

    source_id: str = "forexfactory_html"
    calendar_url: str = "https://www.forexfactory.com/calendar"
    timezone_url: str = "https://www.forexfactory.com/timezone"
    cache_ttl_s: float = 5 * 60
    timezone_ttl_s: float = 60 * 60
    request_timeout_s: float = 30.0
    selector_timeout_s: float = 10.0


def parse_impact_class(class_names: str) -> str:
    """Map the impact icon class to an impact level."""
    lowered = (class_names or "").lower()
    if "icon--ff-impact-red" in lowered:
        return Impact.HIGH.value
    if "icon--ff-impact-orange" in lowered or "icon--ff-impact-ora" in lowered:
        return Impact.MEDIUM.value
    return Impact.LOW.value


def _text(row: Tag, selector: str) -> str:
    cell = row.select_one(selector)
    if cell is None:
        return ""
    return collapse_whitespace(cell.get_text(" ", strip=True))


class ForexFactoryHtmlAdapter(BaseCalendarAdapter):
    """
    Adapter for the browser-rendered ForexFactory calendar.

    Requires the shared BrowserCoordinator; every navigation goes through its
    FIFO lock.
    """

    source_name = EventSource.FOREXFACTORY.value

    def __init__(
        self,
        config: ForexFactoryHtmlConfig | None = None,
        *,
        browser: BrowserCoordinator,
        **kwargs,
    ):
        self.browser = browser
        config = config or ForexFactoryHtmlConfig()
        self._timezone_cache: ResultCache[str] = ResultCache(config.timezone_ttl_s)
        super().__init__(config, **kwargs)

    @property
    def ff_config(self) -> ForexFactoryHtmlConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        if not self.ff_config.calendar_url:
            raise ValueError("ForexFactory page adapter requires calendar_url")
        if self.browser is None:
            raise ValueError("ForexFactory page adapter requires a BrowserCoordinator")

    def _key_for_day(self, day_offset: int, now: datetime) -> str:
        if day_offset not in DAY_PARAMS:
            raise ValueError(f"ForexFactory page only serves today/tomorrow, got offset {day_offset}")
        return f"{self.ff_config.calendar_url}?day={DAY_PARAMS[day_offset]}"

    # -------------------------
    # Source timezone
    # -------------------------

    async def detect_source_timezone(self) -> str:
        """
        Zone the calendar renders its times in.

        Read from the "(GMT+02:00) City" label on the settings page and mapped
        through the known offset table. Falls back to the default zone when
        the page cannot be loaded; the fallback is not cached.
        """
        cached = self._timezone_cache.get("zone")
        if cached is not None:
            return cached

        try:
            html = await self.browser.fetch_html(
                self.ff_config.timezone_url,
                nav_timeout_s=self.ff_config.request_timeout_s,
            )
        except FetchError as e:
            self.logger.warning(f"Timezone detection failed ({e}), using {DEFAULT_TIMEZONE}")
            return DEFAULT_TIMEZONE

        text = BeautifulSoup(html, "lxml").get_text(" ", strip=True)
        zone = zone_from_gmt_label(text)
        self._timezone_cache.set("zone", zone)
        return zone

    # -------------------------
    # Fetch & parse
    # -------------------------

    async def _fetch_raw_events(self, key: str) -> list[CalendarEvent]:
        source_tz = await self.detect_source_timezone()
        self.logger.info(f"Fetching {key} (source timezone {source_tz})")

        html = await self.browser.fetch_html(
            key,
            wait_for=CALENDAR_TABLE_SELECTOR,
            require_selector=True,
            nav_timeout_s=self.ff_config.request_timeout_s,
            selector_timeout_s=self.ff_config.selector_timeout_s,
        )

        day_offset = 1 if key.endswith("day=tomorrow") else 0
        base_date = source_base_date(source_tz, self.now(), day_offset)
        return self.parse_html(html, base_date, source_tz)

    def parse_html(self, html: str, base_date: date, source_tz: str) -> list[CalendarEvent]:
        """
        Parse the calendar table.

        Args:
            html: Rendered page
            base_date: Calendar date of the page in the source zone
            source_tz: Zone the page times are expressed in

        Raises:
            SourceStructureError: The calendar table is absent
        """
        soup = BeautifulSoup(html, "lxml")
        table = soup.select_one(CALENDAR_TABLE_SELECTOR)
        if table is None:
            raise SourceStructureError("Calendar table not found", source=self.source_id)

        carry = TimeCarryForward()
        events: list[CalendarEvent] = []
        rows = table.select("tr")
        low_impact = 0

        for row in rows:
            if len(row.find_all("td")) < 5:
                continue
            try:
                # Time memory must advance on every data row, kept or not
                display_time = carry.resolve(_text(row, ".calendar__time"))

                currency = _text(row, ".calendar__currency")
                title = _text(row, ".calendar__event-title")
                if not title or currency in HEADER_CURRENCIES:
                    continue

                impact_span = row.select_one(".calendar__impact span")
                impact_classes = " ".join(impact_span.get("class", [])) if impact_span else ""
                impact = parse_impact_class(impact_classes)

                forecast = _text(row, ".calendar__forecast")
                previous = _text(row, ".calendar__previous")
                actual = _text(row, ".calendar__actual")

                if not passes_source_filter(impact, title, forecast, previous, actual):
                    if impact == Impact.LOW.value:
                        low_impact += 1
                    continue

                events.append(
                    CalendarEvent(
                        title=title,
                        currency=currency,
                        impact=impact,
                        time=display_time,
                        time_iso=parse_local_time(display_time, base_date, source_tz),
                        forecast=forecast,
                        previous=previous,
                        actual=actual,
                        source=self.source_name,
                    )
                )
            except Exception as e:
                self.logger.warning(f"Skipping unparseable row: {e}")

        self.logger.info(
            f"Parsed {len(events)} High/Medium events from {len(rows)} rows "
            f"({low_impact} low impact dropped)"
        )
        return events
