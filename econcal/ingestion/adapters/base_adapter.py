"""
Base Calendar Adapter.

Abstract base class defining the interface for all calendar sources.
Subclasses only know how to obtain and parse their upstream format; the
shared fetch implements the contract every source follows:

- cache-first lookup keyed by request URL or feed identity
- quality gate over the raw batch, issues forwarded to the issue log
- only the validated subset is cached
- any FetchError degrades to the last good cached result, or to nothing
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable

from econcal.ingestion.cache import ResultCache
from econcal.ingestion.errors import FetchError
from econcal.ingestion.issue_log import IssueLog
from econcal.ingestion.normalization.time_parsing import (
    DEFAULT_TIMEZONE,
    select_local_day,
)
from econcal.ingestion.quality_gate import QualityGate
from econcal.schemas.event import CalendarEvent


@dataclass
class FetchResult:
    """
    Result of one adapter fetch.

    from_cache is set when a fresh cache entry was served; is_fallback when a
    failed fetch was answered with a stale entry or an empty list.
    """

    source_id: str
    key: str
    events: list[CalendarEvent] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    from_cache: bool = False
    is_fallback: bool = False
    issues_logged: int = 0
    fetch_started_at: datetime | None = None
    fetch_ended_at: datetime | None = None

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def duration_seconds(self) -> float:
        """Calculate fetch duration."""
        if self.fetch_started_at and self.fetch_ended_at:
            return (self.fetch_ended_at - self.fetch_started_at).total_seconds()
        return 0.0


@dataclass
class AdapterConfig:
    """
    Base configuration for calendar adapters.

    Extended by specific adapters with their endpoints.
    """

    source_id: str
    cache_ttl_s: float = 300.0
    request_timeout_s: float = 30.0
    default_timezone: str = DEFAULT_TIMEZONE
    custom_config: dict[str, Any] = field(default_factory=dict)


class BaseCalendarAdapter(ABC):
    """
    Abstract base class for calendar adapters.

    Subclasses must implement:
        - source_name: Value stored in CalendarEvent.source
        - _fetch_raw_events(key): Fetch and parse one request into raw events
        - _key_for_day(day_offset, now): Cache key / request of a day view
        - _validate_config(): Validate adapter-specific configuration
    """

    source_name: str = ""

    def __init__(
        self,
        config: AdapterConfig,
        *,
        issue_log: IssueLog | None = None,
        quality_gate: QualityGate | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the adapter.

        Args:
            config: AdapterConfig with source-specific settings
            issue_log: Destination of data quality issues
            quality_gate: Validation stage applied before caching
            clock: Returns the current aware UTC time; injectable for tests
        """
        self.config = config
        self.logger = logging.getLogger(f"adapter.{config.source_id}")
        self.issue_log = issue_log or IssueLog()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.quality_gate = quality_gate or QualityGate(clock=self._clock)
        self.cache: ResultCache[list[CalendarEvent]] = ResultCache(config.cache_ttl_s)
        # Outcome of the latest fetch; is_fallback marks stale data served after a failure
        self.last_result: FetchResult | None = None
        self._validate_config()

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self.config.source_id

    def now(self) -> datetime:
        return self._clock()

    # -------------------------
    # Subclass hooks
    # -------------------------

    @abstractmethod
    async def _fetch_raw_events(self, key: str) -> list[CalendarEvent]:
        """
        Fetch one request from upstream and parse it.

        Rows that cannot be parsed are skipped with a warning. Raw events have
        already passed the source filter (High/Medium, non-empty values).

        Raises:
            FetchError: Upstream unavailable, rate limited or structurally broken
        """

    @abstractmethod
    def _key_for_day(self, day_offset: int, now: datetime) -> str:
        """Return the request key serving a day view (0 today, 1 tomorrow)."""

    @abstractmethod
    def _validate_config(self) -> None:
        """
        Validate adapter-specific configuration.

        Raises:
            ValueError: If configuration is invalid
        """

    # -------------------------
    # Fetch
    # -------------------------

    async def fetch(self, key: str) -> FetchResult:
        """
        Cache-first fetch of one request.

        Args:
            key: Request URL or feed identity

        Returns:
            FetchResult; never raises for upstream failures
        """
        result = FetchResult(source_id=self.source_id, key=key, fetch_started_at=self.now())
        self.last_result = result

        cached = self.cache.get(key)
        if cached is not None:
            self.logger.debug(
                f"Using cached data for {key} (expires in {self.cache.expires_in(key):.0f}s)"
            )
            result.events = list(cached)
            result.from_cache = True
            result.fetch_ended_at = self.now()
            return result

        try:
            raw_events = await self._fetch_raw_events(key)
        except FetchError as e:
            result.errors.append(str(e))
            result.is_fallback = True
            stale = self.cache.get_stale(key)
            if stale is not None:
                self.logger.warning(f"Fetch failed ({e}), serving last good result for {key}")
                result.events = list(stale)
            else:
                self.logger.warning(f"Fetch failed ({e}), no cached result for {key}")
            result.fetch_ended_at = self.now()
            return result

        validation = self.quality_gate.check_raw_and_normalize(raw_events, now=self.now())
        if validation.issues:
            self.logger.info(f"Data quality issues: {len(validation.issues)}")
            result.issues_logged = self.issue_log.submit(validation.issues)

        self.cache.set(key, validation.valid)
        result.events = list(validation.valid)
        result.fetch_ended_at = self.now()
        self.logger.info(
            f"Fetched {len(raw_events)} events, {len(validation.valid)} valid "
            f"in {result.duration_seconds:.2f}s"
        )
        return result

    # -------------------------
    # Day views
    # -------------------------

    async def get_events_raw(self, day_offset: int = 0) -> list[CalendarEvent]:
        """
        Validated events of a request, without any local-day filtering.

        The FetchResult behind the list (from_cache, is_fallback, errors) is
        kept in last_result.
        """
        result = await self.fetch(self._key_for_day(day_offset, self.now()))
        return result.events

    async def get_events_for_day(self, day_offset: int, tz: str | None = None) -> list[CalendarEvent]:
        """Events falling on a local day of the given zone (untimed events kept)."""
        now = self.now()
        events = await self.get_events_raw(day_offset)
        tz = tz or self.config.default_timezone
        selected = select_local_day(events, tz, now=now, day_offset=day_offset)
        filtered_out = len(events) - len(selected)
        if filtered_out:
            self.logger.debug(f"Day +{day_offset} ({tz}): {len(selected)} events, {filtered_out} filtered out")
        return selected

    async def get_events_for_today(self, tz: str | None = None) -> list[CalendarEvent]:
        return await self.get_events_for_day(0, tz)

    async def get_events_for_tomorrow(self, tz: str | None = None) -> list[CalendarEvent]:
        return await self.get_events_for_day(1, tz)

    # -------------------------
    # Resources
    # -------------------------

    async def close(self) -> None:
        """
        Release any resources held by the adapter.

        Override in subclasses that hold resources (e.g., HTTP clients).
        """

    async def __aenter__(self) -> "BaseCalendarAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
