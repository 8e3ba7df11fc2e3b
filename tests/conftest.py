"""
Shared pytest fixtures for the economic calendar test suite.

Provides reusable fixtures for creating CalendarEvent test objects and a
fixed reference clock.
"""

from datetime import UTC, datetime

import pytest

from econcal.schemas.event import CalendarEvent

# Friday 2024-06-14 10:00 UTC (13:00 in Europe/Kyiv)
FIXED_NOW = datetime(2024, 6, 14, 10, 0, tzinfo=UTC)


@pytest.fixture
def now():
    """Return the fixed reference instant."""
    return FIXED_NOW


@pytest.fixture
def create_event():
    """
    Return a function that creates CalendarEvent objects with sensible defaults.

    All defaults can be overridden via keyword arguments.

    Example:
        event = create_event(title="GDP q/q", currency="EUR")
    """

    def _create_event(
        title: str = "CPI m/m",
        currency: str = "USD",
        time_iso: datetime | None = datetime(2024, 6, 14, 12, 30, tzinfo=UTC),
        **kwargs,
    ) -> CalendarEvent:
        defaults = {
            "title": title,
            "currency": currency,
            "impact": "High",
            "time": "15:30",
            "time_iso": time_iso,
            "forecast": "0.3%",
            "previous": "0.2%",
            "actual": "—",
            "source": "ForexFactory",
        }
        defaults.update(kwargs)
        return CalendarEvent(**defaults)

    return _create_event


@pytest.fixture
def sample_event(create_event):
    """Return a single default test event."""
    return create_event()
