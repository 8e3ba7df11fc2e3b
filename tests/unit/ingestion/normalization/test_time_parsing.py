"""
Unit tests for the time parsing module.

Tests for zone detection, clock parsing, carry-forward and local day windows.
"""

from datetime import UTC, date, datetime, time

import pytest

from econcal.ingestion.normalization.time_parsing import (
    DEFAULT_TIMEZONE,
    TimeCarryForward,
    is_special_time_string,
    local_day_bounds,
    parse_clock,
    parse_local_time,
    parse_month_day_time,
    resolve_zone,
    select_local_day,
    source_base_date,
    zone_for_gmt_offset,
    zone_from_gmt_label,
)

# =============================================================================
# TEST CLASSES
# =============================================================================


class TestZones:
    """Tests for zone resolution."""

    def test_resolve_known_zone(self):
        """Should return the requested zone."""
        assert resolve_zone("America/New_York").key == "America/New_York"

    def test_resolve_unknown_zone_falls_back(self):
        """Should fall back to the default zone."""
        assert resolve_zone("Mars/Olympus").key == DEFAULT_TIMEZONE
        assert resolve_zone(None).key == DEFAULT_TIMEZONE

    def test_zone_for_offset(self):
        """Should map known offsets and fall back for unknown ones."""
        assert zone_for_gmt_offset("+03:00") == "Europe/Moscow"
        assert zone_for_gmt_offset("-05:00") == "America/New_York"
        assert zone_for_gmt_offset("+05:30") == DEFAULT_TIMEZONE
        assert zone_for_gmt_offset(None) == DEFAULT_TIMEZONE

    def test_zone_from_label(self):
        """Should read the offset from the settings page label."""
        assert zone_from_gmt_label("Time zone: (GMT+09:00) Osaka, Tokyo") == "Asia/Tokyo"

    def test_zone_from_label_missing(self):
        """Should fall back when no label is present."""
        assert zone_from_gmt_label("<html>nothing here</html>") == DEFAULT_TIMEZONE


class TestClockParsing:
    """Tests for clock parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("3:30pm", time(15, 30)),
            ("3:30 PM", time(15, 30)),
            ("12:00am", time(0, 0)),
            ("12:15pm", time(12, 15)),
            ("15:30", time(15, 30)),
            ("9:05", time(9, 5)),
        ],
    )
    def test_parse_clock(self, raw, expected):
        """Should parse 12h and 24h clocks."""
        assert parse_clock(raw) == expected

    @pytest.mark.parametrize("raw", ["25:00", "13:30pm", "noon", "3pm"])
    def test_parse_clock_invalid(self, raw):
        """Should return None for invalid clocks."""
        assert parse_clock(raw) is None

    @pytest.mark.parametrize("raw", ["", None, "Tentative", "All Day", "Day 2", "—", "-"])
    def test_special_strings(self, raw):
        """Should recognize non-concrete times."""
        assert is_special_time_string(raw) is True

    def test_concrete_time_not_special(self):
        """Should not flag concrete clock times."""
        assert is_special_time_string("8:30am") is False


class TestParseLocalTime:
    """Tests for parse_local_time and parse_month_day_time."""

    def test_kyiv_summer_offset(self):
        """Should apply the zone's DST offset."""
        result = parse_local_time("3:30pm", date(2024, 6, 14), "Europe/Kyiv")
        assert result == datetime(2024, 6, 14, 12, 30, tzinfo=UTC)

    def test_kyiv_winter_offset(self):
        """Should apply the standard offset in winter."""
        result = parse_local_time("15:30", date(2024, 1, 15), "Europe/Kyiv")
        assert result == datetime(2024, 1, 15, 13, 30, tzinfo=UTC)

    def test_special_returns_none(self):
        """Should not invent an instant for special strings."""
        assert parse_local_time("All Day", date(2024, 6, 14), "Europe/Kyiv") is None

    def test_garbage_returns_none(self):
        """Should return None for unparseable clocks."""
        assert parse_local_time("soon", date(2024, 6, 14), "Europe/Kyiv") is None

    def test_month_day_time(self):
        """Should parse Myfxbook style stamps."""
        assert parse_month_day_time("Jun 14, 13:30", 2024, "GMT") == datetime(
            2024, 6, 14, 13, 30, tzinfo=UTC
        )

    def test_month_day_time_invalid(self):
        """Should return None for impossible dates and garbage."""
        assert parse_month_day_time("Feb 30, 10:00", 2024, "GMT") is None
        assert parse_month_day_time("Foo 1, 10:00", 2024, "GMT") is None
        assert parse_month_day_time("whenever", 2024, "GMT") is None


class TestTimeCarryForward:
    """Tests for TimeCarryForward."""

    def test_blank_inherits_previous(self):
        """Should give blank rows the time of the row above."""
        carry = TimeCarryForward()
        assert carry.resolve("8:30am") == "8:30am"
        assert carry.resolve("") == "8:30am"
        assert carry.resolve(None) == "8:30am"

    def test_special_resets(self):
        """Should keep special strings and reset the memory."""
        carry = TimeCarryForward()
        carry.resolve("8:30am")
        assert carry.resolve("All Day") == "All Day"
        assert carry.resolve("") == "—"

    def test_initial_blank(self):
        """Should return the empty marker before any time was seen."""
        assert TimeCarryForward().resolve("") == "—"


class TestLocalDay:
    """Tests for local day windows."""

    def test_local_day_bounds(self, now):
        """Should return the UTC bounds of the subscriber's day."""
        start, end = local_day_bounds("Europe/Kyiv", now)
        assert start == datetime(2024, 6, 13, 21, 0, tzinfo=UTC)
        assert end == datetime(2024, 6, 14, 21, 0, tzinfo=UTC)

    def test_local_day_bounds_tomorrow(self, now):
        """Should shift by whole local days."""
        start, end = local_day_bounds("Europe/Kyiv", now, day_offset=1)
        assert start == datetime(2024, 6, 14, 21, 0, tzinfo=UTC)
        assert end == datetime(2024, 6, 15, 21, 0, tzinfo=UTC)

    def test_source_base_date(self):
        """Should return the source's own calendar date."""
        late = datetime(2024, 6, 14, 22, 30, tzinfo=UTC)
        assert source_base_date("Europe/Kyiv", late) == date(2024, 6, 15)
        assert source_base_date("GMT", late) == date(2024, 6, 14)
        assert source_base_date("GMT", late, day_offset=1) == date(2024, 6, 15)

    def test_select_local_day(self, create_event, now):
        """Should keep only events of the local day plus untimed ones."""
        inside = create_event(time_iso=datetime(2024, 6, 14, 20, 59, tzinfo=UTC))
        boundary = create_event(time_iso=datetime(2024, 6, 14, 21, 0, tzinfo=UTC))
        untimed = create_event(time_iso=None, time="All Day")
        selected = select_local_day([inside, boundary, untimed], "Europe/Kyiv", now)
        assert selected == [inside, untimed]

    def test_select_local_day_drop_untimed(self, create_event, now):
        """Should drop untimed events when asked."""
        untimed = create_event(time_iso=None)
        assert select_local_day([untimed], "Europe/Kyiv", now, keep_untimed=False) == []
