"""
Unit tests for the quality and subscriber schemas.

Tests for DataIssue, ValidationResult, FilterResult and SubscriberPreferences.
"""

import pytest
from pydantic import ValidationError

from econcal.schemas.quality import (
    CRITICAL_ISSUE_TYPES,
    DataIssue,
    DataIssueType,
    FilterResult,
    ValidationResult,
)
from econcal.schemas.subscriber import NewsSource, SubscriberPreferences

# =============================================================================
# TEST CLASSES
# =============================================================================


class TestDataIssue:
    """Tests for the DataIssue model."""

    def test_create_issue(self):
        """Should create an issue with empty details by default."""
        issue = DataIssue(
            event_id="abc",
            source="ForexFactory",
            type=DataIssueType.NO_TIME,
            message="Event has no concrete time",
        )
        assert issue.details == {}
        assert issue.type == "NO_TIME"

    def test_event_id_optional(self):
        """Should allow batch-level issues without an event."""
        issue = DataIssue(source="Merge", type="CONFLICT_BETWEEN_SOURCES", message="x")
        assert issue.event_id is None
        assert issue.type is DataIssueType.CONFLICT_BETWEEN_SOURCES

    def test_unknown_type_rejected(self):
        """Should reject kinds outside the closed set."""
        with pytest.raises(ValidationError):
            DataIssue(source="ForexFactory", type="SOMETHING_ELSE", message="x")

    def test_is_critical(self):
        """Should flag only missing fields, time inconsistencies and invalid ranges."""
        for issue_type in DataIssueType:
            issue = DataIssue(source="ForexFactory", type=issue_type, message="x")
            assert issue.is_critical is (issue_type in CRITICAL_ISSUE_TYPES)
        assert DataIssueType.DUPLICATE_EVENT not in CRITICAL_ISSUE_TYPES
        assert DataIssueType.MISSING_REQUIRED_FIELD in CRITICAL_ISSUE_TYPES


class TestResults:
    """Tests for ValidationResult and FilterResult."""

    def test_defaults(self):
        """Should start empty."""
        assert ValidationResult().valid == []
        assert ValidationResult().issues == []
        assert FilterResult().deliver == []
        assert FilterResult().skipped == []

    def test_issues_of(self):
        """Should select issues of one kind."""
        result = ValidationResult(
            issues=[
                DataIssue(source="ForexFactory", type=DataIssueType.NO_TIME, message="a"),
                DataIssue(source="ForexFactory", type=DataIssueType.DUPLICATE_EVENT, message="b"),
            ]
        )
        assert [i.message for i in result.issues_of(DataIssueType.NO_TIME)] == ["a"]


class TestSubscriberPreferences:
    """Tests for SubscriberPreferences."""

    def test_defaults(self):
        """Should follow every currency on both calendars in the default zone."""
        prefs = SubscriberPreferences()
        assert prefs.currencies is None
        assert prefs.news_source is NewsSource.BOTH
        assert prefs.timezone == "Europe/Kyiv"
        assert prefs.follows("JPY") is True

    def test_currencies_uppercased(self):
        """Should normalize currency codes."""
        prefs = SubscriberPreferences(currencies=["usd", " eur ", ""])
        assert prefs.currencies == frozenset({"USD", "EUR"})
        assert prefs.follows("usd") is True
        assert prefs.follows("GBP") is False

    def test_news_source_flags(self):
        """Should expose which calendars are included."""
        assert NewsSource.FOREXFACTORY.includes_forexfactory is True
        assert NewsSource.FOREXFACTORY.includes_myfxbook is False
        assert NewsSource.MYFXBOOK.includes_myfxbook is True
        assert NewsSource.BOTH.includes_forexfactory and NewsSource.BOTH.includes_myfxbook

    def test_news_source_from_value(self):
        """Should accept the stored string value."""
        prefs = SubscriberPreferences(news_source="Myfxbook")
        assert prefs.news_source is NewsSource.MYFXBOOK
