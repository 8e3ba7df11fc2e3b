"""
Unit tests for the adapter factory.

Tests config-driven adapter selection and pipeline wiring.
"""

from unittest.mock import MagicMock

import pytest

from econcal.configs.settings import Settings
from econcal.ingestion.adapters import (
    ForexFactoryCsvAdapter,
    ForexFactoryCsvConfig,
    ForexFactoryHtmlAdapter,
    MyfxbookHtmlAdapter,
    MyfxbookHtmlConfig,
    MyfxbookRssAdapter,
)
from econcal.ingestion.browser import BrowserCoordinator
from econcal.ingestion.factory import (
    build_adapter_config,
    browser_options_from_settings,
    create_adapters,
    create_pipeline,
    needs_browser,
)
from econcal.ingestion.issue_log import IssueLog
from econcal.ingestion.pipeline import DeliveryPipeline

# =============================================================================
# TEST DATA
# =============================================================================

INGESTION_CONFIG = {
    "sources": {
        "forexfactory_csv": {"url": "https://example.com/ff.csv", "cache_ttl_s": 1800},
        "myfxbook_rss": {"url": "https://example.com/mfb.xml", "cache_ttl_s": 120},
        "myfxbook_html": {"impact_filters": ["1", "2", "3"], "settle_s": 0},
    },
    "quality": {"max_days_from_now": 3},
    "conflicts": {"similarity_threshold": 0.8, "max_diff_minutes": 10},
}

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def make_settings():
    """Return a function building settings without reading .env."""

    def _make(**overrides):
        return Settings(_env_file=None, **overrides)

    return _make


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestBuildAdapterConfig:
    """Tests for build_adapter_config."""

    def test_known_fields_applied(self):
        """Should apply YAML values to the config fields."""
        config = build_adapter_config(ForexFactoryCsvConfig, {"cache_ttl_s": 1800}, "Europe/Kyiv")
        assert config.cache_ttl_s == 1800
        assert config.source_id == "forexfactory_csv"
        assert config.default_timezone == "Europe/Kyiv"

    def test_unknown_keys_kept(self):
        """Should keep unknown keys in custom_config."""
        config = build_adapter_config(ForexFactoryCsvConfig, {"region": "eu"}, "UTC")
        assert config.custom_config == {"region": "eu"}

    def test_impact_filters_tuple(self):
        """Should store impact filters as a tuple of strings."""
        config = build_adapter_config(MyfxbookHtmlConfig, {"impact_filters": [1, 2]}, "UTC")
        assert config.impact_filters == ("1", "2")

    def test_missing_block(self):
        """Should fall back to the defaults."""
        config = build_adapter_config(ForexFactoryCsvConfig, None, "UTC")
        assert config.url == ForexFactoryCsvConfig().url


class TestBrowserSelection:
    """Tests for needs_browser and browser options."""

    def test_default_feeds_need_no_browser(self, make_settings):
        """Should not need a browser for CSV and RSS feeds."""
        assert needs_browser(make_settings()) is False

    def test_html_feed_needs_browser(self, make_settings):
        """Should need a browser for any page feed."""
        assert needs_browser(make_settings(MYFXBOOK_FEED="html")) is True

    def test_options_from_settings(self, make_settings):
        """Should copy the browser settings."""
        options = browser_options_from_settings(
            make_settings(BROWSER_HEADLESS=False, BROWSER_IDLE_CLOSE_S=60)
        )
        assert options.headless is False
        assert options.idle_close_s == 60


class TestCreateAdapters:
    """Tests for create_adapters."""

    def test_default_feeds(self, make_settings):
        """Should build the CSV and RSS adapters with configured values."""
        forexfactory, myfxbook = create_adapters(make_settings(), INGESTION_CONFIG)

        assert isinstance(forexfactory, ForexFactoryCsvAdapter)
        assert isinstance(myfxbook, MyfxbookRssAdapter)
        assert forexfactory.config.url == "https://example.com/ff.csv"
        assert forexfactory.config.cache_ttl_s == 1800
        assert myfxbook.config.cache_ttl_s == 120
        assert forexfactory.quality_gate is myfxbook.quality_gate
        assert forexfactory.quality_gate.max_days_from_now == 3

    def test_shared_issue_log(self, make_settings):
        """Should hand the same issue log to both adapters."""
        issue_log = IssueLog()
        forexfactory, myfxbook = create_adapters(make_settings(), INGESTION_CONFIG, issue_log=issue_log)
        assert forexfactory.issue_log is issue_log
        assert myfxbook.issue_log is issue_log

    def test_html_feeds_share_browser(self, make_settings):
        """Should inject one browser into both page adapters."""
        browser = BrowserCoordinator()
        settings = make_settings(FOREXFACTORY_FEED="html", MYFXBOOK_FEED="html")

        forexfactory, myfxbook = create_adapters(settings, INGESTION_CONFIG, browser=browser)

        assert isinstance(forexfactory, ForexFactoryHtmlAdapter)
        assert isinstance(myfxbook, MyfxbookHtmlAdapter)
        assert forexfactory.browser is browser
        assert myfxbook.browser is browser
        assert myfxbook.config.impact_filters == ("1", "2", "3")

    def test_browser_created_when_needed(self, make_settings):
        """Should create a browser coordinator for page feeds."""
        _, myfxbook = create_adapters(make_settings(MYFXBOOK_FEED="html"), INGESTION_CONFIG)
        assert isinstance(myfxbook.browser, BrowserCoordinator)

    def test_reads_configured_path(self, make_settings, tmp_path):
        """Should load the YAML file named by INGESTION_CONFIG_PATH."""
        path = tmp_path / "custom.yaml"
        path.write_text(
            "sources:\n"
            "  forexfactory_csv:\n"
            "    url: https://mirror.example.com/ff.csv\n"
            "    cache_ttl_s: 7200\n"
            "quality:\n"
            "  max_days_from_now: 5\n",
            encoding="utf-8",
        )

        forexfactory, myfxbook = create_adapters(make_settings(INGESTION_CONFIG_PATH=path))

        assert forexfactory.config.url == "https://mirror.example.com/ff.csv"
        assert forexfactory.config.cache_ttl_s == 7200
        assert forexfactory.quality_gate.max_days_from_now == 5
        assert isinstance(myfxbook, MyfxbookRssAdapter)

    def test_unknown_feed(self):
        """Should reject an unknown feed name."""
        settings = MagicMock(
            FOREXFACTORY_FEED="json",
            MYFXBOOK_FEED="rss",
            DEFAULT_TIMEZONE="UTC",
        )
        with pytest.raises(ValueError, match="Unknown feed"):
            create_adapters(settings, INGESTION_CONFIG)


class TestCreatePipeline:
    """Tests for create_pipeline."""

    def test_wiring(self, make_settings):
        """Should wire adapters and conflict thresholds into the pipeline."""
        pipeline = create_pipeline(make_settings(), INGESTION_CONFIG)

        assert isinstance(pipeline, DeliveryPipeline)
        assert pipeline.browser is None
        detector = pipeline.aggregator.conflict_detector
        assert detector.similarity_threshold == 0.8
        assert detector.max_diff_minutes == 10
        assert isinstance(pipeline.aggregator.forexfactory, ForexFactoryCsvAdapter)

    def test_browser_owned_by_pipeline(self, make_settings):
        """Should hand the shared browser to the pipeline for closing."""
        pipeline = create_pipeline(make_settings(FOREXFACTORY_FEED="html"), INGESTION_CONFIG)
        assert isinstance(pipeline.browser, BrowserCoordinator)
        assert pipeline.aggregator.forexfactory.browser is pipeline.browser

    def test_conflicts_from_configured_path(self, make_settings, tmp_path):
        """Should take conflict thresholds from the configured file."""
        path = tmp_path / "custom.yaml"
        path.write_text("conflicts:\n  similarity_threshold: 0.9\n  max_diff_minutes: 15\n", encoding="utf-8")

        detector = create_pipeline(make_settings(INGESTION_CONFIG_PATH=path)).aggregator.conflict_detector

        assert detector.similarity_threshold == 0.9
        assert detector.max_diff_minutes == 15
