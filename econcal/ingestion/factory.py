"""
Adapter Factory for config-driven pipeline creation.

Builds the ForexFactory and Myfxbook adapters selected by the settings
(FOREXFACTORY_FEED / MYFXBOOK_FEED) from the blocks of ingestion.yaml, and
wires them into a DeliveryPipeline.

Usage:
    from econcal.ingestion.factory import create_pipeline

    pipeline = create_pipeline()
    result = await pipeline.run(prefs, mode="general")
"""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any

from econcal.configs.config import Config
from econcal.configs.settings import Settings, get_settings
from econcal.ingestion.adapters import (
    AdapterConfig,
    BaseCalendarAdapter,
    ForexFactoryCsvAdapter,
    ForexFactoryCsvConfig,
    ForexFactoryHtmlAdapter,
    ForexFactoryHtmlConfig,
    MyfxbookHtmlAdapter,
    MyfxbookHtmlConfig,
    MyfxbookRssAdapter,
    MyfxbookRssConfig,
)
from econcal.ingestion.aggregator import EventAggregator
from econcal.ingestion.browser import BrowserCoordinator, BrowserOptions
from econcal.ingestion.conflicts import ConflictDetector
from econcal.ingestion.issue_log import IssueLog
from econcal.ingestion.pipeline import DeliveryPipeline
from econcal.ingestion.quality_gate import QualityGate

logger = logging.getLogger(__name__)

FOREXFACTORY_FEEDS = {
    "csv": ("forexfactory_csv", ForexFactoryCsvAdapter, ForexFactoryCsvConfig),
    "html": ("forexfactory_html", ForexFactoryHtmlAdapter, ForexFactoryHtmlConfig),
}
MYFXBOOK_FEEDS = {
    "rss": ("myfxbook_rss", MyfxbookRssAdapter, MyfxbookRssConfig),
    "html": ("myfxbook_html", MyfxbookHtmlAdapter, MyfxbookHtmlConfig),
}
BROWSER_ADAPTERS = (ForexFactoryHtmlAdapter, MyfxbookHtmlAdapter)


def build_adapter_config(
    config_cls: type[AdapterConfig],
    block: dict[str, Any] | None,
    default_timezone: str,
) -> AdapterConfig:
    """
    Create an adapter config from a YAML block.

    Keys that are not fields of the config class are kept in custom_config.
    """
    block = dict(block or {})
    known = {f.name for f in fields(config_cls)}
    kwargs = {k: v for k, v in block.items() if k in known}
    extra = {k: v for k, v in block.items() if k not in known}
    if extra:
        logger.debug(f"{config_cls.__name__}: unknown keys kept in custom_config: {sorted(extra)}")
        kwargs["custom_config"] = {**kwargs.get("custom_config", {}), **extra}
    if "impact_filters" in kwargs:
        kwargs["impact_filters"] = tuple(str(v) for v in kwargs["impact_filters"])
    kwargs.setdefault("default_timezone", default_timezone)
    return config_cls(**kwargs)


def needs_browser(settings: Settings) -> bool:
    """Whether either selected feed is a browser-rendered page."""
    return settings.FOREXFACTORY_FEED == "html" or settings.MYFXBOOK_FEED == "html"


def browser_options_from_settings(settings: Settings) -> BrowserOptions:
    return BrowserOptions(
        headless=settings.BROWSER_HEADLESS,
        startup_timeout_s=settings.BROWSER_STARTUP_TIMEOUT_S,
        idle_close_s=settings.BROWSER_IDLE_CLOSE_S,
        idle_check_s=settings.BROWSER_IDLE_CHECK_S,
    )


def _create_adapter(
    feeds: dict[str, tuple],
    feed: str,
    ingestion_config: dict,
    settings: Settings,
    browser: BrowserCoordinator | None,
    issue_log: IssueLog,
    quality_gate: QualityGate,
) -> BaseCalendarAdapter:
    if feed not in feeds:
        raise ValueError(f"Unknown feed '{feed}', expected one of {sorted(feeds)}")
    source_id, adapter_cls, config_cls = feeds[feed]
    block = ingestion_config.get("sources", {}).get(source_id)
    config = build_adapter_config(config_cls, block, settings.DEFAULT_TIMEZONE)

    kwargs: dict[str, Any] = {"issue_log": issue_log, "quality_gate": quality_gate}
    if adapter_cls in BROWSER_ADAPTERS:
        if browser is None:
            raise ValueError(f"Feed '{feed}' requires a BrowserCoordinator")
        kwargs["browser"] = browser

    logger.info(f"Creating adapter {source_id} ({adapter_cls.__name__})")
    return adapter_cls(config, **kwargs)


def create_adapters(
    settings: Settings | None = None,
    ingestion_config: dict | None = None,
    browser: BrowserCoordinator | None = None,
    issue_log: IssueLog | None = None,
) -> tuple[BaseCalendarAdapter, BaseCalendarAdapter]:
    """
    Create the (forexfactory, myfxbook) adapter pair.

    Args:
        settings: Application settings (defaults to get_settings())
        ingestion_config: Parsed ingestion.yaml (defaults to settings.INGESTION_CONFIG_PATH)
        browser: Shared browser, created from settings when a page feed needs one
        issue_log: Shared issue log

    Returns:
        Tuple of the ForexFactory and Myfxbook adapters

    Raises:
        ValueError: Unknown feed name
    """
    settings = settings or get_settings()
    if ingestion_config is None:
        ingestion_config = Config.load_ingestion_config(settings.INGESTION_CONFIG_PATH)
    issue_log = issue_log or IssueLog()

    quality = ingestion_config.get("quality") or {}
    quality_gate = QualityGate(max_days_from_now=quality.get("max_days_from_now", 2))

    if needs_browser(settings) and browser is None:
        browser = BrowserCoordinator(browser_options_from_settings(settings))

    forexfactory = _create_adapter(
        FOREXFACTORY_FEEDS,
        settings.FOREXFACTORY_FEED,
        ingestion_config,
        settings,
        browser,
        issue_log,
        quality_gate,
    )
    myfxbook = _create_adapter(
        MYFXBOOK_FEEDS,
        settings.MYFXBOOK_FEED,
        ingestion_config,
        settings,
        browser,
        issue_log,
        quality_gate,
    )
    return forexfactory, myfxbook


def create_pipeline(
    settings: Settings | None = None,
    ingestion_config: dict | None = None,
    browser: BrowserCoordinator | None = None,
    issue_log: IssueLog | None = None,
) -> DeliveryPipeline:
    """
    Convenience function to wire adapters, aggregator and delivery filter.

    Returns:
        Configured DeliveryPipeline
    """
    settings = settings or get_settings()
    if ingestion_config is None:
        ingestion_config = Config.load_ingestion_config(settings.INGESTION_CONFIG_PATH)
    issue_log = issue_log or IssueLog()
    if needs_browser(settings) and browser is None:
        browser = BrowserCoordinator(browser_options_from_settings(settings))

    forexfactory, myfxbook = create_adapters(settings, ingestion_config, browser, issue_log)

    conflicts = ingestion_config.get("conflicts") or {}
    detector = ConflictDetector(
        similarity_threshold=conflicts.get("similarity_threshold", 0.7),
        max_diff_minutes=conflicts.get("max_diff_minutes", 5),
    )
    aggregator = EventAggregator(
        forexfactory,
        myfxbook,
        issue_log=issue_log,
        conflict_detector=detector,
    )
    return DeliveryPipeline(aggregator, browser=browser)
