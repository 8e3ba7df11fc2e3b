"""
Calendar source adapters.

- ForexFactoryHtmlAdapter: browser-rendered ForexFactory calendar page
- ForexFactoryCsvAdapter: ForexFactory weekly CSV export
- MyfxbookRssAdapter: Myfxbook calendar RSS feed
- MyfxbookHtmlAdapter: browser-rendered Myfxbook calendar page
"""

from .base_adapter import AdapterConfig, BaseCalendarAdapter, FetchResult
from .forexfactory_csv import ForexFactoryCsvAdapter, ForexFactoryCsvConfig
from .forexfactory_html import ForexFactoryHtmlAdapter, ForexFactoryHtmlConfig
from .http_adapter import HttpAdapterConfig, HttpCalendarAdapter
from .myfxbook_html import MyfxbookHtmlAdapter, MyfxbookHtmlConfig
from .myfxbook_rss import MyfxbookRssAdapter, MyfxbookRssConfig

__all__ = [
    "AdapterConfig",
    "BaseCalendarAdapter",
    "FetchResult",
    "ForexFactoryCsvAdapter",
    "ForexFactoryCsvConfig",
    "ForexFactoryHtmlAdapter",
    "ForexFactoryHtmlConfig",
    "HttpAdapterConfig",
    "HttpCalendarAdapter",
    "MyfxbookHtmlAdapter",
    "MyfxbookHtmlConfig",
    "MyfxbookRssAdapter",
    "MyfxbookRssConfig",
]
