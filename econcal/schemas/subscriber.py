# econcal/schemas/subscriber.py
"""
Subscriber preferences as seen by the pipeline.

Preferences are resolved by the surrounding application (persistence is not
part of the pipeline) and handed in read-only.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from econcal.ingestion.normalization.time_parsing import DEFAULT_TIMEZONE


class NewsSource(str, Enum):
    """Which calendars a subscriber follows."""

    FOREXFACTORY = "ForexFactory"
    MYFXBOOK = "Myfxbook"
    BOTH = "Both"

    @property
    def includes_forexfactory(self) -> bool:
        return self in (NewsSource.FOREXFACTORY, NewsSource.BOTH)

    @property
    def includes_myfxbook(self) -> bool:
        return self in (NewsSource.MYFXBOOK, NewsSource.BOTH)


class SubscriberPreferences(BaseModel):
    """
    Attributes:
        currencies: Monitored currency codes; None follows every currency
        news_source: Preferred calendar(s)
        timezone: IANA display zone of the subscriber
    """

    model_config = ConfigDict(frozen=True)

    currencies: frozenset[str] | None = None
    news_source: NewsSource = NewsSource.BOTH
    timezone: str = DEFAULT_TIMEZONE

    @field_validator("currencies", mode="before")
    @classmethod
    def upper_currencies(cls, v: Any) -> frozenset[str] | None:
        if v is None:
            return None
        return frozenset(str(code).strip().upper() for code in v if str(code).strip())

    def follows(self, currency: str) -> bool:
        """Whether events of a currency are relevant to this subscriber."""
        return self.currencies is None or currency.upper() in self.currencies
