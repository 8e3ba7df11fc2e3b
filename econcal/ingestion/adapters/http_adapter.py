"""
HTTP Calendar Adapter.

Shared plumbing for calendars served as plain documents (CSV export, XML
feed): one lazily created httpx.AsyncClient per adapter, and mapping of HTTP
failures onto the fetch error types.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from econcal.ingestion.errors import FetchError, RateLimitedError

from .base_adapter import AdapterConfig, BaseCalendarAdapter

DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


@dataclass
class HttpAdapterConfig(AdapterConfig):
    """
    Configuration for document-based calendars.
    """

    url: str = ""
    accept: str = "*/*"
    headers: dict[str, str] = field(default_factory=dict)


class HttpCalendarAdapter(BaseCalendarAdapter):
    """
    Base for adapters that download one document per request.

    Args:
        client: Optional pre-built httpx.AsyncClient (tests pass one with a mock transport)
    """

    def __init__(self, config: HttpAdapterConfig, *, client: httpx.AsyncClient | None = None, **kwargs):
        self._client = client
        super().__init__(config, **kwargs)

    @property
    def http_config(self) -> HttpAdapterConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        if not self.http_config.url:
            raise ValueError(f"{type(self).__name__} requires url")
        if self.http_config.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be positive")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            headers = {
                "User-Agent": DEFAULT_USER_AGENT,
                "Accept": self.http_config.accept,
                **self.http_config.headers,
            }
            self._client = httpx.AsyncClient(headers=headers, follow_redirects=True)
        return self._client

    async def _get_text(self, url: str) -> str:
        """
        Download a document.

        Raises:
            RateLimitedError: HTTP 429
            FetchError: Any other non-200 status, network error or timeout
        """
        client = self._get_client()
        try:
            response = await client.get(url, timeout=self.http_config.request_timeout_s)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {e}", source=self.source_id) from e

        if response.status_code == 429:
            raise RateLimitedError(f"Rate limited (429) by {url}", source=self.source_id)
        if response.status_code != 200:
            raise FetchError(
                f"Unexpected status {response.status_code} from {url}",
                source=self.source_id,
            )
        return response.text

    async def close(self) -> None:
        """Close async HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
