"""
Fetch failure types.

Adapters raise these from their raw-fetch step; the shared adapter fetch
recovers from every FetchError with a cache fallback or an empty result, so
none of them reaches pipeline callers.
"""


class FetchError(Exception):
    """Upstream data could not be obtained."""

    def __init__(self, message: str, *, source: str | None = None):
        super().__init__(message)
        self.source = source


class RateLimitedError(FetchError):
    """Upstream signalled rate limiting (HTTP 429)."""


class SourceStructureError(FetchError):
    """The expected table, feed or CSV header is absent entirely."""


class BrowserUnavailableError(FetchError):
    """The shared browser was closed underneath a fetch, or the fetch timed out."""
