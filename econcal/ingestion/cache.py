"""
Per-adapter result cache.

Each adapter owns one ResultCache keyed by request URL or feed identity.
Expiry is checked on every read. Expired entries are kept so a failed fetch
can still fall back to the last good result.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """Cached value with its storage and expiry timestamps (monotonic seconds)."""

    value: V
    stored_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class ResultCache(Generic[V]):
    """
    TTL cache owned by a single adapter instance.

    Args:
        ttl_seconds: Lifetime of an entry
        clock: Monotonic clock, injectable for tests
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}

    def get(self, key: str) -> V | None:
        """Return the value when fresh, None otherwise."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            return None
        return entry.value

    def get_stale(self, key: str) -> V | None:
        """Return the last stored value regardless of expiry."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def expires_in(self, key: str) -> float:
        """Seconds until the entry expires (0 when missing or expired)."""
        entry = self._entries.get(key)
        if entry is None:
            return 0.0
        return max(0.0, entry.expires_at - self._clock())

    def set(self, key: str, value: V) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(value=value, stored_at=now, expires_at=now + self.ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
