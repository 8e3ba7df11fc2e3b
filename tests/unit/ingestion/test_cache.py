"""
Unit tests for the result cache.
"""

import pytest

from econcal.ingestion.cache import ResultCache

# =============================================================================
# FIXTURES
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock():
    """Create a fake clock."""
    return FakeClock()


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestResultCache:
    """Tests for ResultCache."""

    def test_rejects_non_positive_ttl(self):
        """Should refuse a zero TTL."""
        with pytest.raises(ValueError):
            ResultCache(0)

    def test_fresh_hit(self, clock):
        """Should serve a value within its TTL."""
        cache = ResultCache(300, clock=clock)
        cache.set("today", [1, 2])
        clock.advance(299)
        assert cache.get("today") == [1, 2]
        assert "today" in cache

    def test_expired_miss(self, clock):
        """Should miss once the TTL elapsed."""
        cache = ResultCache(300, clock=clock)
        cache.set("today", [1])
        clock.advance(300)
        assert cache.get("today") is None
        assert "today" not in cache

    def test_stale_kept_for_fallback(self, clock):
        """Should keep expired values reachable for fallback."""
        cache = ResultCache(300, clock=clock)
        cache.set("today", [1])
        clock.advance(3600)
        assert cache.get_stale("today") == [1]
        assert len(cache) == 1

    def test_empty_list_is_a_hit(self, clock):
        """Should treat a cached empty result as present."""
        cache = ResultCache(300, clock=clock)
        cache.set("today", [])
        assert cache.get("today") == []
        assert "today" in cache

    def test_expires_in(self, clock):
        """Should report the remaining lifetime."""
        cache = ResultCache(300, clock=clock)
        assert cache.expires_in("missing") == 0.0
        cache.set("today", [1])
        clock.advance(100)
        assert cache.expires_in("today") == 200.0

    def test_clear(self, clock):
        """Should drop every entry."""
        cache = ResultCache(300, clock=clock)
        cache.set("a", [1])
        cache.clear()
        assert len(cache) == 0
        assert cache.get_stale("a") is None
