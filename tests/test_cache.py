"""Tests for the in-memory cache."""

from datetime import UTC, datetime, timedelta

from burst_timeline.services.cache import InMemoryCache


def test_cache_expires_and_deletes() -> None:
    now = [datetime(2025, 8, 25, tzinfo=UTC)]
    cache = InMemoryCache(clock=lambda: now[0])

    cache.set("a", {"x": 1}, ttl_seconds=10)
    cache.set("b", "kept", ttl_seconds=100)
    cache.delete("b")

    assert cache.get("a") == {"x": 1}
    assert cache.get("b") is None
    now[0] += timedelta(seconds=10)
    assert cache.get("a") is None
    assert len(cache) == 0


def test_set_sweeps_entries_of_superseded_keys() -> None:
    now = [datetime(2025, 8, 25, tzinfo=UTC)]
    cache = InMemoryCache(clock=lambda: now[0])

    for version in range(1000):
        cache.set(f"stats:v{version}:summary", version, ttl_seconds=60)
        now[0] += timedelta(seconds=61)

    assert len(cache) == 1
    cache.set("stats:vlast:summary", "fresh", ttl_seconds=60)
    assert len(cache) == 1
    assert cache.get("stats:vlast:summary") == "fresh"
