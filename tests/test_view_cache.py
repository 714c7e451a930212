"""Tests for the aggregate view cache."""

import threading
import time
from datetime import UTC, datetime, timedelta

import pytest

from burst_timeline.services.cache import InMemoryCache
from burst_timeline.services.view_cache import AggregateViewCache, normalize_filter


def _counting(value: object) -> tuple[list[int], object]:
    calls: list[int] = []

    def compute() -> object:
        calls.append(1)
        return value

    return calls, compute


def test_hit_does_not_recompute() -> None:
    view_cache = AggregateViewCache(InMemoryCache(), "gallery")
    calls, compute = _counting({"ids": [1]})

    first = view_cache.get_or_compute("index", "abc", None, compute)
    second = view_cache.get_or_compute("index", "abc", None, compute)

    assert first == second == {"ids": [1]}
    assert len(calls) == 1


def test_new_fingerprint_misses() -> None:
    view_cache = AggregateViewCache(InMemoryCache(), "gallery")
    calls, compute = _counting("payload")

    view_cache.get_or_compute("index", "v1", None, compute)
    view_cache.get_or_compute("index", "v2", None, compute)

    assert len(calls) == 2


def test_force_recomputes() -> None:
    view_cache = AggregateViewCache(InMemoryCache(), "stats")
    calls, compute = _counting("payload")

    view_cache.get_or_compute("summary", "v1", None, compute)
    view_cache.get_or_compute("summary", "v1", None, compute, force=True)

    assert len(calls) == 2


def test_filters_are_cached_separately() -> None:
    view_cache = AggregateViewCache(InMemoryCache(), "gallery")

    hidden = view_cache.get_or_compute(
        "index", "v1", {"heroes": "hide"}, lambda: "hidden"
    )
    shown = view_cache.get_or_compute("index", "v1", {"heroes": "all"}, lambda: "all")

    assert (hidden, shown) == ("hidden", "all")


def test_cache_key_is_deterministic() -> None:
    view_cache = AggregateViewCache(InMemoryCache(), "gallery")

    key = view_cache.cache_key("index", "abc", {"b": True, "a": "x"})

    assert key == "gallery:vabc:index:a=x,b=1"
    assert view_cache.cache_key("index", "abc") == "gallery:vabc:index:all"
    assert normalize_filter({}) == "all"


def test_compute_errors_propagate_and_store_nothing() -> None:
    cache = InMemoryCache()
    view_cache = AggregateViewCache(cache, "stats")

    def explode() -> object:
        raise RuntimeError("query failed")

    with pytest.raises(RuntimeError):
        view_cache.get_or_compute("summary", "v1", None, explode)

    assert len(cache) == 0


def test_entries_expire_after_ttl() -> None:
    now = [datetime(2025, 8, 25, tzinfo=UTC)]
    cache = InMemoryCache(clock=lambda: now[0])
    view_cache = AggregateViewCache(cache, "stats", ttl_seconds=60)
    calls, compute = _counting("payload")

    view_cache.get_or_compute("summary", "v1", None, compute)
    now[0] += timedelta(seconds=61)
    view_cache.get_or_compute("summary", "v1", None, compute)

    assert len(calls) == 2


def test_concurrent_misses_compute_once() -> None:
    view_cache = AggregateViewCache(
        InMemoryCache(), "gallery", race_condition_ttl_seconds=5
    )
    calls: list[int] = []
    started = threading.Event()

    def slow_compute() -> str:
        calls.append(1)
        started.set()
        time.sleep(0.2)
        return "payload"

    results: list[object] = []

    def worker() -> None:
        results.append(view_cache.get_or_compute("index", "v1", None, slow_compute))

    first = threading.Thread(target=worker)
    first.start()
    started.wait(timeout=1)
    others = [threading.Thread(target=worker) for _ in range(4)]
    for thread in others:
        thread.start()
    for thread in [first, *others]:
        thread.join(timeout=5)

    assert results == ["payload"] * 5
    assert len(calls) == 1
