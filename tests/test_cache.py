from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from astrobridge.cache import CacheEntry, ResultCache, make_cache_key
from astrobridge.observability.metrics import (
    RESULT_CACHE_EVICTIONS,
    RESULT_CACHE_HITS,
    RESULT_CACHE_MISSES,
    ensure_metrics_registered,
)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_write_then_read_within_ttl_returns_value() -> None:
    clock = FakeClock()
    cache: ResultCache[str] = ResultCache(max_entries=4, ttl=60.0, clock=clock)

    cache.set("planet_a", "value")
    clock.advance(59.0)

    assert cache.get("planet_a") == "value"


def test_entry_at_exact_ttl_is_still_live() -> None:
    clock = FakeClock()
    cache: ResultCache[str] = ResultCache(ttl=60.0, clock=clock)

    cache.set("k", "v")
    clock.advance(60.0)

    assert cache.get("k") == "v"


def test_expired_read_returns_absence_and_removes_entry() -> None:
    clock = FakeClock()
    cache: ResultCache[str] = ResultCache(ttl=60.0, clock=clock)

    cache.set("k", "v")
    clock.advance(60.5)

    assert "k" in cache
    assert cache.get("k") is None
    assert "k" not in cache
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default() -> None:
    clock = FakeClock()
    cache: ResultCache[int] = ResultCache(ttl=300.0, clock=clock)

    cache.set("short", 1, ttl=1.0)
    cache.set("long", 2)
    clock.advance(2.0)

    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_capacity_evicts_oldest_insertion_not_least_recently_read() -> None:
    cache: ResultCache[int] = ResultCache(max_entries=3, clock=FakeClock())
    for index, key in enumerate("abc"):
        cache.set(key, index)

    # Reading "a" does not protect it: eviction follows insertion order.
    assert cache.get("a") == 0
    cache.set("d", 3)

    assert cache.keys() == ["b", "c", "d"]
    assert cache.get("a") is None


def test_refreshing_existing_key_does_not_evict() -> None:
    clock = FakeClock()
    cache: ResultCache[int] = ResultCache(max_entries=2, ttl=10.0, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    clock.advance(9.0)
    cache.set("a", 10)
    clock.advance(5.0)

    assert cache.keys() == ["a", "b"]
    assert cache.get("a") == 10
    assert cache.get("b") is None


def test_disabled_cache_is_a_no_op() -> None:
    cache: ResultCache[int] = ResultCache(enabled=False, clock=FakeClock())

    cache.set("k", 1)

    assert len(cache) == 0
    assert cache.get("k") is None


def test_disabling_clears_entries_and_reenabling_starts_empty() -> None:
    cache: ResultCache[int] = ResultCache(clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    cache.set_enabled(False)
    assert len(cache) == 0
    assert not cache.enabled

    cache.set_enabled(True)
    assert cache.get("a") is None
    cache.set("a", 3)
    assert cache.get("a") == 3


def test_purge_expired_sweeps_only_stale_entries() -> None:
    clock = FakeClock()
    cache: ResultCache[int] = ResultCache(ttl=10.0, clock=clock)
    cache.set("old", 1)
    clock.advance(8.0)
    cache.set("new", 2)
    clock.advance(5.0)

    assert cache.purge_expired() == 1
    assert cache.keys() == ["new"]


def test_invalid_bounds_are_rejected() -> None:
    with pytest.raises(ValueError):
        ResultCache(max_entries=0)
    with pytest.raises(ValueError):
        ResultCache(ttl=0)


def test_cache_entry_expiry_is_strict() -> None:
    entry = CacheEntry(value="v", timestamp=100.0, ttl=5.0)
    assert not entry.expired(105.0)
    assert entry.expired(105.0001)


def test_cache_key_is_deterministic_across_option_order() -> None:
    first = make_cache_key("planet", 2451545.0, {"flags": 258, "body": 1})
    second = make_cache_key("planet", 2451545.0, {"body": 1, "flags": 258})

    assert first == second
    assert first.startswith("planet_2451545.0_")
    assert make_cache_key("planet", 2451545.0, {"body": 2}) != make_cache_key("planet", 2451545.0, {"body": 1})
    assert make_cache_key("moon", 2451545.0) != make_cache_key("planet", 2451545.0)
    assert make_cache_key("planet", 2451545) == make_cache_key("planet", 2451545.0)


def test_hits_misses_and_evictions_are_counted() -> None:
    registry = CollectorRegistry()
    ensure_metrics_registered(registry)
    labels = {"cache": "metrics-probe"}

    def sample(metric, extra=None) -> float:
        name = f"{metric._name}_total"  # type: ignore[attr-defined]
        return registry.get_sample_value(name, {**labels, **(extra or {})}) or 0.0

    cache: ResultCache[int] = ResultCache(max_entries=1, clock=FakeClock(), name="metrics-probe")
    cache.set("a", 1)
    cache.get("a")
    cache.get("missing")
    cache.set("b", 2)

    assert sample(RESULT_CACHE_HITS) == 1.0
    assert sample(RESULT_CACHE_MISSES) == 1.0
    assert sample(RESULT_CACHE_EVICTIONS, {"reason": "capacity"}) == 1.0
