"""Prometheus metric definitions shared across astrobridge components."""

from __future__ import annotations

from collections.abc import Iterable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

__all__ = [
    "BACKEND_LOAD_ATTEMPTS",
    "BACKEND_LOAD_DURATION",
    "BACKEND_SEARCHES",
    "MARSHALING_FAILURES",
    "POOL_EXHAUSTED",
    "POOL_IDLE_INSTANCES",
    "POOL_LIVE_INSTANCES",
    "RESULT_CACHE_EVICTIONS",
    "RESULT_CACHE_HITS",
    "RESULT_CACHE_MISSES",
    "ensure_metrics_registered",
]


BACKEND_SEARCHES = Counter(
    "astrobridge_backend_searches_total",
    "Full backend resolution sequences executed by a loader.",
    ("backend",),
    registry=None,
)

BACKEND_LOAD_ATTEMPTS = Counter(
    "astrobridge_backend_load_attempts_total",
    "Individual loading strategy attempts grouped by outcome.",
    ("backend", "strategy", "outcome"),
    registry=None,
)

BACKEND_LOAD_DURATION = Histogram(
    "astrobridge_backend_load_duration_seconds",
    "Duration of complete backend resolution sequences.",
    ("backend",),
    registry=None,
)

MARSHALING_FAILURES = Counter(
    "astrobridge_marshaling_failures_total",
    "Linear-memory marshaling failures in the WebAssembly adapter.",
    ("operation",),
    registry=None,
)

RESULT_CACHE_HITS = Counter(
    "astrobridge_result_cache_hits_total",
    "Result cache reads served from memory.",
    ("cache",),
    registry=None,
)

RESULT_CACHE_MISSES = Counter(
    "astrobridge_result_cache_misses_total",
    "Result cache reads that found no live entry.",
    ("cache",),
    registry=None,
)

RESULT_CACHE_EVICTIONS = Counter(
    "astrobridge_result_cache_evictions_total",
    "Entries removed from a result cache grouped by reason.",
    ("cache", "reason"),
    registry=None,
)

POOL_IDLE_INSTANCES = Gauge(
    "astrobridge_pool_idle_instances",
    "Instances currently parked in the idle list.",
    ("pool",),
    registry=None,
)

POOL_LIVE_INSTANCES = Gauge(
    "astrobridge_pool_live_instances",
    "Instances owned by the pool, idle or borrowed.",
    ("pool",),
    registry=None,
)

POOL_EXHAUSTED = Counter(
    "astrobridge_pool_exhausted_total",
    "Acquire calls that timed out waiting for a free instance.",
    ("pool",),
    registry=None,
)


def _iter_metrics() -> Iterable[Counter | Gauge | Histogram]:
    yield BACKEND_SEARCHES
    yield BACKEND_LOAD_ATTEMPTS
    yield BACKEND_LOAD_DURATION
    yield MARSHALING_FAILURES
    yield RESULT_CACHE_HITS
    yield RESULT_CACHE_MISSES
    yield RESULT_CACHE_EVICTIONS
    yield POOL_IDLE_INSTANCES
    yield POOL_LIVE_INSTANCES
    yield POOL_EXHAUSTED


def ensure_metrics_registered(
    registry: CollectorRegistry | None = None,
) -> None:
    """Register shared metrics with ``registry`` if not already present."""

    target = registry or REGISTRY
    for metric in _iter_metrics():
        try:
            target.register(metric)
        except ValueError:
            # Prometheus raises when a metric name already exists in the registry.
            continue
