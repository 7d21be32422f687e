"""Bounded, time-expiring memoisation of engine results."""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .observability.metrics import (
    RESULT_CACHE_EVICTIONS,
    RESULT_CACHE_HITS,
    RESULT_CACHE_MISSES,
)
from .runtime_config import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_CACHE_TTL_SECONDS

LOG = logging.getLogger(__name__)

__all__ = ["CacheEntry", "ResultCache", "make_cache_key"]

T = TypeVar("T")


def make_cache_key(operation: str, day_number: float, options: Mapping[str, Any] | None = None) -> str:
    """Return a deterministic key for ``operation`` at ``day_number``.

    ``options`` are serialised as JSON with sorted keys so that logically equal
    option mappings always produce the same key.
    """

    encoded = json.dumps(dict(options or {}), sort_keys=True, separators=(",", ":"), default=str)
    return f"{operation}_{float(day_number)!r}_{encoded}"


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class ResultCache(Generic[T]):
    """Process-local cache with insertion-order eviction and lazy expiry.

    Inserting a new key at capacity evicts the *oldest inserted* entry, not
    the least recently read one. Expiry is checked on read; an expired entry
    found by :meth:`get` is removed and reported as a miss.
    """

    __slots__ = ("name", "max_entries", "ttl", "_clock", "_enabled", "_data")

    def __init__(
        self,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        ttl: float = DEFAULT_CACHE_TTL_SECONDS,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
        name: str = "results",
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.name = name
        self.max_entries = int(max_entries)
        self.ttl = float(ttl)
        self._clock = clock
        self._enabled = bool(enabled)
        self._data: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    @property
    def enabled(self) -> bool:
        return self._enabled

    def keys(self) -> list[str]:
        """Stored keys in insertion order, expired or not."""

        return list(self._data)

    def get(self, key: str) -> T | None:
        if not self._enabled:
            return None
        entry = self._data.get(key)
        if entry is None:
            RESULT_CACHE_MISSES.labels(cache=self.name).inc()
            return None
        if entry.expired(self._clock()):
            del self._data[key]
            RESULT_CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc()
            RESULT_CACHE_MISSES.labels(cache=self.name).inc()
            return None
        RESULT_CACHE_HITS.labels(cache=self.name).inc()
        return entry.value

    def set(self, key: str, value: T, ttl: float | None = None) -> None:
        if not self._enabled:
            return
        entry = CacheEntry(value=value, timestamp=self._clock(), ttl=self.ttl if ttl is None else float(ttl))
        if key in self._data:
            # Refreshing a key keeps its insertion slot.
            self._data[key] = entry
            return
        while len(self._data) >= self.max_entries:
            self._data.popitem(last=False)
            RESULT_CACHE_EVICTIONS.labels(cache=self.name, reason="capacity").inc()
        self._data[key] = entry

    def purge_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""

        now = self._clock()
        stale = [key for key, entry in self._data.items() if entry.expired(now)]
        for key in stale:
            del self._data[key]
        if stale:
            RESULT_CACHE_EVICTIONS.labels(cache=self.name, reason="expired").inc(len(stale))
        return len(stale)

    def clear(self) -> None:
        self._data.clear()

    def set_enabled(self, enabled: bool) -> None:
        """Toggle caching; disabling drops every stored entry."""

        if self._enabled and not enabled:
            LOG.debug("Disabling result cache %s (%d entries dropped)", self.name, len(self._data))
            self._data.clear()
        self._enabled = bool(enabled)
