"""Reuse of initialised backend and cache bundles across invocations."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

from .errors import PoolExhaustedError
from .observability.metrics import POOL_EXHAUSTED, POOL_IDLE_INSTANCES, POOL_LIVE_INSTANCES
from .runtime_config import (
    DEFAULT_POOL_ACQUIRE_TIMEOUT,
    DEFAULT_POOL_MAX_SIZE,
    BridgeConfig,
    resolve_bridge_config,
)

LOG = logging.getLogger(__name__)

__all__ = [
    "InstancePool",
    "default_pool",
    "reset_default_pool",
    "with_instance",
]

T = TypeVar("T")
R = TypeVar("R")

Factory = Callable[[], "T | Awaitable[T]"]


class InstancePool(Generic[T]):
    """Bounded pool of reusable instances.

    ``acquire`` hands out an idle instance when one exists, builds a new one
    while fewer than ``max_size`` instances are alive, and otherwise waits up
    to ``acquire_timeout`` seconds for a release before raising
    :class:`PoolExhaustedError`. Released instances have ``clear_caches()``
    called (when they provide it) before they rejoin the idle list.
    """

    def __init__(
        self,
        factory: Factory,
        *,
        max_size: int = DEFAULT_POOL_MAX_SIZE,
        acquire_timeout: float = DEFAULT_POOL_ACQUIRE_TIMEOUT,
        name: str = "default",
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if acquire_timeout <= 0:
            raise ValueError("acquire_timeout must be positive")
        self._factory = factory
        self.max_size = int(max_size)
        self.acquire_timeout = float(acquire_timeout)
        self.name = name
        self._idle: list[T] = []
        self._borrowed: set[int] = set()
        self._live = 0
        self._condition: asyncio.Condition | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def live_count(self) -> int:
        """Instances owned by the pool, idle or currently borrowed."""

        return self._live

    @property
    def borrowed_count(self) -> int:
        return len(self._borrowed)

    def _get_condition(self) -> asyncio.Condition:
        loop = asyncio.get_running_loop()
        if self._condition is None or self._loop is not loop:
            self._condition = asyncio.Condition()
            self._loop = loop
        return self._condition

    def _available(self) -> bool:
        return bool(self._idle) or self._live < self.max_size

    def _publish(self) -> None:
        POOL_IDLE_INSTANCES.labels(pool=self.name).set(len(self._idle))
        POOL_LIVE_INSTANCES.labels(pool=self.name).set(self._live)

    def _checkout(self, instance: T) -> T:
        self._borrowed.add(id(instance))
        self._publish()
        return instance

    async def acquire(self) -> T:
        condition = self._get_condition()
        async with condition:
            if not self._available():
                try:
                    await asyncio.wait_for(condition.wait_for(self._available), self.acquire_timeout)
                except asyncio.TimeoutError:
                    POOL_EXHAUSTED.labels(pool=self.name).inc()
                    LOG.warning(
                        "Instance pool %s exhausted after %.2fs",
                        self.name,
                        self.acquire_timeout,
                        extra={"err_code": "POOL_EXHAUSTED"},
                    )
                    raise PoolExhaustedError(
                        max_size=self.max_size, timeout=self.acquire_timeout
                    ) from None
            if self._idle:
                return self._checkout(self._idle.pop())
            # Reserve the slot before building so concurrent acquirers see it.
            self._live += 1
            self._publish()

        try:
            created = self._factory()
            instance = await created if inspect.isawaitable(created) else created
        except BaseException:
            async with condition:
                self._live -= 1
                self._publish()
                condition.notify()
            raise
        LOG.debug("Instance pool %s created instance %d/%d", self.name, self._live, self.max_size)
        return self._checkout(instance)

    async def release(self, instance: T) -> None:
        """Return ``instance``; it is dropped when the idle list is full."""

        clear = getattr(instance, "clear_caches", None)
        if callable(clear):
            clear()

        condition = self._get_condition()
        async with condition:
            owned = id(instance) in self._borrowed
            self._borrowed.discard(id(instance))
            if len(self._idle) < self.max_size and (owned or self._live < self.max_size):
                if not owned:
                    self._live += 1
                self._idle.append(instance)
            else:
                if owned:
                    self._live -= 1
                LOG.debug("Instance pool %s full; dropping released instance", self.name)
            self._publish()
            condition.notify()

    @asynccontextmanager
    async def borrow(self) -> AsyncIterator[T]:
        instance = await self.acquire()
        try:
            yield instance
        finally:
            await self.release(instance)

    def cleanup(self) -> None:
        """Drop every idle instance; borrowed instances are unaffected."""

        dropped = len(self._idle)
        self._idle.clear()
        self._live -= dropped
        self._publish()
        if dropped:
            LOG.debug("Instance pool %s dropped %d idle instance(s)", self.name, dropped)


_DEFAULT_POOL: InstancePool[Any] | None = None


def default_pool(config: BridgeConfig | None = None) -> InstancePool[Any]:
    """Return the process-wide pool of :class:`EphemerisService` bundles."""

    global _DEFAULT_POOL
    if _DEFAULT_POOL is None:
        from .service import create_service

        resolved = config or resolve_bridge_config()
        _DEFAULT_POOL = InstancePool(
            lambda: create_service(resolved),
            max_size=resolved.pool_max_size,
            acquire_timeout=resolved.pool_acquire_timeout,
        )
    return _DEFAULT_POOL


def reset_default_pool() -> None:
    global _DEFAULT_POOL
    if _DEFAULT_POOL is not None:
        _DEFAULT_POOL.cleanup()
    _DEFAULT_POOL = None


async def with_instance(
    callback: Callable[[T], R | Awaitable[R]],
    pool: InstancePool[T] | None = None,
) -> R:
    """Run ``callback`` with a borrowed instance and return its result."""

    async with (pool or default_pool()).borrow() as instance:
        result = callback(instance)
        if inspect.isawaitable(result):
            return await result
        return result
