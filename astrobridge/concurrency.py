"""Single-flight coordination for expensive asynchronous initialisation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

__all__ = ["SingleFlight"]

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Share one in-progress coroutine between every concurrent caller.

    The first caller starts ``factory()``; callers arriving while it runs await
    the same task and observe the same result or the same exception. Once the
    task settles the slot is cleared, so neither a success nor a failure is
    remembered here. Retaining results is the owner's decision.
    """

    __slots__ = ("_task",)

    def __init__(self) -> None:
        self._task: asyncio.Future[T] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._task
        if task is None or task.done():
            task = asyncio.ensure_future(factory())
            self._task = task
            task.add_done_callback(self._settled)
        # A cancelled waiter must not cancel the shared load for everyone else.
        return await asyncio.shield(task)

    def _settled(self, task: asyncio.Future[T]) -> None:
        if self._task is task:
            self._task = None
        if not task.cancelled():
            # Mark the exception retrieved; every waiter re-raises it through shield.
            task.exception()
