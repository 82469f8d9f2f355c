"""
In-flight de-duplication for async producers.

``prevent_race_condition(fn)`` returns a callable that runs at most one ``fn()``
at a time. Callers arriving while a call is in flight wait on that call and get
its result (or its exception) instead of starting another one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class RaceGuard(Generic[T]):
    """Single pending slot around a zero-argument async producer."""

    def __init__(self, fn: Callable[[], Awaitable[T]]):
        self._fn = fn
        self._pending: asyncio.Task[T] | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    async def _run(self) -> T:
        try:
            return await self._fn()
        finally:
            self._pending = None

    async def __call__(self) -> T:
        task = self._pending
        if task is None:
            task = asyncio.ensure_future(self._run())
            self._pending = task
        # shield: a cancelled waiter must not cancel the call other waiters share
        return await asyncio.shield(task)


def prevent_race_condition(fn: Callable[[], Awaitable[T]]) -> RaceGuard[T]:
    return RaceGuard(fn)
