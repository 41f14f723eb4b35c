"""Bounded registry for best-effort side effects.

Cache write-through and database upserts run as tracked tasks. A request
awaits them shielded, so an abandoned request lets its writes finish instead
of cutting them off mid-write, and shutdown can wait for the registry to drain.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Coroutine
from functools import lru_cache
from typing import Any

from osubot.core.config import get_settings

logger = logging.getLogger(__name__)


class SideEffectRegistry:
    """Tracks detached side-effect tasks with a concurrency bound."""

    def __init__(self, max_concurrency: int = 64) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[None]:
        """Schedule a side effect and keep a reference until it finishes."""
        task = asyncio.create_task(self._run(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, *effects: Awaitable[Any], name: str) -> None:
        """Run side effects concurrently and wait for them.

        Cancelling the caller does not cancel the effects; they keep running
        in the registry until done.
        """
        if not effects:
            return
        task = self.spawn(self._gather(effects, name), name=name)
        await asyncio.shield(task)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for all pending side effects, e.g. during shutdown."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(
                "%d side effect(s) still pending after drain timeout", len(pending)
            )

    @staticmethod
    async def _gather(effects: tuple[Awaitable[Any], ...], name: str) -> None:
        # One failing effect must not abandon its siblings.
        results = await asyncio.gather(*effects, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Side effect %s failed", name, exc_info=result)

    async def _run(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        # Created lazily so the semaphore binds to the running loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        async with self._semaphore:
            try:
                await coro
            except Exception:
                logger.exception("Side effect %s failed", name)


@lru_cache
def get_side_effects() -> SideEffectRegistry:
    """Return the process-wide side-effect registry."""
    return SideEffectRegistry(get_settings().side_effect_concurrency)


__all__ = ["SideEffectRegistry", "get_side_effects"]
