"""Circuit breaker helper for cache backend calls."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


class CircuitBreaker:
    """Fail fast while the cache backend is known to be down.

    After a failure the circuit stays open for ``timeout_seconds``; while open,
    guarded calls skip the backend entirely.
    """

    def __init__(
        self,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout_seconds
        self._clock = clock
        self._open_until = 0.0

    def is_open(self) -> bool:
        """Check if the circuit breaker is currently open."""
        return self._clock() < self._open_until

    def open(self) -> None:
        """Open the circuit breaker for the configured timeout."""
        self._open_until = self._clock() + self._timeout

    def close(self) -> None:
        """Close the circuit breaker immediately."""
        self._open_until = 0.0

    def protect(
        self, func: Callable[..., Awaitable[T]]
    ) -> Callable[..., Awaitable[T | None]]:
        """Wrap a coroutine function; failures open the circuit and yield None."""

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T | None:
            if self.is_open():
                return None
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    "Cache circuit breaker opened for %s", func.__name__, exc_info=exc
                )
                self.open()
                return None
            self.close()
            return result

        return wrapper


__all__ = ["CircuitBreaker"]
