"""
Cache store adapter over Valkey.

The cache is an optimization, never a dependency:
- reads report HIT, MISS or UNAVAILABLE and never raise
- writes are best-effort; failures are logged and counted
- a circuit breaker skips the backend for a while after a failure
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from functools import lru_cache

import valkey.asyncio as valkey

from osubot.core.config import get_settings
from osubot.core.metrics import CacheMetrics, get_metrics
from osubot.services.cache_circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


class CacheStatus(str, enum.Enum):
    HIT = "hit"
    MISS = "miss"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class CacheLookup:
    """Outcome of a cache read."""

    status: CacheStatus
    payload: bytes | None = None

    @classmethod
    def hit(cls, payload: bytes) -> "CacheLookup":
        return cls(CacheStatus.HIT, payload)

    @classmethod
    def miss(cls) -> "CacheLookup":
        return cls(CacheStatus.MISS)

    @classmethod
    def unavailable(cls) -> "CacheLookup":
        return cls(CacheStatus.UNAVAILABLE)


class CacheStore:
    """Byte-oriented cache adapter with graceful degradation.

    The client draws a pooled connection per command and returns it when the
    command completes, so no connection is held across other awaits.
    """

    def __init__(
        self,
        client: valkey.Valkey,
        metrics: CacheMetrics,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._client = client
        self._metrics = metrics
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            get_settings().cache_circuit_breaker_timeout_seconds
        )

    async def get_bytes(self, key: str) -> CacheLookup:
        """Read raw bytes; empty values count as a miss."""
        if self._circuit_breaker.is_open():
            self._metrics.record_backend_error("get_skipped")
            return CacheLookup.unavailable()

        try:
            value = await self._client.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s", key, exc_info=exc)
            self._metrics.record_backend_error("get")
            self._circuit_breaker.open()
            return CacheLookup.unavailable()

        self._circuit_breaker.close()
        if not value:
            return CacheLookup.miss()
        return CacheLookup.hit(bytes(value))

    async def set_bytes(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        """Store bytes with an expiry; returns whether the write landed."""

        @self._circuit_breaker.protect
        async def _set() -> bool:
            if ttl_seconds > 0:
                await self._client.set(key, value, ex=ttl_seconds)
            else:
                await self._client.set(key, value)
            return True

        stored = await _set()
        if stored is None:
            self._metrics.record_backend_error("set")
            logger.warning("Failed to insert %d bytes into cache for %s", len(value), key)
            return False
        return True

    async def delete(self, key: str) -> bool:
        """Remove a cache entry; best-effort."""

        @self._circuit_breaker.protect
        async def _delete() -> bool:
            await self._client.delete(key)
            return True

        deleted = await _delete()
        if deleted is None:
            self._metrics.record_backend_error("delete")
            return False
        return True

    async def ping(self) -> bool:
        """Report backend reachability without raising."""
        try:
            return bool(await self._client.ping())
        except Exception as exc:
            logger.warning("Cache ping failed", exc_info=exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()


# =============================================================================
# Factory Functions
# =============================================================================


@lru_cache
def get_valkey_client() -> valkey.Valkey:
    """Return a shared Valkey client backed by a bounded connection pool."""
    settings = get_settings()
    pool = valkey.ConnectionPool.from_url(
        settings.valkey_url,
        max_connections=settings.valkey_max_connections,
    )
    return valkey.Valkey(connection_pool=pool)


@lru_cache
def get_cache_store() -> CacheStore:
    """Return the shared cache store; one circuit breaker per process."""
    return CacheStore(get_valkey_client(), get_metrics())


__all__ = [
    "CacheLookup",
    "CacheStatus",
    "CacheStore",
    "get_cache_store",
    "get_valkey_client",
]
