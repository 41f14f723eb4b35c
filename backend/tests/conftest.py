from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from osubot.core.config import Settings  # noqa: E402
from osubot.core.metrics import CacheMetrics, get_metrics  # noqa: E402
from osubot.core.tasks import SideEffectRegistry  # noqa: E402
from osubot.main import create_app  # noqa: E402
from osubot.persistence.sink import PersistenceSink  # noqa: E402
from osubot.services.cache import CacheStore, get_cache_store  # noqa: E402
from osubot.services.cache_circuit_breaker import CircuitBreaker  # noqa: E402
from osubot.services.cache_keys import CacheKeys  # noqa: E402
from osubot.services.cache_ttl_config import TTLPolicy  # noqa: E402
from osubot.services.osu_client import OsuClient  # noqa: E402
from osubot.services.read_through import OsuCache  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeValkey:
    """In-memory Valkey replacement storing raw bytes."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._store: dict[str, tuple[bytes, float | None]] = {}
        self.should_fail = False
        self.get_calls: list[str] = []
        self.set_calls: list[tuple[str, bytes, int | None]] = []
        self.closed = False

    def _prune(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, (_, expires_at) in self._store.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            self._store.pop(key, None)

    def put(self, key: str, value: bytes) -> None:
        """Seed a value directly, bypassing failure injection."""
        self._store[key] = (value, None)

    def contains(self, key: str) -> bool:
        self._prune()
        return key in self._store

    async def get(self, key: str) -> bytes | None:
        self.get_calls.append(key)
        if self.should_fail:
            raise ConnectionError("valkey unavailable")
        self._prune()
        record = self._store.get(key)
        if record is None:
            return None
        value, _ = record
        return value

    async def set(self, key: str, value: bytes, ex: int | None = None) -> bool:
        self.set_calls.append((key, value, ex))
        if self.should_fail:
            raise ConnectionError("valkey unavailable")
        expires_at = self._clock() + ex if ex else None
        self._store[key] = (value, expires_at)
        return True

    async def delete(self, *keys: str) -> int:
        if self.should_fail:
            raise ConnectionError("valkey unavailable")
        removed = 0
        for key in keys:
            if self._store.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        if self.should_fail:
            raise ConnectionError("valkey unavailable")
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_valkey(fake_clock: FakeClock) -> FakeValkey:
    return FakeValkey(fake_clock)


@pytest.fixture()
def metrics() -> CacheMetrics:
    return CacheMetrics()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture()
def cache_store(
    fake_valkey: FakeValkey, metrics: CacheMetrics, fake_clock: FakeClock
) -> CacheStore:
    return CacheStore(fake_valkey, metrics, CircuitBreaker(2.0, clock=fake_clock))


@pytest.fixture()
def osu_client() -> AsyncMock:
    return AsyncMock(spec=OsuClient)


@pytest.fixture()
def sink() -> AsyncMock:
    return AsyncMock(spec=PersistenceSink)


@pytest.fixture()
def side_effects() -> SideEffectRegistry:
    return SideEffectRegistry()


@pytest.fixture()
def osu_cache(
    cache_store: CacheStore,
    osu_client: AsyncMock,
    sink: AsyncMock,
    metrics: CacheMetrics,
    side_effects: SideEffectRegistry,
    settings: Settings,
) -> OsuCache:
    return OsuCache(
        cache_store,
        osu_client,
        sink,
        metrics,
        side_effects=side_effects,
        keys=CacheKeys("test"),
        ttl=TTLPolicy(settings),
    )


@pytest.fixture()
def api_client(cache_store: CacheStore, metrics: CacheMetrics) -> Iterator[TestClient]:
    """Test client wired to the fake cache store and an isolated registry."""
    app = create_app()
    app.dependency_overrides[get_cache_store] = lambda: cache_store
    app.dependency_overrides[get_metrics] = lambda: metrics
    yield TestClient(app)
    app.dependency_overrides.clear()
