"""Prometheus counters for the cache layer.

Counters live on an explicitly passed registry so tests and the metrics
endpoint can each hold their own handle instead of sharing process globals.
"""

from __future__ import annotations

from functools import lru_cache

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class CacheMetrics:
    """Hit/miss counters per entity type plus upstream request telemetry."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._hits = Counter(
            "osubot_cache_hits_total",
            "Cache hits served without an upstream fetch.",
            labelnames=("entity",),
            registry=self.registry,
        )
        self._misses = Counter(
            "osubot_cache_misses_total",
            "Cache lookups that fell through to the upstream fetch.",
            labelnames=("entity",),
            registry=self.registry,
        )
        self._backend_errors = Counter(
            "osubot_cache_backend_errors_total",
            "Cache backend operations that failed or were skipped.",
            labelnames=("operation",),
            registry=self.registry,
        )
        self._upstream_requests = Counter(
            "osubot_upstream_requests_total",
            "Outbound upstream API requests.",
            labelnames=("endpoint", "result"),
            registry=self.registry,
        )
        self._upstream_latency = Histogram(
            "osubot_upstream_request_seconds",
            "Latency of outbound upstream API requests.",
            labelnames=("endpoint",),
            registry=self.registry,
        )

    def record_hit(self, entity: str) -> None:
        self._hits.labels(entity=entity).inc()

    def record_miss(self, entity: str) -> None:
        self._misses.labels(entity=entity).inc()

    def record_backend_error(self, operation: str) -> None:
        self._backend_errors.labels(operation=operation).inc()

    def observe_upstream_request(
        self, endpoint: str, result: str, duration_seconds: float
    ) -> None:
        """Record upstream request result and latency."""
        self._upstream_requests.labels(endpoint=endpoint, result=result).inc()
        self._upstream_latency.labels(endpoint=endpoint).observe(duration_seconds)

    def hits(self, entity: str) -> float:
        return self._sample("osubot_cache_hits_total", {"entity": entity})

    def misses(self, entity: str) -> float:
        return self._sample("osubot_cache_misses_total", {"entity": entity})

    def backend_errors(self, operation: str) -> float:
        return self._sample(
            "osubot_cache_backend_errors_total", {"operation": operation}
        )

    def _sample(self, name: str, labels: dict[str, str]) -> float:
        value = self.registry.get_sample_value(name, labels)
        return value if value is not None else 0.0


@lru_cache
def get_metrics() -> CacheMetrics:
    """Return the process metrics handle bound to the default registry."""
    return CacheMetrics(REGISTRY)
