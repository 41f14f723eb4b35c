"""Per-entity TTL policy for cached entries."""

from __future__ import annotations

from osubot.core.config import Settings, get_settings


class TTLPolicy:
    """Centralized TTL configuration with validation.

    A TTL of zero stores the entry without expiry.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()

        self.user_ttl = settings.user_cache_ttl_seconds
        self.pp_ranking_ttl = settings.pp_ranking_cache_ttl_seconds
        self.medals_ttl = settings.medals_cache_ttl_seconds
        self.badges_ttl = settings.badges_cache_ttl_seconds
        self.osekai_ranking_ttl = settings.osekai_ranking_cache_ttl_seconds
        self.osutracker_stats_ttl = settings.osutracker_stats_cache_ttl_seconds
        self.osutracker_pp_group_ttl = settings.osutracker_pp_group_cache_ttl_seconds
        self.osutracker_counts_ttl = settings.osutracker_counts_cache_ttl_seconds

        self._validate_ttls()

    def _validate_ttls(self) -> None:
        """Validate that all TTL values are non-negative."""
        for attr_name, value in self.__dict__.items():
            if attr_name.endswith("_ttl") and value < 0:
                raise ValueError(f"TTL value for {attr_name} cannot be negative: {value}")


__all__ = ["TTLPolicy"]
