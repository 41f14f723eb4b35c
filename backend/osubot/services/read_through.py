"""
Read-through cache manager.

Every cached entity goes through the same flow::

    CheckCache -> HIT: validate and return (undecodable entries count as a miss)
               -> MISS / UNAVAILABLE: fetch upstream
                  -> NotFound: cleanup once, re-raise, cache nothing
                  -> transient error: re-raise
                  -> ok: write through to the cache and persist, concurrently

``ReadThroughCache`` implements the flow once; ``OsuCache`` instantiates it per
entity type with an ``EntitySpec``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from osubot.core.config import get_settings
from osubot.core.metrics import CacheMetrics, get_metrics
from osubot.core.tasks import SideEffectRegistry, get_side_effects
from osubot.models.osu import (
    GameMode,
    OsekaiBadge,
    OsekaiMedal,
    OsekaiRankingKind,
    OsuTrackerIdCount,
    OsuTrackerPpGroup,
    OsuTrackerStats,
    Rankings,
    User,
    UserArgs,
)
from osubot.persistence.sink import PersistenceSink, get_persistence_sink
from osubot.services.cache import CacheStatus, CacheStore, get_cache_store
from osubot.services.cache_keys import CacheKeys
from osubot.services.cache_ttl_config import TTLPolicy
from osubot.services.codec import (
    CachedEntity,
    UnsupportedFormatError,
    serialize,
    wrap_rehydrated,
)
from osubot.services.osu_client import OsuClient, get_osu_client
from osubot.services.osu_errors import OsuNotFoundError

logger = logging.getLogger(__name__)
T = TypeVar("T")

KIB = 1024

# Upper bounds on serialized envelope size per entity type.
USER_BUDGET = 64 * KIB
PP_RANKING_BUDGET = 256 * KIB
MEDALS_BUDGET = 512 * KIB
BADGES_BUDGET = 1024 * KIB
OSEKAI_RANKING_BUDGET = 512 * KIB
OSUTRACKER_STATS_BUDGET = 1024 * KIB
OSUTRACKER_PP_GROUP_BUDGET = 64 * KIB
OSUTRACKER_COUNTS_BUDGET = 2048 * KIB


@dataclass(frozen=True, slots=True)
class EntitySpec(Generic[T]):
    """Per-entity cache configuration."""

    name: str
    model: Any
    ttl: int
    budget: int


class ReadThroughCache:
    """Generic read-through flow over a ``CacheStore``."""

    def __init__(
        self,
        store: CacheStore,
        metrics: CacheMetrics,
        side_effects: SideEffectRegistry,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._side_effects = side_effects

    async def fetch(
        self,
        spec: EntitySpec[T],
        key: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        persist: Callable[[T], Awaitable[Any]] | None = None,
        on_not_found: Callable[[], Awaitable[Any]] | None = None,
    ) -> CachedEntity[T]:
        lookup = await self._store.get_bytes(key)
        if lookup.status is CacheStatus.HIT:
            try:
                entity = wrap_rehydrated(lookup.payload, spec.model)
                entity.get()
            except (UnsupportedFormatError, ValidationError) as exc:
                logger.warning("Discarding cached %s at %s: %s", spec.name, key, exc)
            else:
                logger.debug("Found %s in cache (%d bytes)", key, len(entity))
                self._metrics.record_hit(spec.name)
                return entity

        self._metrics.record_miss(spec.name)

        try:
            value = await fetch()
        except OsuNotFoundError:
            if on_not_found is not None:
                await self._side_effects.run(
                    on_not_found(), name=f"{spec.name}_not_found_cleanup"
                )
            raise

        entity = serialize(value, spec.budget, model=spec.model)

        effects: list[Awaitable[Any]] = []
        if lookup.status is not CacheStatus.UNAVAILABLE:
            effects.append(self._store.set_bytes(key, entity.payload, spec.ttl))
        if persist is not None:
            effects.append(persist(value))
        await self._side_effects.run(*effects, name=f"{spec.name}_write_through")

        return entity


class OsuCache:
    """Cached access to osu!, Osekai and osutracker entities.

    One method per entity type. All of them share the ``ReadThroughCache``
    flow and differ only in key, TTL, budget, upstream call and persistence.
    """

    def __init__(
        self,
        store: CacheStore,
        client: OsuClient,
        sink: PersistenceSink,
        metrics: CacheMetrics,
        *,
        side_effects: SideEffectRegistry | None = None,
        keys: CacheKeys | None = None,
        ttl: TTLPolicy | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._sink = sink
        self._keys = keys or CacheKeys()
        self._read_through = ReadThroughCache(
            store, metrics, side_effects or SideEffectRegistry()
        )

        ttl = ttl or TTLPolicy()
        self._user_spec = EntitySpec("user", User, ttl.user_ttl, USER_BUDGET)
        self._pp_ranking_spec = EntitySpec(
            "pp_ranking", Rankings, ttl.pp_ranking_ttl, PP_RANKING_BUDGET
        )
        self._medals_spec = EntitySpec(
            "osekai_medals", list[OsekaiMedal], ttl.medals_ttl, MEDALS_BUDGET
        )
        self._badges_spec = EntitySpec(
            "osekai_badges", list[OsekaiBadge], ttl.badges_ttl, BADGES_BUDGET
        )
        self._osekai_ranking_specs = {
            kind: EntitySpec(
                "osekai_ranking",
                list[kind.entry_model],
                ttl.osekai_ranking_ttl,
                OSEKAI_RANKING_BUDGET,
            )
            for kind in OsekaiRankingKind
        }
        self._osutracker_stats_spec = EntitySpec(
            "osutracker_stats",
            OsuTrackerStats,
            ttl.osutracker_stats_ttl,
            OSUTRACKER_STATS_BUDGET,
        )
        self._osutracker_pp_group_spec = EntitySpec(
            "osutracker_pp_group",
            OsuTrackerPpGroup,
            ttl.osutracker_pp_group_ttl,
            OSUTRACKER_PP_GROUP_BUDGET,
        )
        self._osutracker_counts_spec = EntitySpec(
            "osutracker_counts",
            list[OsuTrackerIdCount],
            ttl.osutracker_counts_ttl,
            OSUTRACKER_COUNTS_BUDGET,
        )

    async def user(self, args: UserArgs) -> User:
        """Fetch a user profile.

        If the name is unknown and contains inner underscores, the lookup is
        retried once with spaces in their place.
        """
        try:
            return await self._user(args)
        except OsuNotFoundError:
            retry_name = args.whitespaced_name()
            if retry_name is None:
                raise

        logger.debug("User %r not found, retrying as %r", args.name, retry_name)
        return await self._user(args.with_name(retry_name))

    async def _user(self, args: UserArgs) -> User:
        async def fetch() -> User:
            user = await self._client.get_user(args.name, args.mode)
            return user.without_page()

        async def persist(user: User) -> None:
            await self._sink.upsert_osu_user(user, args.mode)

        entity = await self._read_through.fetch(
            self._user_spec,
            self._keys.user(args),
            fetch,
            persist=persist,
            on_not_found=partial(self._sink.remove_osu_user_stats, args.name),
        )
        return entity.get()

    async def invalidate_user(self, args: UserArgs) -> bool:
        """Drop a cached user profile, e.g. after a name change."""
        return await self._store.delete(self._keys.user(args))

    async def pp_ranking(
        self, mode: GameMode, page: int, country: str | None = None
    ) -> CachedEntity[Rankings]:
        return await self._read_through.fetch(
            self._pp_ranking_spec,
            self._keys.pp_ranking(mode, page, country),
            partial(self._client.get_performance_rankings, mode, page, country),
        )

    async def medals(self) -> CachedEntity[list[OsekaiMedal]]:
        return await self._read_through.fetch(
            self._medals_spec, self._keys.medals(), self._client.get_osekai_medals
        )

    async def badges(self) -> CachedEntity[list[OsekaiBadge]]:
        return await self._read_through.fetch(
            self._badges_spec, self._keys.badges(), self._client.get_osekai_badges
        )

    async def osekai_ranking(self, kind: OsekaiRankingKind) -> CachedEntity[list[Any]]:
        return await self._read_through.fetch(
            self._osekai_ranking_specs[kind],
            self._keys.osekai_ranking(kind),
            partial(self._client.get_osekai_ranking, kind),
        )

    async def osutracker_stats(self) -> CachedEntity[OsuTrackerStats]:
        return await self._read_through.fetch(
            self._osutracker_stats_spec,
            self._keys.osutracker_stats(),
            self._client.get_osutracker_stats,
        )

    async def osutracker_pp_group(self, pp: int) -> CachedEntity[OsuTrackerPpGroup]:
        return await self._read_through.fetch(
            self._osutracker_pp_group_spec,
            self._keys.osutracker_pp_group(pp),
            partial(self._client.get_osutracker_pp_group, pp),
        )

    async def osutracker_counts(self) -> CachedEntity[list[OsuTrackerIdCount]]:
        return await self._read_through.fetch(
            self._osutracker_counts_spec,
            self._keys.osutracker_counts(),
            self._client.get_osutracker_counts,
        )


@lru_cache
def get_osu_cache() -> OsuCache:
    """Return the shared manager wired to the process-wide collaborators."""
    settings = get_settings()
    return OsuCache(
        get_cache_store(),
        get_osu_client(),
        get_persistence_sink(),
        get_metrics(),
        side_effects=get_side_effects(),
        keys=CacheKeys(settings.cache_key_namespace),
        ttl=TTLPolicy(settings),
    )


__all__ = ["EntitySpec", "OsuCache", "ReadThroughCache", "get_osu_cache"]
