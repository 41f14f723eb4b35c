"""Fallback persistence sink.

PostgreSQL plays two roles for the cache layer: a secondary cache for
slow-changing data (beatmap max combos) and the system of record for the
user id <-> name mapping. Every operation opens its own short session so a
pooled connection is never held across unrelated awaits.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from osubot.core.database import get_session_factory
from osubot.models.osu import Beatmap, GameMode, User
from osubot.persistence.repositories import BeatmapRepository, OsuUserRepository
from osubot.services.rank_approximation import interpolate_pp, interpolate_rank

logger = logging.getLogger(__name__)


class PersistenceSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    # -- users -----------------------------------------------------------------

    async def upsert_osu_user(self, user: User, mode: GameMode) -> None:
        async with self._transaction() as session:
            await OsuUserRepository(session).upsert_user(user, mode)

    async def upsert_osu_name(self, user_id: int, username: str) -> None:
        async with self._transaction() as session:
            await OsuUserRepository(session).upsert_name(user_id, username)

    async def remove_osu_user_stats(self, username: str) -> None:
        async with self._transaction() as session:
            await OsuUserRepository(session).remove_stats(username)

    async def get_names_by_ids(self, user_ids: Sequence[int]) -> dict[int, str]:
        async with self._read() as session:
            return await OsuUserRepository(session).get_names_by_ids(user_ids)

    async def get_ids_by_names(self, names: Sequence[str]) -> dict[str, int]:
        async with self._read() as session:
            return await OsuUserRepository(session).get_ids_by_names(names)

    async def approx_rank_from_pp(self, pp: float, mode: GameMode) -> int:
        async with self._read() as session:
            neighbors = await OsuUserRepository(session).pp_neighbors(pp, mode)
        logger.debug("PP=%s => neighbors %s", pp, neighbors)
        return interpolate_rank(pp, neighbors)

    async def approx_pp_from_rank(self, rank: int, mode: GameMode) -> float:
        async with self._read() as session:
            neighbors = await OsuUserRepository(session).rank_neighbors(rank, mode)
        logger.debug("Rank %s => neighbors %s", rank, neighbors)
        return interpolate_pp(rank, neighbors)

    # -- beatmaps --------------------------------------------------------------

    async def get_beatmap_combo(self, map_id: int) -> int | None:
        async with self._read() as session:
            return await BeatmapRepository(session).get_combo(map_id)

    async def get_beatmaps_combo(self, map_ids: Iterable[int]) -> dict[int, int | None]:
        async with self._read() as session:
            return await BeatmapRepository(session).get_combos(map_ids)

    async def insert_beatmap(self, beatmap: Beatmap) -> None:
        async with self._transaction() as session:
            await BeatmapRepository(session).upsert_beatmap(beatmap)

    async def insert_beatmaps(self, beatmaps: Sequence[Beatmap]) -> None:
        """Upsert a batch of beatmaps in a single transaction."""
        if not beatmaps:
            return
        async with self._transaction() as session:
            repository = BeatmapRepository(session)
            for beatmap in beatmaps:
                await repository.upsert_beatmap(beatmap)


@lru_cache
def get_persistence_sink() -> PersistenceSink:
    return PersistenceSink(get_session_factory())


__all__ = ["PersistenceSink", "get_persistence_sink"]
