from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from sqlalchemy import delete, func, select, union_all
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from osubot.models.osu import Beatmap, GameMode, User
from osubot.persistence import models

# Stats rows older than this are too stale to sample for rank approximation.
NEIGHBOR_MAX_AGE = timedelta(days=2)


def _user_stats_row(user: User) -> dict[str, Any]:
    return {
        "user_id": user.user_id,
        "country_code": user.country_code,
        "join_date": user.join_date,
        "comment_count": user.comments_count,
        "kudosu_total": user.kudosu.total,
        "kudosu_available": user.kudosu.available,
        "forum_post_count": user.forum_post_count,
        "badges": user.badge_count,
        "played_maps": user.beatmap_playcounts_count,
        "followers": user.follower_count,
        "graveyard_mapset_count": user.graveyard_mapset_count,
        "loved_mapset_count": user.loved_mapset_count,
        "mapping_followers": user.mapping_follower_count,
        "previous_usernames_count": len(user.previous_usernames),
        "ranked_mapset_count": user.ranked_mapset_count,
        "medals": user.medal_count,
    }


def _mode_stats_row(user: User, mode: GameMode) -> dict[str, Any] | None:
    stats = user.statistics
    if stats is None:
        return None
    return {
        "user_id": user.user_id,
        "mode": int(mode),
        "accuracy": stats.accuracy,
        "pp": stats.pp,
        "country_rank": stats.country_rank or 0,
        "global_rank": stats.global_rank or 0,
        "count_ss": stats.grade_counts.ss,
        "count_ssh": stats.grade_counts.ssh,
        "count_s": stats.grade_counts.s,
        "count_sh": stats.grade_counts.sh,
        "count_a": stats.grade_counts.a,
        "level": stats.level.current + stats.level.progress / 100.0,
        "max_combo": stats.max_combo,
        "playcount": stats.playcount,
        "playtime": stats.playtime,
        "ranked_score": stats.ranked_score,
        "replays_watched": stats.replays_watched,
        "total_hits": stats.total_hits,
        "total_score": stats.total_score,
        "scores_first": user.scores_first_count,
    }


class OsuUserRepository:
    """Persistence for user identity mapping and profile statistics."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_name(self, user_id: int, username: str) -> None:
        stmt = insert(models.OsuUserName).values(user_id=user_id, username=username)
        stmt = stmt.on_conflict_do_update(
            index_elements=[models.OsuUserName.user_id],
            set_={"username": stmt.excluded.username},
        )
        await self._session.execute(stmt)

    async def upsert_user(self, user: User, mode: GameMode) -> None:
        """Write name, profile stats and mode stats; caller owns the transaction."""
        await self.upsert_name(user.user_id, user.username)
        now = datetime.now(timezone.utc)

        stats_row = _user_stats_row(user)
        stmt = insert(models.OsuUserStats).values(**stats_row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[models.OsuUserStats.user_id],
            set_={
                **{
                    column: getattr(stmt.excluded, column)
                    for column in stats_row
                    if column not in ("user_id", "join_date")
                },
                "last_update": now,
            },
        )
        await self._session.execute(stmt)

        mode_row = _mode_stats_row(user, mode)
        if mode_row is None:
            return

        stmt = insert(models.OsuUserStatsMode).values(**mode_row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                models.OsuUserStatsMode.user_id,
                models.OsuUserStatsMode.mode,
            ],
            set_={
                **{
                    column: getattr(stmt.excluded, column)
                    for column in mode_row
                    if column not in ("user_id", "mode")
                },
                "last_update": now,
            },
        )
        await self._session.execute(stmt)

    async def remove_stats(self, username: str) -> None:
        """Delete profile and mode stats of the user currently holding ``username``."""
        user_ids = select(models.OsuUserName.user_id).where(
            func.lower(models.OsuUserName.username) == username.lower()
        )
        await self._session.execute(
            delete(models.OsuUserStats).where(models.OsuUserStats.user_id.in_(user_ids))
        )
        await self._session.execute(
            delete(models.OsuUserStatsMode).where(
                models.OsuUserStatsMode.user_id.in_(user_ids)
            )
        )

    async def get_names_by_ids(self, user_ids: Sequence[int]) -> dict[int, str]:
        if not user_ids:
            return {}
        result = await self._session.execute(
            select(models.OsuUserName.user_id, models.OsuUserName.username).where(
                models.OsuUserName.user_id.in_(list(user_ids))
            )
        )
        return {row.user_id: row.username for row in result}

    async def get_ids_by_names(self, names: Sequence[str]) -> dict[str, int]:
        """Case-insensitive lookup keyed by the stored spelling of each name."""
        if not names:
            return {}
        result = await self._session.execute(
            select(models.OsuUserName.user_id, models.OsuUserName.username).where(
                func.lower(models.OsuUserName.username).in_(
                    [name.lower() for name in names]
                )
            )
        )
        return {row.username: row.user_id for row in result}

    async def pp_neighbors(self, pp: float, mode: GameMode) -> list[tuple[int, float]]:
        """Recently updated users just above and just below ``pp``.

        Rows come back as (global_rank, pp); the first row is the upper
        neighbor when one exists.
        """
        stats = self._recent_mode_stats(mode)
        higher = self._latest_of(
            select(stats).where(stats.c.pp >= pp).order_by(stats.c.pp.asc()).limit(2)
        )
        lower = self._latest_of(
            select(stats).where(stats.c.pp <= pp).order_by(stats.c.pp.desc()).limit(2)
        )
        return await self._fetch_neighbors(higher, lower)

    async def rank_neighbors(
        self, rank: int, mode: GameMode
    ) -> list[tuple[int, float]]:
        """Recently updated users around global ``rank``, upper neighbor first."""
        stats = self._recent_mode_stats(mode)
        higher = self._latest_of(
            select(stats)
            .where(stats.c.global_rank > 0, stats.c.global_rank <= rank)
            .order_by(stats.c.pp.asc())
            .limit(2)
        )
        lower = self._latest_of(
            select(stats)
            .where(stats.c.global_rank >= rank)
            .order_by(stats.c.pp.desc())
            .limit(2)
        )
        return await self._fetch_neighbors(higher, lower)

    @staticmethod
    def _recent_mode_stats(mode: GameMode):
        table = models.OsuUserStatsMode
        return (
            select(table.global_rank, table.pp, table.last_update)
            .where(
                table.mode == int(mode),
                func.now() - table.last_update < NEIGHBOR_MAX_AGE,
            )
            .cte("stats")
        )

    @staticmethod
    def _latest_of(candidates):
        inner = candidates.subquery()
        return (
            select(inner.c.global_rank, inner.c.pp)
            .order_by(inner.c.last_update.desc())
            .limit(1)
        )

    async def _fetch_neighbors(self, higher, lower) -> list[tuple[int, float]]:
        result = await self._session.execute(union_all(higher, lower))
        return [(row.global_rank or 0, row.pp or 0.0) for row in result]


class BeatmapRepository:
    """Persistence for beatmap metadata, used as a secondary combo cache."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_combo(self, map_id: int) -> int | None:
        result = await self._session.execute(
            select(models.OsuMap.max_combo).where(models.OsuMap.map_id == map_id)
        )
        return result.scalar_one_or_none()

    async def get_combos(self, map_ids: Iterable[int]) -> dict[int, int | None]:
        """Known maps among ``map_ids``; unknown ids are absent from the result."""
        ids = list(dict.fromkeys(map_ids))
        if not ids:
            return {}
        result = await self._session.execute(
            select(models.OsuMap.map_id, models.OsuMap.max_combo).where(
                models.OsuMap.map_id.in_(ids)
            )
        )
        return {row.map_id: row.max_combo for row in result}

    async def upsert_beatmap(self, beatmap: Beatmap) -> None:
        stmt = insert(models.OsuMap).values(
            map_id=beatmap.map_id,
            mapset_id=beatmap.mapset_id,
            mode=int(beatmap.mode),
            version=beatmap.version,
            max_combo=beatmap.max_combo,
            seconds_drain=beatmap.seconds_drain,
            seconds_total=beatmap.seconds_total,
            stars=beatmap.stars,
            bpm=beatmap.bpm,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[models.OsuMap.map_id],
            set_={
                "mapset_id": stmt.excluded.mapset_id,
                "mode": stmt.excluded.mode,
                "version": stmt.excluded.version,
                "max_combo": func.coalesce(
                    stmt.excluded.max_combo, models.OsuMap.max_combo
                ),
                "seconds_drain": stmt.excluded.seconds_drain,
                "seconds_total": stmt.excluded.seconds_total,
                "stars": stmt.excluded.stars,
                "bpm": stmt.excluded.bpm,
                "last_update": datetime.now(timezone.utc),
            },
        )
        await self._session.execute(stmt)


__all__ = ["BeatmapRepository", "OsuUserRepository"]
