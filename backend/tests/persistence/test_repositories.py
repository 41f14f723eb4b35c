"""Unit tests for the osu! repositories (SQL shape only)."""

from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import postgresql

from osubot.models.osu import Beatmap, GameMode, User
from osubot.persistence.repositories import BeatmapRepository, OsuUserRepository


def make_user(with_statistics: bool = True) -> User:
    payload = {
        "id": 42,
        "username": "alice",
        "country_code": "DE",
        "kudosu": {"total": 3, "available": 1},
        "previous_usernames": ["alicia"],
    }
    if with_statistics:
        payload["statistics"] = {
            "pp": 5000.0,
            "global_rank": 1234,
            "grade_counts": {"ss": 1, "a": 20},
            "level": {"current": 100, "progress": 50},
        }
    return User.model_validate(payload)


class TestOsuUserRepository:
    @pytest.mark.asyncio
    async def test_upsert_user_writes_three_rows(self, session):
        await OsuUserRepository(session).upsert_user(make_user(), GameMode.OSU)

        assert len(session.statements) == 3
        assert "INSERT INTO osu_user_names" in session.sql(0)
        assert "ON CONFLICT (user_id) DO UPDATE" in session.sql(0)
        assert "INSERT INTO osu_user_stats " in session.sql(1)
        assert "INSERT INTO osu_user_stats_mode" in session.sql(2)
        assert "ON CONFLICT (user_id, mode) DO UPDATE" in session.sql(2)

    @pytest.mark.asyncio
    async def test_upsert_user_without_statistics_skips_mode_row(self, session):
        await OsuUserRepository(session).upsert_user(
            make_user(with_statistics=False), GameMode.OSU
        )

        assert len(session.statements) == 2

    @pytest.mark.asyncio
    async def test_mode_row_values(self, session):
        await OsuUserRepository(session).upsert_user(make_user(), GameMode.TAIKO)

        params = session.statements[2].compile(dialect=postgresql.dialect()).params
        assert params["mode"] == 1
        assert params["level"] == pytest.approx(100.5)
        assert params["count_ss"] == 1
        assert params["global_rank"] == 1234

    @pytest.mark.asyncio
    async def test_remove_stats_matches_name_case_insensitively(self, session):
        await OsuUserRepository(session).remove_stats("Alice")

        assert len(session.statements) == 2
        assert session.sql(0).startswith("DELETE FROM osu_user_stats ")
        assert session.sql(1).startswith("DELETE FROM osu_user_stats_mode")
        assert "lower(osu_user_names.username)" in session.sql(0)
        params = session.statements[0].compile(dialect=postgresql.dialect()).params
        assert "alice" in params.values()

    @pytest.mark.asyncio
    async def test_name_lookups(self, session):
        repository = OsuUserRepository(session)
        session.results = [
            [SimpleNamespace(user_id=1, username="Alice")],
            [SimpleNamespace(user_id=1, username="Alice")],
        ]

        assert await repository.get_names_by_ids([1]) == {1: "Alice"}
        assert await repository.get_ids_by_names(["ALICE"]) == {"Alice": 1}
        assert await repository.get_names_by_ids([]) == {}
        assert len(session.statements) == 2

    @pytest.mark.asyncio
    async def test_pp_neighbors_query(self, session):
        session.results = [
            [
                SimpleNamespace(global_rank=100, pp=5000.0),
                SimpleNamespace(global_rank=200, pp=4000.0),
            ]
        ]

        neighbors = await OsuUserRepository(session).pp_neighbors(4500.0, GameMode.OSU)

        assert neighbors == [(100, 5000.0), (200, 4000.0)]
        assert "UNION ALL" in session.sql()


class TestBeatmapRepository:
    @pytest.mark.asyncio
    async def test_get_combos_deduplicates_and_skips_empty(self, session):
        repository = BeatmapRepository(session)
        session.results = [[SimpleNamespace(map_id=1, max_combo=500)]]

        assert await repository.get_combos([1, 1, 2]) == {1: 500}
        assert await repository.get_combos([]) == {}
        assert len(session.statements) == 1

    @pytest.mark.asyncio
    async def test_get_combo(self, session):
        session.results = [[812]]

        assert await BeatmapRepository(session).get_combo(1) == 812

    @pytest.mark.asyncio
    async def test_upsert_keeps_known_combo(self, session):
        await BeatmapRepository(session).upsert_beatmap(
            Beatmap(map_id=1, mapset_id=2, max_combo=None)
        )

        sql = session.sql()
        assert "ON CONFLICT (map_id) DO UPDATE" in sql
        assert "coalesce(excluded.max_combo, osu_maps.max_combo)" in sql
