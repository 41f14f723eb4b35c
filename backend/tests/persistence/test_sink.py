"""Tests for the fallback persistence sink."""

from types import SimpleNamespace

import pytest

from osubot.models.osu import Beatmap, GameMode, User
from osubot.persistence.sink import PersistenceSink
from osubot.services.rank_approximation import RankApproximationError


@pytest.fixture
def sink(session_factory) -> PersistenceSink:
    return PersistenceSink(session_factory)


@pytest.mark.asyncio
async def test_upsert_runs_in_one_transaction(sink, session):
    user = User.model_validate({"id": 42, "username": "alice"})

    await sink.upsert_osu_user(user, GameMode.OSU)

    assert session.transactions == 1
    assert session.closed == 1


@pytest.mark.asyncio
async def test_reads_do_not_open_transactions(sink, session):
    session.results = [[SimpleNamespace(map_id=1, max_combo=500)]]

    assert await sink.get_beatmaps_combo([1]) == {1: 500}
    assert session.transactions == 0
    assert session.closed == 1


@pytest.mark.asyncio
async def test_remove_osu_user_stats(sink, session):
    await sink.remove_osu_user_stats("ghost")

    assert session.transactions == 1
    assert len(session.statements) == 2


@pytest.mark.asyncio
async def test_insert_beatmaps_batches_into_one_transaction(sink, session):
    await sink.insert_beatmaps([Beatmap(map_id=1), Beatmap(map_id=2)])
    await sink.insert_beatmaps([])

    assert session.transactions == 1
    assert len(session.statements) == 2


@pytest.mark.asyncio
async def test_upsert_osu_name(sink, session):
    await sink.upsert_osu_name(42, "alice")

    assert session.transactions == 1
    assert "INSERT INTO osu_user_names" in session.sql()
    assert "ON CONFLICT (user_id) DO UPDATE" in session.sql()


@pytest.mark.asyncio
async def test_name_mapping_reads(sink, session):
    session.results = [
        [SimpleNamespace(user_id=42, username="alice")],
        [SimpleNamespace(user_id=42, username="alice")],
    ]

    assert await sink.get_names_by_ids([42]) == {42: "alice"}
    assert await sink.get_ids_by_names(["Alice"]) == {"alice": 42}
    assert session.transactions == 0
    assert session.closed == 2


@pytest.mark.asyncio
async def test_single_beatmap_combo_and_upsert(sink, session):
    session.results = [[812]]

    assert await sink.get_beatmap_combo(1) == 812
    await sink.insert_beatmap(Beatmap(map_id=1, mapset_id=2, max_combo=812))

    assert session.transactions == 1
    assert "INSERT INTO osu_maps" in session.sql()


@pytest.mark.asyncio
async def test_approx_rank_from_pp(sink, session):
    session.results = [
        [
            SimpleNamespace(global_rank=100, pp=5000.0),
            SimpleNamespace(global_rank=200, pp=4000.0),
        ]
    ]

    assert await sink.approx_rank_from_pp(4500.0, GameMode.OSU) == 150


@pytest.mark.asyncio
async def test_approx_pp_from_rank(sink, session):
    session.results = [
        [
            SimpleNamespace(global_rank=100, pp=5000.0),
            SimpleNamespace(global_rank=200, pp=4000.0),
        ]
    ]

    assert await sink.approx_pp_from_rank(150, GameMode.OSU) == pytest.approx(4500.0)


@pytest.mark.asyncio
async def test_approx_rank_without_samples(sink):
    assert await sink.approx_rank_from_pp(4500.0, GameMode.MANIA) == 0


@pytest.mark.asyncio
async def test_inconsistent_samples_raise(sink, session):
    session.results = [
        [
            SimpleNamespace(global_rank=100, pp=5000.0),
            SimpleNamespace(global_rank=200, pp=4000.0),
        ]
    ]

    with pytest.raises(RankApproximationError):
        await sink.approx_rank_from_pp(9000.0, GameMode.OSU)
