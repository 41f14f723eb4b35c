"""Fill in missing beatmap max combos on score records.

Score payloads often arrive without their beatmap's max combo. Combos are
looked up in the database first with one batched query; whatever is still
missing is fetched from the osu! API in chunks and written back to the
database for next time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from functools import lru_cache

from osubot.core.config import get_settings
from osubot.core.tasks import SideEffectRegistry, get_side_effects
from osubot.models.osu import Beatmap, BeatmapRef, GameMode, Score
from osubot.persistence.sink import PersistenceSink, get_persistence_sink
from osubot.services.osu_client import (
    MAX_BEATMAPS_PER_REQUEST,
    OsuClient,
    get_osu_client,
)

logger = logging.getLogger(__name__)

_COMBO_SCORE_MODES = frozenset({GameMode.OSU, GameMode.CATCH})


class ComboEnricher:
    def __init__(
        self,
        client: OsuClient,
        sink: PersistenceSink,
        *,
        batch_size: int = MAX_BEATMAPS_PER_REQUEST,
        side_effects: SideEffectRegistry | None = None,
    ) -> None:
        if not 1 <= batch_size <= MAX_BEATMAPS_PER_REQUEST:
            raise ValueError(
                f"batch_size must be between 1 and {MAX_BEATMAPS_PER_REQUEST}"
            )
        self._client = client
        self._sink = sink
        self._batch_size = batch_size
        self._side_effects = side_effects or SideEffectRegistry()

    async def enrich_with_combo(self, scores: Sequence[Score]) -> None:
        """Set ``max_combo`` on every score beatmap that lacks one.

        Issues one database read and ``ceil(missing / batch_size)`` upstream
        requests. Mania maps are skipped since they have no max combo.
        Upstream errors propagate once every chunk has settled; maps from the
        chunks that did succeed are still filled and persisted. Database
        errors are logged and ignored.
        """
        pending: dict[int, list[BeatmapRef]] = {}
        for score in scores:
            if score.map is not None and score.map.needs_combo:
                pending.setdefault(score.map.map_id, []).append(score.map)

        if not pending:
            return

        try:
            stored = await self._sink.get_beatmaps_combo(list(pending))
        except Exception as exc:
            logger.warning("Failed to read beatmap combos from the database", exc_info=exc)
            stored = {}

        for map_id, combo in stored.items():
            if combo is not None:
                _fill(pending.pop(map_id, []), combo)

        if not pending:
            return

        map_ids = list(pending)
        chunks = [
            map_ids[start : start + self._batch_size]
            for start in range(0, len(map_ids), self._batch_size)
        ]
        results = await asyncio.gather(
            *(self._client.get_beatmaps(chunk) for chunk in chunks),
            return_exceptions=True,
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        fetched = [
            beatmap
            for batch in results
            if not isinstance(batch, BaseException)
            for beatmap in batch
        ]

        for beatmap in fetched:
            if beatmap.max_combo is not None:
                _fill(pending.get(beatmap.map_id, []), beatmap.max_combo)

        await self._persist(fetched)
        if errors:
            raise errors[0]

    async def prepare_score(self, score: Score) -> None:
        """Single-score variant of ``enrich_with_combo``.

        Only osu! and catch scores are prepared; the score's own mode decides,
        not the mode of its beatmap.
        """
        beatmap_ref = score.map
        if score.mode not in _COMBO_SCORE_MODES:
            return
        if beatmap_ref is None or beatmap_ref.max_combo is not None:
            return

        try:
            combo = await self._sink.get_beatmap_combo(beatmap_ref.map_id)
        except Exception as exc:
            logger.warning(
                "Failed to read combo of beatmap %d from the database",
                beatmap_ref.map_id,
                exc_info=exc,
            )
            combo = None

        if combo is None:
            beatmap = await self._client.get_beatmap(beatmap_ref.map_id)
            combo = beatmap.max_combo
            await self._persist([beatmap])

        if combo is not None:
            beatmap_ref.max_combo = combo

    async def _persist(self, beatmaps: list[Beatmap]) -> None:
        if beatmaps:
            await self._side_effects.run(
                self._sink.insert_beatmaps(beatmaps), name="beatmap_upsert"
            )


def _fill(refs: list[BeatmapRef], combo: int) -> None:
    for ref in refs:
        ref.max_combo = combo


@lru_cache
def get_combo_enricher() -> ComboEnricher:
    return ComboEnricher(
        get_osu_client(),
        get_persistence_sink(),
        batch_size=get_settings().combo_batch_size,
        side_effects=get_side_effects(),
    )


__all__ = ["ComboEnricher", "get_combo_enricher"]
