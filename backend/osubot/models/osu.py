"""Domain models for osu!, Osekai and osutracker payloads.

Cached entities are frozen so a view handed out by the cache cannot be
mutated by a command handler. Score records stay mutable because combo
enrichment fills in beatmap data after the fact.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GameMode(int, enum.Enum):
    OSU = 0
    TAIKO = 1
    CATCH = 2
    MANIA = 3

    @property
    def api_name(self) -> str:
        """Name used in osu! API paths."""
        return _MODE_API_NAMES[self]


_MODE_API_NAMES = {
    GameMode.OSU: "osu",
    GameMode.TAIKO: "taiko",
    GameMode.CATCH: "fruits",
    GameMode.MANIA: "mania",
}


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


# =============================================================================
# Users
# =============================================================================


class GradeCounts(FrozenModel):
    ss: int = 0
    ssh: int = 0
    s: int = 0
    sh: int = 0
    a: int = 0


class UserLevel(FrozenModel):
    current: int = 0
    progress: int = 0


class UserStatistics(FrozenModel):
    accuracy: float = Field(default=0.0, alias="hit_accuracy")
    pp: float = 0.0
    global_rank: int | None = None
    country_rank: int | None = None
    grade_counts: GradeCounts = GradeCounts()
    level: UserLevel = UserLevel()
    max_combo: int = Field(default=0, alias="maximum_combo")
    playcount: int = Field(default=0, alias="play_count")
    playtime: int = Field(default=0, alias="play_time")
    ranked_score: int = 0
    total_score: int = 0
    total_hits: int = 0
    replays_watched: int = Field(default=0, alias="replays_watched_by_others")


class Kudosu(FrozenModel):
    total: int = 0
    available: int = 0


class UserPage(FrozenModel):
    html: str = ""
    raw: str = ""


class User(FrozenModel):
    user_id: int = Field(alias="id")
    username: str
    country_code: str = ""
    join_date: datetime | None = None
    comments_count: int = 0
    kudosu: Kudosu = Kudosu()
    forum_post_count: int = Field(default=0, alias="post_count")
    badge_count: int = 0
    beatmap_playcounts_count: int = 0
    follower_count: int = 0
    graveyard_mapset_count: int = Field(default=0, alias="graveyard_beatmapset_count")
    loved_mapset_count: int = Field(default=0, alias="loved_beatmapset_count")
    mapping_follower_count: int = 0
    previous_usernames: list[str] = Field(default_factory=list)
    ranked_mapset_count: int = Field(default=0, alias="ranked_beatmapset_count")
    medal_count: int = 0
    scores_first_count: int = 0
    statistics: UserStatistics | None = None
    page: UserPage | None = None

    @model_validator(mode="before")
    @classmethod
    def _count_collections(cls, data: Any) -> Any:
        # The API ships full badge/medal lists; only their sizes are kept.
        if isinstance(data, dict):
            data = dict(data)
            if "badges" in data and "badge_count" not in data:
                data["badge_count"] = len(data.pop("badges") or [])
            if "user_achievements" in data and "medal_count" not in data:
                data["medal_count"] = len(data.pop("user_achievements") or [])
        return data

    def without_page(self) -> "User":
        """Drop the HTML profile page, which is large and never rendered."""
        return self.model_copy(update={"page": None})


@dataclass(frozen=True, slots=True)
class UserArgs:
    """Lookup target for a user profile."""

    name: str
    mode: GameMode = GameMode.OSU

    def whitespaced_name(self) -> str | None:
        """Try to replace underscores with whitespace.

        osu! treats spaces and underscores in names as distinct, but users type
        underscores for spaces. Names with a leading or trailing underscore are
        taken literally.
        """
        if self.name.startswith("_") or self.name.endswith("_"):
            return None
        if "_" not in self.name:
            return None
        return self.name.replace("_", " ")

    def with_name(self, name: str) -> "UserArgs":
        return replace(self, name=name)


# =============================================================================
# Rankings
# =============================================================================


class RankingUser(FrozenModel):
    user_id: int = Field(alias="id")
    username: str
    country_code: str = ""


class RankingEntry(UserStatistics):
    user: RankingUser


class Rankings(FrozenModel):
    ranking: list[RankingEntry] = Field(default_factory=list)
    total: int = 0
    next_page: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_cursor(cls, data: Any) -> Any:
        if isinstance(data, dict) and "cursor" in data:
            data = dict(data)
            cursor = data.pop("cursor") or {}
            data.setdefault("next_page", cursor.get("page"))
        return data


# =============================================================================
# Osekai
# =============================================================================


class OsekaiMedal(FrozenModel):
    medal_id: int = Field(alias="medalid")
    name: str
    icon_url: str = Field(default="", alias="link")
    description: str = ""
    restriction: str | None = None
    grouping: str = ""
    solution: str | None = None
    mods: str | None = None
    rarity: float = 0.0


class OsekaiBadge(FrozenModel):
    badge_id: int = Field(alias="id")
    name: str
    description: str = ""
    image_url: str = ""
    awarded_at: datetime | None = None
    users: list[int] = Field(default_factory=list)

    @field_validator("users", mode="before")
    @classmethod
    def _parse_users(cls, value: Any) -> Any:
        # Osekai encodes the holder list as a JSON string.
        if isinstance(value, str):
            return json.loads(value) if value else []
        return value


class OsekaiUserEntry(FrozenModel):
    rank: int
    country_code: str = Field(default="", alias="countrycode")
    country: str = ""
    username: str
    user_id: int = Field(alias="userid")
    value: float = 0.0


class OsekaiMedalCountEntry(FrozenModel):
    rank: int
    country_code: str = Field(default="", alias="countrycode")
    country: str = ""
    username: str
    user_id: int = Field(alias="userid")
    medal_count: int = Field(default=0, alias="medals")
    rarest_medal: str = Field(default="", alias="raremedal")
    completion: float = 0.0


class OsekaiRarityEntry(FrozenModel):
    rank: int
    medal_id: int = Field(alias="medalid")
    medal_name: str = Field(alias="medalname")
    icon_url: str = Field(default="", alias="img")
    description: str = Field(default="", alias="medaldesc")
    possession_percent: float = Field(default=0.0, alias="possessionRate")


class OsekaiRankingKind(str, enum.Enum):
    BADGES = "Badges"
    LOVED_MAPSETS = "Loved Mapsets"
    MEDAL_COUNT = "Users"
    RANKED_MAPSETS = "Ranked Mapsets"
    RARITY = "Rarity"
    REPLAYS = "Replays"
    STANDARD_DEVIATION = "Standard Deviation"
    TOTAL_PP = "Total pp"

    @property
    def slug(self) -> str:
        return self.name.lower()

    @property
    def entry_model(self) -> type[FrozenModel]:
        if self is OsekaiRankingKind.RARITY:
            return OsekaiRarityEntry
        if self is OsekaiRankingKind.MEDAL_COUNT:
            return OsekaiMedalCountEntry
        return OsekaiUserEntry

    @property
    def value_field(self) -> str | None:
        """Column holding the ranked value for user-value rankings."""
        return _OSEKAI_VALUE_FIELDS.get(self)


_OSEKAI_VALUE_FIELDS = {
    OsekaiRankingKind.BADGES: "badges",
    OsekaiRankingKind.LOVED_MAPSETS: "loved",
    OsekaiRankingKind.RANKED_MAPSETS: "ranked",
    OsekaiRankingKind.REPLAYS: "replays",
    OsekaiRankingKind.STANDARD_DEVIATION: "spp",
    OsekaiRankingKind.TOTAL_PP: "tpp",
}


# =============================================================================
# osutracker
# =============================================================================


class OsuTrackerIdCount(FrozenModel):
    map_id: int = Field(alias="id")
    count: int


class OsuTrackerPpGroup(FrozenModel):
    number: int
    entries: list[OsuTrackerIdCount] = Field(default_factory=list, alias="list")


class OsuTrackerModCount(FrozenModel):
    mods: str
    count: int


class OsuTrackerMapperCount(FrozenModel):
    mapper: str
    count: int


class OsuTrackerStats(FrozenModel):
    user_count: int = Field(default=0, alias="userCount")
    mean_pp: float = Field(default=0.0, alias="meanPp")
    mod_counts: list[OsuTrackerModCount] = Field(
        default_factory=list, alias="modCount"
    )
    mapper_counts: list[OsuTrackerMapperCount] = Field(
        default_factory=list, alias="mapperCount"
    )
    mapset_counts: list[OsuTrackerIdCount] = Field(
        default_factory=list, alias="setCount"
    )


# =============================================================================
# Beatmaps & scores
# =============================================================================


class Beatmap(FrozenModel):
    map_id: int = Field(alias="id")
    mapset_id: int = Field(default=0, alias="beatmapset_id")
    mode: GameMode = Field(default=GameMode.OSU, alias="mode_int")
    version: str = ""
    max_combo: int | None = None
    seconds_drain: int = Field(default=0, alias="hit_length")
    seconds_total: int = Field(default=0, alias="total_length")
    stars: float = Field(default=0.0, alias="difficulty_rating")
    bpm: float = 0.0


class BeatmapRef(BaseModel):
    """Beatmap as embedded in a score; max_combo may be missing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    map_id: int = Field(alias="id")
    mode: GameMode = Field(default=GameMode.OSU, alias="mode_int")
    max_combo: int | None = None

    @property
    def needs_combo(self) -> bool:
        return self.max_combo is None and self.mode is not GameMode.MANIA


class Score(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    score_id: int = Field(default=0, alias="id")
    user_id: int = 0
    mode: GameMode = Field(default=GameMode.OSU, alias="mode_int")
    max_combo: int = 0
    pp: float | None = None
    map: BeatmapRef | None = Field(default=None, alias="beatmap")


__all__ = [
    "Beatmap",
    "BeatmapRef",
    "GameMode",
    "OsekaiBadge",
    "OsekaiMedal",
    "OsekaiMedalCountEntry",
    "OsekaiRankingKind",
    "OsekaiRarityEntry",
    "OsekaiUserEntry",
    "OsuTrackerIdCount",
    "OsuTrackerPpGroup",
    "OsuTrackerStats",
    "RankingEntry",
    "Rankings",
    "Score",
    "User",
    "UserArgs",
    "UserStatistics",
]
