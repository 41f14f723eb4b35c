from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from osubot.core.database import Base


class OsuUserName(Base):
    __tablename__ = "osu_user_names"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(32), nullable=False)


Index("ix_osu_user_names_username_lower", func.lower(OsuUserName.username))


class OsuUserStats(Base):
    __tablename__ = "osu_user_stats"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("osu_user_names.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    join_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    kudosu_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    kudosu_available: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    forum_post_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    badges: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    played_maps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    followers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    graveyard_mapset_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    loved_mapset_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mapping_followers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    previous_usernames_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    ranked_mapset_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    medals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class OsuUserStatsMode(Base):
    __tablename__ = "osu_user_stats_mode"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("osu_user_names.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    mode: Mapped[int] = mapped_column(SmallInteger, primary_key=True)
    accuracy: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    pp: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    country_rank: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    global_rank: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_ss: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_ssh: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_s: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_sh: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    count_a: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    max_combo: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    playcount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    playtime: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ranked_score: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    replays_watched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_hits: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_score: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    scores_first: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_osu_user_stats_mode_mode_pp", "mode", "pp"),
        Index("ix_osu_user_stats_mode_mode_global_rank", "mode", "global_rank"),
    )


class OsuMap(Base):
    __tablename__ = "osu_maps"

    map_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    mapset_id: Mapped[int] = mapped_column(Integer, nullable=False)
    mode: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    version: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    max_combo: Mapped[int | None] = mapped_column(Integer)
    seconds_drain: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    seconds_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stars: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    bpm: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
