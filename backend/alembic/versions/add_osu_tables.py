"""Add osu! user and beatmap tables

Creates the identity mapping (osu_user_names), profile statistics
(osu_user_stats, osu_user_stats_mode) and the beatmap combo store (osu_maps).

Revision ID: add_osu_tables
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "add_osu_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS osu_user_names (
            user_id INTEGER PRIMARY KEY,
            username VARCHAR(32) NOT NULL
        )
    """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_osu_user_names_username_lower ON osu_user_names (LOWER(username))"
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS osu_user_stats (
            user_id INTEGER PRIMARY KEY REFERENCES osu_user_names (user_id) ON DELETE CASCADE,
            country_code VARCHAR(2) NOT NULL,
            join_date TIMESTAMP WITH TIME ZONE,
            comment_count INTEGER NOT NULL DEFAULT 0,
            kudosu_total INTEGER NOT NULL DEFAULT 0,
            kudosu_available INTEGER NOT NULL DEFAULT 0,
            forum_post_count INTEGER NOT NULL DEFAULT 0,
            badges INTEGER NOT NULL DEFAULT 0,
            played_maps INTEGER NOT NULL DEFAULT 0,
            followers INTEGER NOT NULL DEFAULT 0,
            graveyard_mapset_count INTEGER NOT NULL DEFAULT 0,
            loved_mapset_count INTEGER NOT NULL DEFAULT 0,
            mapping_followers INTEGER NOT NULL DEFAULT 0,
            previous_usernames_count INTEGER NOT NULL DEFAULT 0,
            ranked_mapset_count INTEGER NOT NULL DEFAULT 0,
            medals INTEGER NOT NULL DEFAULT 0,
            last_update TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
        )
    """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS osu_user_stats_mode (
            user_id INTEGER NOT NULL REFERENCES osu_user_names (user_id) ON DELETE CASCADE,
            mode SMALLINT NOT NULL,
            accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
            pp DOUBLE PRECISION NOT NULL DEFAULT 0,
            country_rank INTEGER NOT NULL DEFAULT 0,
            global_rank INTEGER NOT NULL DEFAULT 0,
            count_ss INTEGER NOT NULL DEFAULT 0,
            count_ssh INTEGER NOT NULL DEFAULT 0,
            count_s INTEGER NOT NULL DEFAULT 0,
            count_sh INTEGER NOT NULL DEFAULT 0,
            count_a INTEGER NOT NULL DEFAULT 0,
            level DOUBLE PRECISION NOT NULL DEFAULT 0,
            max_combo INTEGER NOT NULL DEFAULT 0,
            playcount INTEGER NOT NULL DEFAULT 0,
            playtime INTEGER NOT NULL DEFAULT 0,
            ranked_score BIGINT NOT NULL DEFAULT 0,
            replays_watched INTEGER NOT NULL DEFAULT 0,
            total_hits BIGINT NOT NULL DEFAULT 0,
            total_score BIGINT NOT NULL DEFAULT 0,
            scores_first INTEGER NOT NULL DEFAULT 0,
            last_update TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, mode)
        )
    """
    )
    # Rank approximation scans by mode ordered on pp / global rank.
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_osu_user_stats_mode_mode_pp ON osu_user_stats_mode (mode, pp)"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_osu_user_stats_mode_mode_global_rank ON osu_user_stats_mode (mode, global_rank)"
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS osu_maps (
            map_id INTEGER PRIMARY KEY,
            mapset_id INTEGER NOT NULL,
            mode SMALLINT NOT NULL,
            version VARCHAR(255) NOT NULL DEFAULT '',
            max_combo INTEGER,
            seconds_drain INTEGER NOT NULL DEFAULT 0,
            seconds_total INTEGER NOT NULL DEFAULT 0,
            stars DOUBLE PRECISION NOT NULL DEFAULT 0,
            bpm DOUBLE PRECISION NOT NULL DEFAULT 0,
            last_update TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
        )
    """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS osu_maps CASCADE")
    op.execute("DROP TABLE IF EXISTS osu_user_stats_mode CASCADE")
    op.execute("DROP TABLE IF EXISTS osu_user_stats CASCADE")
    op.execute("DROP TABLE IF EXISTS osu_user_names CASCADE")
