"""
Cache key builders.

Key format: ``{namespace}:v{format_version}:{entity}[:{field}...]``

Keys are built only from literal entity tags and identifying fields, so they
are stable across restarts. The codec format version is part of every key;
bumping it moves all entries to a fresh namespace. Free-form fields (user
names) always come last so they cannot shift the position of other fields.
"""

from __future__ import annotations

from osubot.models.osu import GameMode, OsekaiRankingKind, UserArgs
from osubot.services.codec import FORMAT_VERSION


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    def __init__(self, namespace: str = "osubot") -> None:
        self._prefix = f"{namespace}:v{FORMAT_VERSION}"

    @property
    def prefix(self) -> str:
        return self._prefix

    def user(self, args: UserArgs) -> str:
        """Key for a user profile; osu! names are case-insensitive."""
        return f"{self._prefix}:user:{int(args.mode)}:{args.name.lower()}"

    def pp_ranking(self, mode: GameMode, page: int, country: str | None = None) -> str:
        key = f"{self._prefix}:pp_ranking:{int(mode)}:{page}"
        if country:
            key = f"{key}:{country.upper()}"
        return key

    def medals(self) -> str:
        return f"{self._prefix}:osekai_medals"

    def badges(self) -> str:
        return f"{self._prefix}:osekai_badges"

    def osekai_ranking(self, kind: OsekaiRankingKind) -> str:
        return f"{self._prefix}:osekai_ranking:{kind.slug}"

    def osutracker_stats(self) -> str:
        return f"{self._prefix}:osutracker_stats"

    def osutracker_pp_group(self, pp: int) -> str:
        return f"{self._prefix}:osutracker_pp_group:{pp}"

    def osutracker_counts(self) -> str:
        return f"{self._prefix}:osutracker_id_counts"


__all__ = ["CacheKeys"]
