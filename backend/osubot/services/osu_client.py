from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Any, Callable, Sequence
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from osubot.core.config import Settings, get_settings
from osubot.core.metrics import CacheMetrics, get_metrics
from osubot.models.osu import (
    Beatmap,
    GameMode,
    OsekaiBadge,
    OsekaiMedal,
    OsekaiRankingKind,
    OsuTrackerIdCount,
    OsuTrackerPpGroup,
    OsuTrackerStats,
    Rankings,
    User,
)
from osubot.services.osu_errors import (
    OsuNotFoundError,
    OsuRateLimitedError,
    OsuServiceError,
)

logger = logging.getLogger(__name__)

# osu! API v2 accepts at most this many ids per /beatmaps request.
MAX_BEATMAPS_PER_REQUEST = 50
# Refresh the OAuth token a little before it actually expires.
TOKEN_EXPIRY_MARGIN_SECONDS = 60

__all__ = ["MAX_BEATMAPS_PER_REQUEST", "OsuClient", "get_osu_client"]


class OsuClient:
    """Async client for the osu! API v2 and the Osekai / osutracker APIs.

    Failures are mapped onto ``OsuNotFoundError`` (HTTP 404) and
    ``OsuServiceError`` (everything transient); callers never see httpx errors.
    """

    def __init__(
        self,
        settings: Settings,
        metrics: CacheMetrics,
        http: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._metrics = metrics
        self._http = http or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            headers={"User-Agent": "osubot"},
        )
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- osu! API v2 -----------------------------------------------------------

    async def get_user(self, name: str, mode: GameMode) -> User:
        """Fetch a user profile by name in the given mode."""
        url = self._osu_url(f"users/{quote(name, safe='')}/{mode.api_name}")
        response = await self._request("user", "GET", url, params={"key": "username"})
        return self._parse("user", User, response.json())

    async def get_performance_rankings(
        self, mode: GameMode, page: int, country: str | None = None
    ) -> Rankings:
        params: dict[str, Any] = {"cursor[page]": page}
        if country:
            params["country"] = country.upper()
        url = self._osu_url(f"rankings/{mode.api_name}/performance")
        response = await self._request("pp_ranking", "GET", url, params=params)
        return self._parse("pp_ranking", Rankings, response.json())

    async def get_beatmap(self, map_id: int) -> Beatmap:
        url = self._osu_url(f"beatmaps/{map_id}")
        response = await self._request("beatmap", "GET", url)
        return self._parse("beatmap", Beatmap, response.json())

    async def get_beatmaps(self, map_ids: Sequence[int]) -> list[Beatmap]:
        """Fetch up to ``MAX_BEATMAPS_PER_REQUEST`` beatmaps in one request."""
        if not map_ids:
            return []
        if len(map_ids) > MAX_BEATMAPS_PER_REQUEST:
            raise ValueError(
                f"At most {MAX_BEATMAPS_PER_REQUEST} beatmaps per request, got {len(map_ids)}"
            )
        params = [("ids[]", map_id) for map_id in map_ids]
        response = await self._request(
            "beatmaps", "GET", self._osu_url("beatmaps"), params=params
        )
        payload = response.json()
        return self._parse("beatmaps", list[Beatmap], payload.get("beatmaps", []))

    # -- Osekai ----------------------------------------------------------------

    async def get_osekai_medals(self) -> list[OsekaiMedal]:
        url = f"{self._settings.osekai_base_url}/medals/api/medals.php"
        response = await self._request(
            "osekai_medals", "POST", url, data={"strSearch": ""}, authenticated=False
        )
        return self._parse("osekai_medals", list[OsekaiMedal], response.json())

    async def get_osekai_badges(self) -> list[OsekaiBadge]:
        url = f"{self._settings.osekai_base_url}/badges/api/getBadges.php"
        response = await self._request(
            "osekai_badges", "POST", url, authenticated=False
        )
        return self._parse("osekai_badges", list[OsekaiBadge], response.json())

    async def get_osekai_ranking(self, kind: OsekaiRankingKind) -> list[Any]:
        url = f"{self._settings.osekai_base_url}/rankings/api/api.php"
        response = await self._request(
            "osekai_ranking", "POST", url, data={"App": kind.value}, authenticated=False
        )
        rows = response.json()
        value_field = kind.value_field
        if value_field is not None:
            rows = [{**row, "value": row.get(value_field, 0)} for row in rows]
        return self._parse("osekai_ranking", list[kind.entry_model], rows)

    # -- osutracker ------------------------------------------------------------

    async def get_osutracker_stats(self) -> OsuTrackerStats:
        url = f"{self._settings.osutracker_base_url}/api/stats"
        response = await self._request(
            "osutracker_stats", "GET", url, authenticated=False
        )
        return self._parse("osutracker_stats", OsuTrackerStats, response.json())

    async def get_osutracker_pp_group(self, pp: int) -> OsuTrackerPpGroup:
        url = f"{self._settings.osutracker_base_url}/api/stats/ppBarrier"
        response = await self._request(
            "osutracker_pp_group",
            "GET",
            url,
            params={"number": pp},
            authenticated=False,
        )
        return self._parse("osutracker_pp_group", OsuTrackerPpGroup, response.json())

    async def get_osutracker_counts(self) -> list[OsuTrackerIdCount]:
        url = f"{self._settings.osutracker_base_url}/api/stats/idCounts"
        response = await self._request(
            "osutracker_counts", "GET", url, authenticated=False
        )
        return self._parse(
            "osutracker_counts", list[OsuTrackerIdCount], response.json()
        )

    # -- plumbing --------------------------------------------------------------

    def _osu_url(self, path: str) -> str:
        return f"{self._settings.osu_api_base_url}/api/v2/{path}"

    async def _access_token(self) -> str:
        async with self._token_lock:
            if self._token is not None and self._clock() < self._token_expires_at:
                return self._token

            response = await self._request(
                "oauth_token",
                "POST",
                f"{self._settings.osu_api_base_url}/oauth/token",
                data={
                    "client_id": self._settings.osu_client_id,
                    "client_secret": self._settings.osu_client_secret,
                    "grant_type": "client_credentials",
                    "scope": "public",
                },
                authenticated=False,
            )
            payload = response.json()
            try:
                self._token = payload["access_token"]
                expires_in = float(payload["expires_in"])
            except (KeyError, TypeError, ValueError) as exc:
                raise OsuServiceError("Malformed OAuth token response.") from exc
            self._token_expires_at = (
                self._clock() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
            )
            return self._token

    async def _request(
        self,
        endpoint: str,
        method: str,
        url: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if authenticated:
            headers["Authorization"] = f"Bearer {await self._access_token()}"

        start = time.perf_counter()
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            self._observe(endpoint, "error", start)
            raise OsuServiceError(f"Failed to reach {endpoint} endpoint.") from exc

        status_code = response.status_code
        if status_code == httpx.codes.NOT_FOUND:
            self._observe(endpoint, "not_found", start)
            raise OsuNotFoundError(f"{endpoint} not found: {url}")
        if status_code == httpx.codes.TOO_MANY_REQUESTS:
            self._observe(endpoint, "rate_limited", start)
            raise OsuRateLimitedError(f"{endpoint} request was rate limited.")
        if status_code >= 400:
            self._observe(endpoint, "error", start)
            raise OsuServiceError(f"{endpoint} request failed with HTTP {status_code}.")

        self._observe(endpoint, "success", start)
        return response

    def _observe(self, endpoint: str, result: str, start: float) -> None:
        self._metrics.observe_upstream_request(
            endpoint, result, time.perf_counter() - start
        )

    @staticmethod
    def _parse(endpoint: str, model: Any, payload: Any) -> Any:
        try:
            return TypeAdapter(model).validate_python(payload)
        except ValidationError as exc:
            logger.warning("Unexpected %s payload", endpoint, exc_info=exc)
            raise OsuServiceError(f"Unexpected {endpoint} payload.") from exc


@lru_cache
def get_osu_client() -> OsuClient:
    """Return the shared upstream client."""
    return OsuClient(get_settings(), get_metrics())
