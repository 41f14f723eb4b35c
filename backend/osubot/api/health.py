from __future__ import annotations

from fastapi import APIRouter, Depends

from osubot.services.cache import CacheStore, get_cache_store

router = APIRouter()


@router.get("/health")
async def healthcheck(store: CacheStore = Depends(get_cache_store)) -> dict[str, str]:
    """Readiness probe.

    The bot keeps serving from upstream while the cache is down, so an
    unreachable cache degrades the status instead of failing the probe.
    """
    cache_ok = await store.ping()
    return {
        "status": "ok" if cache_ok else "degraded",
        "cache": "up" if cache_ok else "down",
    }
