from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from osubot.core.metrics import CacheMetrics, get_metrics

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
async def metrics(cache_metrics: CacheMetrics = Depends(get_metrics)) -> Response:
    """Expose Prometheus metrics for scraping."""
    return Response(
        content=generate_latest(cache_metrics.registry),
        media_type=CONTENT_TYPE_LATEST,
    )
