from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from osubot.api.health import router as health_router
from osubot.api.metrics import router as metrics_router
from osubot.core.config import get_settings
from osubot.core.database import get_engine
from osubot.core.logging import configure_logging
from osubot.core.tasks import get_side_effects
from osubot.services.cache import get_cache_store
from osubot.services.osu_client import get_osu_client

logger = logging.getLogger(__name__)

# Upper bound on how long shutdown waits for pending cache and DB writes.
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    yield

    await get_side_effects().drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
    await get_osu_client().aclose()
    await get_cache_store().close()
    await get_engine().dispose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Application factory for FastAPI."""
    settings = get_settings()
    configure_logging(settings.log_level, database_echo=settings.database_echo)

    app = FastAPI(
        title="osubot cache",
        description="Metrics and health endpoints for the osubot cache layer.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(metrics_router)
    app.include_router(health_router, tags=["meta"])

    return app


app = create_app()
