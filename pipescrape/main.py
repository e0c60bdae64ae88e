"""FastAPI app entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pipescrape.api.routes import router
from pipescrape.config import get_settings
from pipescrape.logging_config import setup_logging
from pipescrape.plugins import build_default_registry
from pipescrape.storage.redis import RedisStorage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Initialize logging FIRST so all subsequent operations produce JSON logs
    setup_logging(settings.log_level)
    logger.info("starting scrape service")

    storage = RedisStorage(redis_url=settings.redis_url, prefix=settings.storage_prefix)
    await storage.connect()

    registry = build_default_registry(settings)
    registry.init()

    # Attach to app state for dependency injection
    app.state.settings = settings
    app.state.storage = storage
    app.state.registry = registry

    logger.info(
        "scrape service ready",
        extra={
            "default_scenario": settings.default_scenario,
            "plugin_count": len(registry),
        },
    )

    yield

    # Cleanup
    logger.info("shutting down scrape service")
    await storage.close()


app = FastAPI(title="pipescrape", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
