import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fsmonitor import config
from fsmonitor.api.routes import router
from fsmonitor.cleaner import start_cleaner
from fsmonitor.core.exceptions import register_exception_handlers
from fsmonitor.storage import Registry

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("fsmonitor")


def create_app(registry: Optional[Registry] = None) -> FastAPI:
    """Build the collector API around ``registry`` (a fresh one when omitted)."""

    if registry is None:
        registry = Registry(retention_days=config.DATA_LIFESPAN_DAYS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if config.ENABLE_CLEANER:
            scheduler = start_cleaner(
                registry,
                logger,
                days=config.DATA_LIFESPAN_DAYS,
                interval_hours=config.CLEANER_INTERVAL_HOURS,
            )
            logger.info("event=cleaner_started interval_hours=%s days=%s", config.CLEANER_INTERVAL_HOURS, config.DATA_LIFESPAN_DAYS)
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            logger.info("event=service_stopped")

    app = FastAPI(title="Filesystem Client Monitor", version="1.0.0", lifespan=lifespan)
    app.state.registry = registry

    origins = [origin.strip() for origin in config.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    register_exception_handlers(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting the filesystem client monitoring service on %s:%s", config.SERVICE_HOST, config.SERVICE_PORT)
    uvicorn.run(app, host=config.SERVICE_HOST, port=config.SERVICE_PORT)
