"""
Application lifespan handler.
Manages startup and shutdown of the floor API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from floor_api.models import Base
from floor_api.services.events.outbox_processor import (
    start_outbox_processor,
    stop_outbox_processor,
)
from floor_api.services.floor_reconciler import (
    start_floor_reconciler,
    stop_floor_reconciler,
)
from floor_api.services.stock import close_stock_ledger
from shared.config.logging import floor_logger as logger, setup_logging
from shared.config.settings import settings
from shared.infrastructure.db import engine
from shared.infrastructure.events import close_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    config_errors = settings.validate_production_settings()
    if config_errors:
        for error in config_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(config_errors)}. "
                "Server will not start with insecure configuration."
            )

    logger.info("Starting floor API", port=settings.api_port, env=settings.environment)

    if settings.create_schema_on_startup:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

    if settings.enable_background_workers:
        await start_outbox_processor()
        await start_floor_reconciler()

    yield

    logger.info("Shutting down floor API")

    if settings.enable_background_workers:
        await stop_floor_reconciler()
        await stop_outbox_processor()

    close_stock_ledger()
    await close_redis_pool()
    logger.info("Redis connection pool closed")
