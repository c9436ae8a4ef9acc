"""
FastAPI Production Application

Main entry point for the storefront API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from redis.exceptions import RedisError

from storefront.config import get_settings
from storefront.config.logging import configure_logging
from storefront.database.connection import close_database, init_database
from storefront.serving.api import create_api_app
from storefront.serving.cache import close_redis, init_redis

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    settings = get_settings()

    logger.info("Starting storefront API", environment=settings.app_env, version=settings.version)

    await init_database()

    # The catalog cache is optional
    try:
        await init_redis()
    except RedisError as e:
        logger.warning("Redis unavailable, running without cache", error=str(e))

    yield

    logger.info("Shutting down storefront API")
    await close_redis()
    await close_database()


app = create_api_app(lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
