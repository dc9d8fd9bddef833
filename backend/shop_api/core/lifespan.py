"""
Application lifespan handler: configuration checks, schema and seed data.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.config.logging import setup_logging, shop_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal, engine
from shop_api.models import Base
from shop_api.seed import seed


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        logger.warning("Running with insecure defaults (acceptable for development only)")

    logger.info("Starting shop API", port=settings.api_port, env=settings.environment)

    if settings.auto_create_tables:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

    if settings.seed_on_startup:
        with SessionLocal() as db:
            seed(db)

    yield

    logger.info("Shutting down shop API")
