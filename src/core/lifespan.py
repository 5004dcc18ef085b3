from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from core.config import settings
from model.database import create_db_and_tables
from utility.logger import setup_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === 시작 ===
    setup_logger(settings.LOG_LEVEL, serialize=settings.LOG_JSON)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")

    create_db_and_tables()
    logger.info(f"Database ready ({settings.DATABASE_URL})")

    if not settings.PROVIDER_API_TOKEN:
        logger.warning("PROVIDER_API_TOKEN is not set, generation requests will fail")
    if not settings.WEBHOOK_SECRET:
        logger.warning("WEBHOOK_SECRET is not set, payment webhooks will be rejected")

    app.state.settings = settings

    yield

    # === 종료 ===
    logger.info("Shutting down")
