import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.rabbitmq import rabbitmq
from core.redis_idempotency import redis_lock_manager
from core.throttling import rate_limiter_manager

from .settings import settings

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    if not settings.MERCADOPAGO_ACCESS_TOKEN:
        logger.warning("MERCADOPAGO_ACCESS_TOKEN not set; PIX payments will fail.")
    if not settings.MERCADOPAGO_WEBHOOK_SECRET:
        logger.warning("MERCADOPAGO_WEBHOOK_SECRET not set; webhook signatures are not checked.")
    if not settings.REDIS_URL:
        logger.warning("REDIS_URL not set; payment creation runs without a lock.")
    if not settings.EMAIL_SERVER:
        logger.warning("EMAIL_SERVER not set; booking confirmations are not e-mailed.")

    if rabbitmq.enabled:
        try:
            await rabbitmq.declare_exchange(settings.RABBITMQ_MAIN_EXCHANGE)
            logger.info("RabbitMQ connected.")
        except Exception:
            logger.exception("RabbitMQ connection failed")
    else:
        logger.warning("RABBITMQ_URL not set; change events stay in process.")

    try:
        await rate_limiter_manager.connect()
    except Exception:
        logger.exception("Rate limiter connection failed")

    logger.info("Application startup complete.")

    yield

    try:
        await rabbitmq.close()
    except Exception:
        logger.exception("Failed to close RabbitMQ connection")
    try:
        await rate_limiter_manager.close()
    except Exception:
        logger.exception("Failed to close rate limiter")
    try:
        await redis_lock_manager.close()
    except Exception:
        logger.exception("Failed to close payment lock Redis")
