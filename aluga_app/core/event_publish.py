import logging

from core.settings import settings

from .rabbitmq import rabbitmq

logger = logging.getLogger(__name__)


async def publish_event(event_name: str, data: dict):
    if not rabbitmq.enabled:
        return
    try:
        await rabbitmq.publish_json(
            exchange_name=settings.RABBITMQ_MAIN_EXCHANGE,
            routing_key=event_name,
            data=data,
        )
    except Exception:
        logger.exception("Failed to publish %s", event_name)
