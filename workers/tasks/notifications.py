"""Notification redelivery tasks."""

import asyncio
import logging

from celery import Task

from api.services.notifications import NotificationDispatcher
from core.config import settings
from core.errors import NotificationDeliveryError
from core.integrations.email import DeliveryResult, build_round_email_sender
from database.engine import build_database
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def redeliver(delivery_id: int) -> DeliveryResult:
    """Retry one failed delivery with a short-lived database handle."""
    database = build_database(settings)
    try:
        dispatcher = NotificationDispatcher(database, build_round_email_sender(settings))
        return await dispatcher.redeliver(delivery_id)
    finally:
        await database.close()


@celery_app.task(name="workers.tasks.notifications.redeliver_notification", bind=True)
def redeliver_notification(self: Task, delivery_id: int) -> dict:
    """Redeliver a failed candidate notification.

    Args:
        delivery_id: NotificationDelivery to retry

    Returns:
        Dictionary with send status
    """
    result = asyncio.run(redeliver(delivery_id))
    if not result.success:
        logger.warning(f"Redelivery of {delivery_id} failed: {result.error}")
        raise self.retry(
            exc=NotificationDeliveryError(result.error or "Delivery failed"),
            countdown=120,
            max_retries=5,
        )

    return {"status": "sent", "delivery_id": delivery_id}
