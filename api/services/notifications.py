"""
Notification dispatcher.

The boundary between round transitions and email. Callers only pass an
application id and a notification kind; recipient details and the SMTP
exchange live behind the sender. A failed delivery is recorded and reported,
never raised, and never touches the transition that caused it.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.errors import NotFoundError
from core.integrations.email import DeliveryResult
from core.workflow.rounds import NotificationKind
from database.engine import Database
from database.models.applications import Application
from database.models.notifications import DeliveryStatus, NotificationDelivery

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(
        self,
        recipient_email: str,
        recipient_name: str,
        kind: NotificationKind,
        cycle_name: str,
    ) -> DeliveryResult: ...


class NotificationDispatcher:
    """Sends round-transition notifications and records each delivery."""

    def __init__(self, database: Database, sender: EmailSender):
        self.database = database
        self.sender = sender

    async def _send(self, recipient_email: str, recipient_name: str, kind: NotificationKind, cycle_name: str) -> DeliveryResult:
        try:
            return await self.sender.send(recipient_email, recipient_name, kind, cycle_name)
        except Exception as e:
            logger.exception(f"Email sender raised while sending {kind.value}")
            return DeliveryResult(success=False, error=f"{type(e).__name__}: {e}")

    async def notify(
        self,
        application_id: int,
        kind: NotificationKind,
        transition_id: Optional[int] = None,
    ) -> DeliveryResult:
        """
        Notify the candidate behind an application.

        Args:
            application_id: Application that transitioned
            kind: Notification kind emitted by the transition
            transition_id: Transition record that caused the notification

        Returns:
            DeliveryResult with success flag and error message
        """
        kind = NotificationKind(kind)
        async with self.database.session() as session:
            application = await session.scalar(
                select(Application)
                .options(selectinload(Application.candidate), selectinload(Application.cycle))
                .where(Application.id == application_id)
            )
            if application is None or application.candidate is None:
                logger.error(f"Cannot notify missing application {application_id}")
                return DeliveryResult(success=False, error=f"Application {application_id} not found")

            candidate = application.candidate
            result = await self._send(candidate.email, candidate.full_name, kind, application.cycle.name)

            if not result.success:
                logger.warning(
                    f"{kind.value} notification failed: {result.error}",
                    extra={"application_id": application_id},
                )

            delivery = NotificationDelivery(
                application_id=application_id,
                transition_id=transition_id,
                kind=kind,
                recipient_email=candidate.email,
                status=DeliveryStatus.SENT if result.success else DeliveryStatus.FAILED,
                error=result.error,
                attempts=1,
                last_attempt_at=datetime.now(timezone.utc),
            )
            session.add(delivery)
            try:
                await session.commit()
            except SQLAlchemyError as e:
                # The email already went out (or failed); losing the row only affects redelivery
                logger.error(f"Failed to record notification delivery: {e}", extra={"application_id": application_id})

        return result

    async def redeliver(self, delivery_id: int) -> DeliveryResult:
        """
        Retry a failed delivery.

        Args:
            delivery_id: NotificationDelivery to retry

        Returns:
            DeliveryResult of the new attempt (success without sending when
            the delivery already succeeded)

        Raises:
            NotFoundError: Unknown delivery id
        """
        async with self.database.session() as session:
            delivery = await session.get(NotificationDelivery, delivery_id)
            if delivery is None:
                raise NotFoundError(f"Notification delivery {delivery_id} not found")
            if delivery.status == DeliveryStatus.SENT:
                return DeliveryResult(success=True)

            application = await session.scalar(
                select(Application)
                .options(selectinload(Application.candidate), selectinload(Application.cycle))
                .where(Application.id == delivery.application_id)
            )
            if application is None or application.candidate is None:
                logger.error(f"Cannot redeliver {delivery_id} for missing application {delivery.application_id}")
                return DeliveryResult(success=False, error=f"Application {delivery.application_id} not found")
            kind = NotificationKind(delivery.kind)
            result = await self._send(
                delivery.recipient_email,
                application.candidate.full_name,
                kind,
                application.cycle.name,
            )

            delivery.attempts += 1
            delivery.last_attempt_at = datetime.now(timezone.utc)
            delivery.status = DeliveryStatus.SENT if result.success else DeliveryStatus.FAILED
            delivery.error = result.error
            await session.commit()

        logger.info(
            f"Redelivery of {kind.value} {'succeeded' if result.success else 'failed'}",
            extra={"application_id": delivery.application_id},
        )
        return result


async def failed_delivery_ids(session: AsyncSession, cycle_id: int) -> List[int]:
    """Ids of failed deliveries for applications of a cycle."""
    result = await session.execute(
        select(NotificationDelivery.id)
        .join(Application, Application.id == NotificationDelivery.application_id)
        .where(
            Application.cycle_id == cycle_id,
            NotificationDelivery.status == DeliveryStatus.FAILED,
        )
        .order_by(NotificationDelivery.id)
    )
    return list(result.scalars().all())
