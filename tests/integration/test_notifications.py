"""
Integration tests for notification dispatch, delivery records and redelivery.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import delete, select

from api.services.notifications import failed_delivery_ids
from core.errors import NotFoundError, NotificationDeliveryError
from core.integrations.email import DeliveryResult
from core.workflow.rounds import NotificationKind
from database.models.applications import Application
from database.models.notifications import DeliveryStatus, NotificationDelivery
from workers.tasks.notifications import redeliver, redeliver_notification


async def all_deliveries(database):
    async with database.session() as session:
        result = await session.execute(select(NotificationDelivery).order_by(NotificationDelivery.id))
        return list(result.scalars().all())


@pytest_asyncio.fixture
async def cycle_id(seed):
    return await seed.cycle(name="Fall 2026")


class TestNotify:
    @pytest.mark.asyncio
    async def test_sends_and_records_delivery(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")

        result = await dispatcher.notify(app_id, NotificationKind.ADVANCED_COFFEE_CHAT, transition_id=None)

        assert result.success
        [sent] = email_sender.sent
        assert sent["recipient_email"] == seed.candidate_email("S1")
        assert sent["recipient_name"] == "Student S1"
        assert sent["cycle_name"] == "Fall 2026"
        [delivery] = await all_deliveries(database)
        assert delivery.application_id == app_id
        assert delivery.status == DeliveryStatus.SENT
        assert delivery.attempts == 1
        assert delivery.error is None

    @pytest.mark.asyncio
    async def test_failure_is_recorded_not_raised(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")
        email_sender.failing.add(seed.candidate_email("S1"))

        result = await dispatcher.notify(app_id, NotificationKind.REJECTED)

        assert not result.success
        [delivery] = await all_deliveries(database)
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.kind == NotificationKind.REJECTED
        assert delivery.error == "SMTP connection refused"

    @pytest.mark.asyncio
    async def test_accepts_kind_by_value(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")

        await dispatcher.notify(app_id, "ACCEPTED")

        assert email_sender.sent[0]["kind"] == NotificationKind.ACCEPTED

    @pytest.mark.asyncio
    async def test_missing_application(self, database, dispatcher, email_sender):
        result = await dispatcher.notify(404, NotificationKind.ACCEPTED)

        assert not result.success
        assert "not found" in result.error
        assert email_sender.sent == []
        assert await all_deliveries(database) == []


class TestRedeliver:
    @pytest.mark.asyncio
    async def test_retries_failed_delivery(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")
        email_sender.failing.add(seed.candidate_email("S1"))
        await dispatcher.notify(app_id, NotificationKind.ADVANCED_FIRST_ROUND)
        [failed] = await all_deliveries(database)

        email_sender.failing.clear()
        result = await dispatcher.redeliver(failed.id)

        assert result.success
        [delivery] = await all_deliveries(database)
        assert delivery.status == DeliveryStatus.SENT
        assert delivery.attempts == 2
        assert delivery.error is None
        assert email_sender.kinds_for(seed.candidate_email("S1")) == [
            NotificationKind.ADVANCED_FIRST_ROUND,
            NotificationKind.ADVANCED_FIRST_ROUND,
        ]

    @pytest.mark.asyncio
    async def test_still_failing(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")
        email_sender.failing.add(seed.candidate_email("S1"))
        await dispatcher.notify(app_id, NotificationKind.REJECTED)
        [failed] = await all_deliveries(database)

        result = await dispatcher.redeliver(failed.id)

        assert not result.success
        [delivery] = await all_deliveries(database)
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.attempts == 2

    @pytest.mark.asyncio
    async def test_sent_delivery_is_not_resent(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")
        await dispatcher.notify(app_id, NotificationKind.ACCEPTED)
        [sent] = await all_deliveries(database)

        result = await dispatcher.redeliver(sent.id)

        assert result.success
        assert len(email_sender.sent) == 1

    @pytest.mark.asyncio
    async def test_missing_application_is_reported_not_raised(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")
        email_sender.failing.add(seed.candidate_email("S1"))
        await dispatcher.notify(app_id, NotificationKind.REJECTED)
        [failed] = await all_deliveries(database)
        async with database.session() as session:
            await session.execute(delete(Application).where(Application.id == app_id))
            await session.commit()

        result = await dispatcher.redeliver(failed.id)

        assert not result.success
        assert "not found" in result.error
        assert len(email_sender.sent) == 1
        [delivery] = await all_deliveries(database)
        assert delivery.status == DeliveryStatus.FAILED
        assert delivery.attempts == 1

    @pytest.mark.asyncio
    async def test_unknown_delivery(self, dispatcher):
        with pytest.raises(NotFoundError):
            await dispatcher.redeliver(404)


class TestFailedDeliveryIds:
    @pytest.mark.asyncio
    async def test_only_failed_deliveries_of_the_cycle(self, database, seed, dispatcher, email_sender, cycle_id):
        other_cycle = await seed.cycle(name="Spring 2026", is_active=False)
        failing = await seed.application(cycle_id, "S1")
        delivered = await seed.application(cycle_id, "S2")
        elsewhere = await seed.application(other_cycle, "S3")
        email_sender.failing.update({seed.candidate_email("S1"), seed.candidate_email("S3")})
        for app_id in (failing, delivered, elsewhere):
            await dispatcher.notify(app_id, NotificationKind.ADVANCED_COFFEE_CHAT)

        async with database.session() as session:
            ids = await failed_delivery_ids(session, cycle_id)

        deliveries = {d.application_id: d.id for d in await all_deliveries(database)}
        assert ids == [deliveries[failing]]


class TestRedeliveryTask:
    """The Celery task wrapping redelivery."""

    @pytest.mark.asyncio
    async def test_redeliver_uses_a_short_lived_database(self, database, seed, dispatcher, email_sender, cycle_id):
        app_id = await seed.application(cycle_id, "S1")
        email_sender.failing.add(seed.candidate_email("S1"))
        await dispatcher.notify(app_id, NotificationKind.REJECTED)
        [failed] = await all_deliveries(database)
        email_sender.failing.clear()

        with patch("workers.tasks.notifications.build_database", return_value=database), \
                patch("workers.tasks.notifications.build_round_email_sender", return_value=email_sender):
            result = await redeliver(failed.id)

        assert result.success
        [delivery] = await all_deliveries(database)
        assert delivery.status == DeliveryStatus.SENT

    def test_task_reports_success(self):
        with patch(
            "workers.tasks.notifications.redeliver",
            new=AsyncMock(return_value=DeliveryResult(success=True, message_id="<1@test>")),
        ) as mock_redeliver:
            outcome = redeliver_notification(12)

        assert outcome == {"status": "sent", "delivery_id": 12}
        mock_redeliver.assert_awaited_once_with(12)

    def test_task_retries_on_failure(self):
        with patch(
            "workers.tasks.notifications.redeliver",
            new=AsyncMock(return_value=DeliveryResult(success=False, error="SMTP timeout")),
        ):
            with pytest.raises(NotificationDeliveryError, match="SMTP timeout"):
                redeliver_notification(12)
