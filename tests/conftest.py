"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment must be in place
# before any application module is imported.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("ADVANCEMENT_CONCURRENCY", "2")

import inspect
from functools import partial
from itertools import count
from typing import Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.main import create_app
from api.services.advancement import AdvancementOrchestrator
from api.services.notifications import NotificationDispatcher
from core.config import settings
from core.integrations.email import DeliveryResult
from core.locks import LocalRoundLock
from core.security import create_access_token
from core.workflow.rounds import Outcome, Round, RoundConfiguration, Verdict
from database.engine import Database
from database.models.applications import Application
from database.models.candidates import Candidate
from database.models.cycles import RecruitingCycle
from database.models.decisions import Decision
from database.models.users import User, UserRole


class FakeEmailSender:
    """Records every send; fails for addresses in ``failing``."""

    def __init__(self, failing: Optional[set[str]] = None):
        self.sent: list[dict] = []
        self.failing = failing or set()

    async def send(self, recipient_email, recipient_name, kind, cycle_name) -> DeliveryResult:
        self.sent.append(
            {
                "recipient_email": recipient_email,
                "recipient_name": recipient_name,
                "kind": kind,
                "cycle_name": cycle_name,
            }
        )
        if recipient_email in self.failing:
            return DeliveryResult(success=False, error="SMTP connection refused")
        return DeliveryResult(success=True, message_id=f"<{len(self.sent)}@test>")

    def kinds_for(self, email: str) -> list:
        return [m["kind"] for m in self.sent if m["recipient_email"] == email]


class Seeder:
    """Writes fixture rows straight to the database, bypassing the services."""

    _users = count(1)

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def candidate_email(student_id: str) -> str:
        return f"{student_id.lower()}@students.example.edu"

    async def user(self, role: UserRole = UserRole.MEMBER, is_active: bool = True) -> int:
        async with self.database.session() as session:
            user = User(
                email=f"{role.value}{next(self._users)}@club.example.edu",
                full_name=f"Test {role.value.title()}",
                role=role,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return user.id

    async def cycle(
        self,
        name: str = "Fall 2026",
        config: Optional[RoundConfiguration] = None,
        is_active: bool = True,
    ) -> int:
        async with self.database.session() as session:
            cycle = RecruitingCycle(
                name=name,
                is_active=is_active,
                round_config=(config or RoundConfiguration()).to_dict(),
            )
            session.add(cycle)
            await session.commit()
            return cycle.id

    async def application(
        self,
        cycle_id: int,
        student_id: str,
        current_round: Round = Round.RESUME_REVIEW,
        outcome: Outcome = Outcome.PENDING,
    ) -> int:
        async with self.database.session() as session:
            candidate = Candidate(
                student_id=student_id,
                email=self.candidate_email(student_id),
                full_name=f"Student {student_id}",
            )
            session.add(candidate)
            await session.flush()
            application = Application(
                candidate_id=candidate.id,
                cycle_id=cycle_id,
                current_round=current_round,
                outcome=outcome,
                version=1,
            )
            session.add(application)
            await session.commit()
            return application.id

    async def decision(
        self,
        application_id: int,
        reviewer_id: int,
        verdict: Verdict,
        round_: Round,
        is_override: bool = False,
    ) -> int:
        async with self.database.session() as session:
            decision = Decision(
                application_id=application_id,
                round=round_,
                reviewer_id=reviewer_id,
                verdict=verdict,
                is_override=is_override,
            )
            session.add(decision)
            await session.commit()
            return decision.id


# ==================== Fixtures ==================== #

@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'ats.db'}"


@pytest_asyncio.fixture
async def database(database_url):
    """Fresh SQLite database with every table created."""
    db = Database(database_url)
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
def seed(database):
    return Seeder(database)


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def round_lock():
    return LocalRoundLock()


@pytest.fixture
def dispatcher(database, email_sender):
    return NotificationDispatcher(database, email_sender)


@pytest.fixture
def orchestrator(database, dispatcher, round_lock):
    return AdvancementOrchestrator(database, dispatcher, round_lock, concurrency=2)


# ==================== API fixtures ==================== #

class PortalSeeder:
    """Runs Seeder coroutines on the TestClient's event loop."""

    def __init__(self, portal, seeder: Seeder):
        self._portal = portal
        self._seeder = seeder

    def __getattr__(self, name):
        attr = getattr(self._seeder, name)
        if not inspect.iscoroutinefunction(attr):
            return attr

        def call(*args, **kwargs):
            return self._portal.call(partial(attr, *args, **kwargs))

        return call


@pytest.fixture
def client(database_url, email_sender):
    """TestClient over an app wired to a fresh SQLite database and the fake sender."""
    database = Database(database_url)
    app = create_app(
        database=database,
        email_sender=email_sender,
        round_lock=LocalRoundLock(),
        create_tables=True,
    )
    with TestClient(app) as test_client:
        test_client.seed = PortalSeeder(test_client.portal, Seeder(database))
        yield test_client
        test_client.portal.call(database.close)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user id and role."""

    def build(user_id: int, role: UserRole = UserRole.MEMBER) -> dict:
        token = create_access_token(
            user_id,
            role.value,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        return {"Authorization": f"Bearer {token}"}

    return build
