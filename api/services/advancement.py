"""
Batch advancement orchestrator.

Applies the advancement state machine to every pending application of a
cycle at one round:

1. Take the (cycle, round) lock so concurrent triggers run one after another.
2. Read the ids and versions of the eligible applications.
3. For each application, with bounded parallelism and in its own
   transaction: read unconsumed decisions, compute the transition, write the
   new state under an optimistic version check, append a transition record.
4. After the commit, hand the notification to the dispatcher.

A failure for one application is reported and never affects the others.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.cycles import get_active_cycle
from api.services.decisions import pending_decisions
from api.services.notifications import NotificationDispatcher
from core.errors import (
    ConcurrencyConflict,
    NoEligibleApplicationsError,
    NotFoundError,
    RecruitingError,
    StorageError,
    ValidationError,
)
from core.middleware.logging import get_logger
from core.workflow.rounds import Outcome, Round, RoundConfiguration
from core.workflow.state_machine import (
    ApplicationState,
    TransitionKind,
    TransitionResult,
    compute_transition,
)
from database.engine import Database
from database.models.applications import Application
from database.models.cycles import RecruitingCycle
from database.models.transitions import TransitionRecord

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag for a running batch."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class BatchError:
    application_id: int
    code: str
    message: str


@dataclass
class BatchReport:
    """Per-application results of one batch run."""

    batch_id: str
    cycle_id: int
    round: Round
    advanced: List[int] = field(default_factory=list)
    accepted: List[int] = field(default_factory=list)
    rejected: List[int] = field(default_factory=list)
    reconsideration: List[int] = field(default_factory=list)
    indeterminate: List[int] = field(default_factory=list)
    no_decision: List[int] = field(default_factory=list)
    not_processed: List[int] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)
    emails_sent: int = 0
    emails_failed: int = 0
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def add_result(self, result: TransitionResult) -> None:
        bucket = {
            TransitionKind.ADVANCED: self.advanced,
            TransitionKind.ACCEPTED: self.accepted,
            TransitionKind.REJECTED: self.rejected,
            TransitionKind.RECONSIDERATION: self.reconsideration,
            TransitionKind.INDETERMINATE: self.indeterminate,
            TransitionKind.NO_DECISION: self.no_decision,
        }[result.kind]
        bucket.append(result.application_id)

    def add_error(self, application_id: int, error: RecruitingError) -> None:
        self.errors.append(BatchError(application_id, error.code, error.message))

    @property
    def transitioned(self) -> int:
        return len(self.advanced) + len(self.accepted) + len(self.rejected) + len(self.reconsideration)

    def summary(self) -> Dict[str, Any]:
        """Counts plus the application ids that need attention."""
        return {
            "batch_id": self.batch_id,
            "cycle_id": self.cycle_id,
            "round": self.round,
            "advanced": len(self.advanced),
            "accepted": len(self.accepted),
            "rejected": len(self.rejected),
            "reconsideration": len(self.reconsideration),
            "indeterminate": len(self.indeterminate),
            "no_decision": len(self.no_decision),
            "errors": len(self.errors),
            "emails_sent": self.emails_sent,
            "emails_failed": self.emails_failed,
            "not_processed": len(self.not_processed),
            "cancelled": self.cancelled,
            "unclear_application_ids": sorted(self.indeterminate),
            "error_details": [
                {"application_id": e.application_id, "code": e.code, "message": e.message}
                for e in sorted(self.errors, key=lambda e: e.application_id)
            ],
        }


class AdvancementOrchestrator:
    """Runs batch advancement for a (cycle, round)."""

    def __init__(
        self,
        database: Database,
        dispatcher: NotificationDispatcher,
        round_lock,
        concurrency: int = 5,
    ):
        """
        Args:
            database: Storage handle
            dispatcher: Notification dispatcher called after each commit
            round_lock: LocalRoundLock or RedisRoundLock
            concurrency: Maximum applications processed at once
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.database = database
        self.dispatcher = dispatcher
        self.round_lock = round_lock
        self.concurrency = concurrency
        self._running: Dict[str, CancellationToken] = {}

    # ==================== Batch control ===================== #
    def running_batches(self) -> List[str]:
        return list(self._running)

    def cancel(self, batch_id: str) -> None:
        """
        Stop scheduling new applications for a running batch.

        Raises:
            NotFoundError: No such batch is running in this process
        """
        token = self._running.get(batch_id)
        if token is None:
            raise NotFoundError(f"Batch {batch_id} is not running")
        token.cancel()
        logger.info(f"Cancellation requested for batch {batch_id}", extra={"batch_id": batch_id})

    async def advance_active_cycle(self, round_: Any, batch_id: Optional[str] = None) -> BatchReport:
        """
        Advance ``round_`` of the active cycle.

        Raises:
            ValidationError: Unknown round
            NoActiveCycleError: No active cycle
            NoEligibleApplicationsError: Nothing pending at the round
        """
        round_ = Round.parse(round_) if not isinstance(round_, Round) else round_
        async with self.database.session() as session:
            cycle = await get_active_cycle(session)
            cycle_id = cycle.id
        return await self.advance_round(cycle_id, round_, batch_id=batch_id)

    async def advance_round(
        self,
        cycle_id: int,
        round_: Any,
        cancel_token: Optional[CancellationToken] = None,
        batch_id: Optional[str] = None,
    ) -> BatchReport:
        """
        Advance every pending application of ``cycle_id`` at ``round_``.

        Args:
            cycle_id: Recruiting cycle
            round_: Round to process
            cancel_token: Token to cancel the batch with (one is created otherwise)
            batch_id: Identifier for the run (generated when omitted)

        Returns:
            BatchReport, also under partial failure

        Raises:
            NotFoundError: Unknown cycle
            ValidationError: Round not in the cycle's configuration
            NoEligibleApplicationsError: Nothing pending at the round
            ConcurrencyConflict: The round lock could not be obtained, or
                ``batch_id`` is already running
        """
        round_ = Round.parse(round_) if not isinstance(round_, Round) else round_
        batch_id = batch_id or uuid.uuid4().hex
        if batch_id in self._running:
            raise ConcurrencyConflict(f"Batch {batch_id} is already running")
        token = cancel_token or CancellationToken()
        log = get_logger(__name__, batch_id=batch_id, cycle_id=cycle_id, round=round_.value)

        self._running[batch_id] = token
        try:
            async with self.round_lock.hold(cycle_id, round_):
                config, eligible = await self._load_eligible(cycle_id, round_)
                if not eligible:
                    raise NoEligibleApplicationsError(
                        f"No pending applications at {round_.value} in cycle {cycle_id}"
                    )

                log.info(f"Starting batch over {len(eligible)} applications")
                report = BatchReport(batch_id=batch_id, cycle_id=cycle_id, round=round_)
                semaphore = asyncio.Semaphore(self.concurrency)

                async def run(application_id: int, version: int) -> None:
                    async with semaphore:
                        if token.cancelled:
                            report.not_processed.append(application_id)
                            return
                        await self._process_application(report, config, round_, application_id, version, log)

                await asyncio.gather(*(run(app_id, version) for app_id, version in eligible))

                report.cancelled = token.cancelled
                report.finished_at = datetime.now(timezone.utc)
        finally:
            self._running.pop(batch_id, None)

        log.info(
            f"Finished batch: {report.transitioned} transitions, {len(report.errors)} errors, "
            f"{report.emails_sent} emails sent, {report.emails_failed} failed"
        )
        return report

    # ==================== Per-application work ===================== #
    async def _load_eligible(self, cycle_id: int, round_: Round) -> Tuple[RoundConfiguration, List[Tuple[int, int]]]:
        async with self.database.session() as session:
            cycle = await session.get(RecruitingCycle, cycle_id)
            if cycle is None:
                raise NotFoundError(f"Recruiting cycle {cycle_id} not found")
            config = cycle.configuration
            if not config.contains(round_):
                raise ValidationError(f"Round {round_.value} is not part of cycle {cycle_id}")

            result = await session.execute(
                select(Application.id, Application.version)
                .where(
                    Application.cycle_id == cycle_id,
                    Application.current_round == round_,
                    Application.outcome == Outcome.PENDING,
                )
                .order_by(Application.id)
            )
            return config, [(row.id, row.version) for row in result.all()]

    async def _process_application(
        self,
        report: BatchReport,
        config: RoundConfiguration,
        round_: Round,
        application_id: int,
        version: int,
        log: logging.LoggerAdapter,
    ) -> None:
        try:
            result, transition_id = await self._apply_transition(
                config, round_, application_id, version, report.batch_id
            )
        except RecruitingError as e:
            log.warning(f"Skipped application {application_id}: {e.message}")
            report.add_error(application_id, e)
            return
        except SQLAlchemyError as e:
            log.error(f"Storage failure for application {application_id}: {type(e).__name__}")
            report.add_error(application_id, StorageError(f"Failed to persist transition: {type(e).__name__}"))
            return

        report.add_result(result)

        if result.notification is None:
            return

        try:
            delivery = await self.dispatcher.notify(application_id, result.notification, transition_id)
        except Exception:
            # The transition is committed; only the email is lost
            log.exception(f"Dispatcher failed for application {application_id}")
            report.emails_failed += 1
            return

        if delivery.success:
            report.emails_sent += 1
        else:
            report.emails_failed += 1

    async def _apply_transition(
        self,
        config: RoundConfiguration,
        round_: Round,
        application_id: int,
        version: int,
        batch_id: str,
    ) -> Tuple[TransitionResult, Optional[int]]:
        """Evaluate and persist one application in its own transaction."""
        async with self.database.session() as session:
            async with session.begin():
                application = await session.get(Application, application_id)
                if (
                    application is None
                    or application.version != version
                    or Round(application.current_round) != round_
                    or Outcome(application.outcome) != Outcome.PENDING
                ):
                    raise ConcurrencyConflict(
                        f"Application {application_id} changed since the batch read it"
                    )

                decisions = await pending_decisions(session, application_id, round_)
                result = compute_transition(ApplicationState.of(application), decisions, config)
                if not result.is_recorded:
                    return result, None

                record = await self._persist_transition(session, application, result, version, batch_id)
                return result, record.id

    async def _persist_transition(
        self,
        session: AsyncSession,
        application: Application,
        result: TransitionResult,
        version: int,
        batch_id: str,
    ) -> TransitionRecord:
        updated = await session.execute(
            update(Application)
            .where(
                Application.id == application.id,
                Application.version == version,
                Application.current_round == result.from_round,
                Application.outcome == Outcome.PENDING,
            )
            .values(
                current_round=result.to_round,
                outcome=result.outcome,
                version=Application.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            raise ConcurrencyConflict(f"Application {application.id} changed during the transition")

        record = TransitionRecord(
            application_id=application.id,
            kind=result.kind,
            from_round=result.from_round,
            to_round=result.to_round,
            outcome=result.outcome,
            verdict=result.verdict,
            batch_id=batch_id,
            decision_ids=list(result.decision_ids),
            last_decision_id=result.last_decision_id,
        )
        session.add(record)
        await session.flush()
        return record
