"""
Candidate and application store.

Applications normally arrive through the external form importer; manual
intake here follows the same rules: one application per candidate per
cycle, created at the cycle's first round with a pending outcome.
"""

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.errors import NotFoundError, ValidationError
from core.workflow.rounds import Outcome, Round
from database.models.applications import Application
from database.models.candidates import Candidate
from database.models.cycles import RecruitingCycle
from database.models.transitions import TransitionRecord

logger = logging.getLogger(__name__)


def serialize_application(application: Application) -> Dict[str, Any]:
    candidate = application.candidate
    return {
        "id": application.id,
        "cycle_id": application.cycle_id,
        "current_round": Round(application.current_round),
        "outcome": Outcome(application.outcome),
        "version": application.version,
        "submitted_at": application.submitted_at,
        "updated_at": application.updated_at,
        "candidate": {
            "id": candidate.id,
            "student_id": candidate.student_id,
            "email": candidate.email,
            "full_name": candidate.full_name,
        } if candidate else None,
    }


def serialize_transition(record: TransitionRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "application_id": record.application_id,
        "kind": record.kind,
        "from_round": record.from_round,
        "to_round": record.to_round,
        "outcome": record.outcome,
        "verdict": record.verdict,
        "batch_id": record.batch_id,
        "decision_ids": list(record.decision_ids or []),
        "created_at": record.created_at,
    }


async def _load_application(session: AsyncSession, application_id: int) -> Application:
    result = await session.execute(
        select(Application)
        .options(selectinload(Application.candidate))
        .where(Application.id == application_id)
        .execution_options(populate_existing=True)
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")
    return application


async def submit_application(
    session: AsyncSession,
    cycle: RecruitingCycle,
    student_id: str,
    email: str,
    full_name: str,
) -> Dict[str, Any]:
    """
    Create an application in ``cycle``, creating the candidate if needed.

    The candidate is matched by student id. Identity fields of an existing
    candidate are never overwritten.

    Args:
        session: Database session
        cycle: Cycle receiving the application
        student_id: Unique student identifier
        email: Candidate email
        full_name: Candidate name

    Returns:
        The created application

    Raises:
        ValidationError: Closed cycle, email owned by another candidate, or
            a second application for the same cycle
    """
    if cycle.closed_at is not None:
        raise ValidationError(f"Recruiting cycle {cycle.id} is closed")

    student_id = student_id.strip()
    email = email.strip().lower()

    candidate = await session.scalar(select(Candidate).where(Candidate.student_id == student_id))
    if candidate is None:
        owner = await session.scalar(select(Candidate).where(Candidate.email == email))
        if owner is not None:
            raise ValidationError("Email is already registered to another student")
        candidate = Candidate(student_id=student_id, email=email, full_name=full_name.strip())
        session.add(candidate)
        await session.flush()
    else:
        existing = await session.scalar(
            select(Application.id).where(
                Application.candidate_id == candidate.id,
                Application.cycle_id == cycle.id,
            )
        )
        if existing is not None:
            raise ValidationError(
                f"Candidate already has application {existing} in this cycle",
                details={"application_id": existing},
            )

    application = Application(
        candidate_id=candidate.id,
        cycle_id=cycle.id,
        current_round=cycle.configuration.first_round,
        outcome=Outcome.PENDING,
        version=1,
    )
    session.add(application)
    await session.commit()

    logger.info(
        f"Created application {application.id}",
        extra={"application_id": application.id, "cycle_id": cycle.id},
    )
    return serialize_application(await _load_application(session, application.id))


async def get_application(session: AsyncSession, application_id: int) -> Dict[str, Any]:
    return serialize_application(await _load_application(session, application_id))


async def list_applications(
    session: AsyncSession,
    cycle_id: int,
    current_round: Optional[Round] = None,
    outcome: Optional[Outcome] = None,
    limit: int = 50,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    List a cycle's applications with filtering.

    Args:
        session: Database session
        cycle_id: Cycle to list
        current_round: Filter by current round
        outcome: Filter by outcome
        limit: Maximum number of results
        offset: Pagination offset

    Returns:
        Dictionary with applications list and pagination info
    """
    query = (
        select(Application)
        .options(selectinload(Application.candidate))
        .where(Application.cycle_id == cycle_id)
    )
    if current_round is not None:
        query = query.where(Application.current_round == current_round)
    if outcome is not None:
        query = query.where(Application.outcome == outcome)

    total = await session.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await session.execute(query.order_by(Application.id).limit(limit).offset(offset))
    return {
        "applications": [serialize_application(app) for app in result.scalars().all()],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


async def get_application_transitions(session: AsyncSession, application_id: int) -> List[Dict[str, Any]]:
    """Transition history of an application, oldest first."""
    await _load_application(session, application_id)
    result = await session.execute(
        select(TransitionRecord)
        .where(TransitionRecord.application_id == application_id)
        .order_by(TransitionRecord.id)
    )
    return [serialize_transition(record) for record in result.scalars().all()]


async def get_batch_transitions(session: AsyncSession, batch_id: str) -> List[Dict[str, Any]]:
    """Transition records written by one batch run."""
    result = await session.execute(
        select(TransitionRecord)
        .where(TransitionRecord.batch_id == batch_id)
        .order_by(TransitionRecord.id)
    )
    records = result.scalars().all()
    if not records:
        raise NotFoundError(f"Batch {batch_id} wrote no transitions")
    return [serialize_transition(record) for record in records]
