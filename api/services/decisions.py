"""
Decision ledger.

Append-only record of reviewer verdicts. Nothing here updates or deletes a
decision; the advancement orchestrator reads the ledger through
``pending_decisions``, which hides decisions already consumed by an earlier
reconsideration.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationError
from core.workflow.rounds import Outcome, Round, Verdict
from database.models.applications import Application
from database.models.decisions import Decision
from database.models.transitions import TransitionRecord
from database.models.users import User

logger = logging.getLogger(__name__)


def serialize_decision(decision: Decision) -> Dict[str, Any]:
    return {
        "id": decision.id,
        "application_id": decision.application_id,
        "round": decision.round,
        "reviewer_id": decision.reviewer_id,
        "verdict": decision.verdict,
        "is_override": decision.is_override,
        "notes": decision.notes,
        "created_at": decision.created_at,
    }


async def record_decision(
    session: AsyncSession,
    application_id: int,
    round_: Round,
    reviewer_id: int,
    verdict: Verdict,
    is_override: bool = False,
    notes: Optional[str] = None,
) -> Decision:
    """
    Append a reviewer decision.

    Args:
        session: Database session
        application_id: Application being reviewed
        round_: Round the decision applies to
        reviewer_id: Reviewer recording the decision
        verdict: YES, NO, MAYBE_YES or MAYBE_NO
        is_override: Admin final word under the admin-override policy
        notes: Free-text reviewer notes

    Returns:
        The stored decision

    Raises:
        ValidationError: Missing application or reviewer, inactive reviewer,
            terminal application, round other than the current one, or an
            override from a non-admin
    """
    application = await session.get(Application, application_id)
    if application is None:
        raise ValidationError(f"Application {application_id} does not exist")

    reviewer = await session.get(User, reviewer_id)
    if reviewer is None or not reviewer.is_active:
        raise ValidationError(f"Reviewer {reviewer_id} does not exist or is inactive")

    if Outcome(application.outcome) != Outcome.PENDING:
        raise ValidationError(
            f"Application {application_id} is already {Outcome(application.outcome).value}"
        )
    if Round(application.current_round) != round_:
        raise ValidationError(
            f"Application {application_id} is in {Round(application.current_round).value}, "
            f"not {round_.value}"
        )
    if is_override and not reviewer.is_admin:
        raise ValidationError("Only admins can record override decisions")

    decision = Decision(
        application_id=application_id,
        round=round_,
        reviewer_id=reviewer_id,
        verdict=verdict,
        is_override=is_override,
        notes=notes,
    )
    session.add(decision)
    await session.commit()
    await session.refresh(decision)

    logger.info(
        f"Recorded {verdict.value} decision {decision.id} for {round_.value}",
        extra={"application_id": application_id, "user_id": reviewer_id},
    )
    return decision


async def decisions_for(
    session: AsyncSession,
    application_id: int,
    round_: Optional[Round] = None,
    after_id: Optional[int] = None,
) -> List[Decision]:
    """
    Decisions of an application, oldest first.

    Args:
        session: Database session
        application_id: Application to read
        round_: Restrict to one round
        after_id: Only decisions with a higher id
    """
    query = select(Decision).where(Decision.application_id == application_id)
    if round_ is not None:
        query = query.where(Decision.round == round_)
    if after_id is not None:
        query = query.where(Decision.id > after_id)
    result = await session.execute(query.order_by(Decision.id))
    return list(result.scalars().all())


async def revote_watermark(session: AsyncSession, application_id: int, round_: Round) -> Optional[int]:
    """Highest decision id consumed by the latest transition out of ``round_``."""
    return await session.scalar(
        select(TransitionRecord.last_decision_id)
        .where(
            TransitionRecord.application_id == application_id,
            TransitionRecord.from_round == round_,
        )
        .order_by(TransitionRecord.id.desc())
        .limit(1)
    )


async def pending_decisions(session: AsyncSession, application_id: int, round_: Round) -> List[Decision]:
    """Decisions for ``round_`` not yet consumed by a transition."""
    watermark = await revote_watermark(session, application_id, round_)
    return await decisions_for(session, application_id, round_, after_id=watermark)
