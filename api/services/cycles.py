"""
Recruiting cycle service functions.

At most one cycle is active at a time. Creating an active cycle or
activating an existing one deactivates every other cycle.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NoActiveCycleError, NotFoundError, ValidationError
from core.workflow.rounds import Outcome, Round, RoundConfiguration, VerdictPolicy
from database.models.applications import Application
from database.models.cycles import RecruitingCycle

logger = logging.getLogger(__name__)

# Fields an admin may change after creation. The round configuration is not one of them.
MUTABLE_CYCLE_FIELDS = ("name", "form_url", "start_date", "end_date")


def serialize_cycle(cycle: RecruitingCycle) -> Dict[str, Any]:
    return {
        "id": cycle.id,
        "name": cycle.name,
        "form_url": cycle.form_url,
        "start_date": cycle.start_date,
        "end_date": cycle.end_date,
        "is_active": cycle.is_active,
        "closed_at": cycle.closed_at,
        "round_config": cycle.configuration.to_dict(),
        "created_at": cycle.created_at,
        "updated_at": cycle.updated_at,
    }


async def get_cycle(session: AsyncSession, cycle_id: int) -> RecruitingCycle:
    cycle = await session.get(RecruitingCycle, cycle_id)
    if cycle is None:
        raise NotFoundError(f"Recruiting cycle {cycle_id} not found")
    return cycle


async def get_active_cycle(session: AsyncSession) -> RecruitingCycle:
    """
    Load the active recruiting cycle.

    Raises:
        NoActiveCycleError: When no cycle is active
    """
    result = await session.execute(
        select(RecruitingCycle)
        .where(RecruitingCycle.is_active.is_(True))
        .order_by(RecruitingCycle.id.desc())
        .limit(1)
    )
    cycle = result.scalar_one_or_none()
    if cycle is None:
        raise NoActiveCycleError()
    return cycle


async def list_cycles(session: AsyncSession) -> List[Dict[str, Any]]:
    result = await session.execute(
        select(RecruitingCycle).order_by(RecruitingCycle.created_at.desc(), RecruitingCycle.id.desc())
    )
    return [serialize_cycle(cycle) for cycle in result.scalars().all()]


async def _deactivate_others(session: AsyncSession, cycle_id: Optional[int]) -> None:
    stmt = update(RecruitingCycle).where(RecruitingCycle.is_active.is_(True))
    if cycle_id is not None:
        stmt = stmt.where(RecruitingCycle.id != cycle_id)
    await session.execute(stmt.values(is_active=False).execution_options(synchronize_session=False))


async def create_cycle(
    session: AsyncSession,
    name: str,
    form_url: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    is_active: bool = False,
    round_config: Optional[RoundConfiguration] = None,
    default_policy: VerdictPolicy = VerdictPolicy.LAST_WRITER_WINS,
) -> Dict[str, Any]:
    """
    Create a recruiting cycle.

    Args:
        session: Database session
        name: Display name, used in candidate emails
        form_url: Link to the external application form
        start_date: When applications open
        end_date: When applications close
        is_active: Make this the active cycle
        round_config: Round configuration (default pipeline when omitted)
        default_policy: Verdict policy used when no configuration is given

    Returns:
        The created cycle
    """
    if not name or not name.strip():
        raise ValidationError("Cycle name is required")
    if start_date and end_date and end_date < start_date:
        raise ValidationError("Cycle end date is before its start date")

    config = round_config or RoundConfiguration(verdict_policy=default_policy)

    if is_active:
        await _deactivate_others(session, None)

    cycle = RecruitingCycle(
        name=name.strip(),
        form_url=form_url,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
        round_config=config.to_dict(),
    )
    session.add(cycle)
    await session.commit()
    await session.refresh(cycle)

    logger.info(f"Created recruiting cycle {cycle.id}", extra={"cycle_id": cycle.id})
    return serialize_cycle(cycle)


async def update_cycle(
    session: AsyncSession,
    cycle_id: int,
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Update a cycle's descriptive fields and, optionally, its active flag.

    Args:
        session: Database session
        cycle_id: Cycle to update
        changes: Subset of name, form_url, start_date, end_date, is_active
    """
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("Cycle name is required")

    cycle = await get_cycle(session, cycle_id)

    for field in MUTABLE_CYCLE_FIELDS:
        if field in changes:
            setattr(cycle, field, changes[field])

    if cycle.start_date and cycle.end_date and cycle.end_date < cycle.start_date:
        raise ValidationError("Cycle end date is before its start date")

    if "is_active" in changes and changes["is_active"] is not None:
        if changes["is_active"]:
            if cycle.closed_at is not None:
                raise ValidationError("A closed cycle cannot be reactivated")
            await _deactivate_others(session, cycle.id)
        cycle.is_active = bool(changes["is_active"])

    await session.commit()
    await session.refresh(cycle)
    return serialize_cycle(cycle)


async def activate_cycle(session: AsyncSession, cycle_id: int) -> Dict[str, Any]:
    return await update_cycle(session, cycle_id, {"is_active": True})


async def close_cycle(session: AsyncSession, cycle_id: int) -> Dict[str, Any]:
    """Close a cycle. Its applications keep their last state."""
    cycle = await get_cycle(session, cycle_id)
    if cycle.closed_at is None:
        cycle.closed_at = datetime.now(timezone.utc)
    cycle.is_active = False
    await session.commit()
    await session.refresh(cycle)

    logger.info(f"Closed recruiting cycle {cycle.id}", extra={"cycle_id": cycle.id})
    return serialize_cycle(cycle)


async def delete_cycle(session: AsyncSession, cycle_id: int) -> None:
    """Delete a cycle that has no applications."""
    cycle = await get_cycle(session, cycle_id)
    count = await session.scalar(
        select(func.count()).select_from(Application).where(Application.cycle_id == cycle_id)
    )
    if count:
        raise ValidationError(
            f"Cycle {cycle_id} has {count} applications and cannot be deleted; close it instead"
        )
    await session.delete(cycle)
    await session.commit()


async def get_cycle_stats(session: AsyncSession, cycle: RecruitingCycle) -> Dict[str, Any]:
    """
    Application counts for a cycle by round and by outcome.

    Pending applications are counted under their current round; terminal
    ones only under their outcome.
    """
    result = await session.execute(
        select(Application.current_round, Application.outcome, func.count())
        .where(Application.cycle_id == cycle.id)
        .group_by(Application.current_round, Application.outcome)
    )

    by_round = {r.value: 0 for r in cycle.configuration.rounds}
    by_outcome = {o.value: 0 for o in Outcome}
    total = 0
    for current_round, outcome, count in result.all():
        total += count
        by_outcome[Outcome(outcome).value] += count
        if Outcome(outcome) == Outcome.PENDING and Round(current_round) != Round.DONE:
            by_round[Round(current_round).value] = by_round.get(Round(current_round).value, 0) + count

    return {
        "cycle_id": cycle.id,
        "cycle_name": cycle.name,
        "total": total,
        "by_round": by_round,
        "by_outcome": by_outcome,
    }
