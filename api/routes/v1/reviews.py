"""Reviewer decision endpoints."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_active_user
from api.schemas.reviews import DecisionCreateRequest, DecisionResponse
from api.services.decisions import decisions_for, record_decision
from core.workflow.rounds import Round
from database.engine import get_db
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/decisions",
    response_model=DecisionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a decision",
    description="Append a reviewer verdict for an application's current round.",
)
async def create_decision(
    request: DecisionCreateRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: User = Depends(require_active_user),
) -> DecisionResponse:
    """
    Record a decision.

    - **applicationId**: Application under review
    - **round**: The application's current round
    - **verdict**: YES, NO, MAYBE_YES or MAYBE_NO
    - **isOverride**: Admin final word (admins only)
    - **notes**: Optional reviewer notes
    """
    decision = await record_decision(
        db,
        application_id=request.application_id,
        round_=request.round,
        reviewer_id=reviewer.id,
        verdict=request.verdict,
        is_override=request.is_override,
        notes=request.notes,
    )
    return DecisionResponse.model_validate(decision)


@router.get(
    "/decisions",
    response_model=list[DecisionResponse],
    summary="List decisions of an application",
)
async def list_decisions(
    application_id: int = Query(..., alias="applicationId", ge=1),
    round_name: Optional[str] = Query(None, alias="round"),
    db: AsyncSession = Depends(get_db),
    reviewer: User = Depends(require_active_user),
) -> list[DecisionResponse]:
    round_ = Round.parse(round_name) if round_name else None
    decisions = await decisions_for(db, application_id, round_)
    return [DecisionResponse.model_validate(d) for d in decisions]
