"""Application endpoints."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_active_user, require_admin_user
from api.schemas.applications import (
    ApplicationCreateRequest,
    ApplicationResponse,
    TransitionResponse,
)
from api.schemas.common import PaginatedResponse, PaginationParams
from api.services import applications as application_service
from api.services.cycles import get_active_cycle
from core.errors import ValidationError
from core.workflow.rounds import Outcome, Round
from database.engine import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an application",
    description="Manual intake into the active cycle. Reuses the candidate with the same student id.",
    dependencies=[Depends(require_admin_user)],
)
async def submit_application(
    request: ApplicationCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    cycle = await get_active_cycle(db)
    application = await application_service.submit_application(
        db,
        cycle,
        student_id=request.student_id,
        email=request.email,
        full_name=request.full_name,
    )
    return ApplicationResponse.model_validate(application)


@router.get(
    "",
    response_model=PaginatedResponse[ApplicationResponse],
    summary="List applications of the active cycle",
    dependencies=[Depends(require_active_user)],
)
async def list_applications(
    round_name: Optional[str] = Query(None, alias="round"),
    outcome: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[ApplicationResponse]:
    current_round = Round.parse(round_name) if round_name else None
    outcome_filter = None
    if outcome:
        try:
            outcome_filter = Outcome(outcome.strip().upper())
        except ValueError:
            raise ValidationError(f"Invalid outcome '{outcome}'")

    pagination = PaginationParams(page=page, page_size=page_size)
    cycle = await get_active_cycle(db)
    result = await application_service.list_applications(
        db,
        cycle.id,
        current_round=current_round,
        outcome=outcome_filter,
        limit=pagination.page_size,
        offset=pagination.offset,
    )
    return PaginatedResponse[ApplicationResponse].create(
        items=[ApplicationResponse.model_validate(a) for a in result["applications"]],
        total=result["total"],
        pagination=pagination,
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Get an application",
    dependencies=[Depends(require_active_user)],
)
async def get_application(
    application_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    return ApplicationResponse.model_validate(
        await application_service.get_application(db, application_id)
    )


@router.get(
    "/{application_id}/transitions",
    response_model=list[TransitionResponse],
    summary="Transition history of an application",
    dependencies=[Depends(require_active_user)],
)
async def get_application_transitions(
    application_id: int,
    db: AsyncSession = Depends(get_db),
) -> list[TransitionResponse]:
    transitions = await application_service.get_application_transitions(db, application_id)
    return [TransitionResponse.model_validate(t) for t in transitions]
