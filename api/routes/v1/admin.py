"""Admin endpoints: batch advancement, recruiting cycles, statistics, redelivery."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_orchestrator, require_admin_user
from api.schemas.advancement import (
    BatchCancelResponse,
    BatchReportResponse,
    BatchTransitionsResponse,
    RedeliveryResponse,
    RunningBatchesResponse,
)
from api.schemas.cycles import (
    CycleCreateRequest,
    CycleResponse,
    CycleStatsResponse,
    CycleUpdateRequest,
)
from api.services import cycles as cycle_service
from api.services.advancement import AdvancementOrchestrator
from api.services.applications import get_batch_transitions
from api.services.notifications import failed_delivery_ids
from core.config import settings
from core.workflow.rounds import VerdictPolicy
from database.engine import get_db
from database.models.users import User
from workers.tasks.notifications import redeliver_notification

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin_user)])


# ==================== Batch advancement ===================== #
@router.post(
    "/advance-round/{round_name}",
    response_model=BatchReportResponse,
    summary="Process decisions for a round",
    description=(
        "Apply every pending decision of the active cycle at the given round. "
        "Returns a structured report even when some applications fail. "
        "Pass batchId to cancel the run while it is in progress."
    ),
)
async def advance_round(
    round_name: str,
    batch_id: Optional[str] = Query(None, alias="batchId", min_length=1, max_length=64),
    orchestrator: AdvancementOrchestrator = Depends(get_orchestrator),
    admin: User = Depends(require_admin_user),
) -> BatchReportResponse:
    logger.info(f"Admin {admin.id} triggered advancement of {round_name}", extra={"user_id": admin.id})
    report = await orchestrator.advance_active_cycle(round_name, batch_id=batch_id)
    return BatchReportResponse.model_validate(report.summary())


@router.get(
    "/batches/running",
    response_model=RunningBatchesResponse,
    summary="Batches currently running",
)
async def list_running_batches(
    orchestrator: AdvancementOrchestrator = Depends(get_orchestrator),
) -> RunningBatchesResponse:
    return RunningBatchesResponse(batch_ids=orchestrator.running_batches())


@router.post(
    "/batches/{batch_id}/cancel",
    response_model=BatchCancelResponse,
    summary="Cancel a running batch",
    description="Stops scheduling new applications; in-flight transitions complete.",
)
async def cancel_batch(
    batch_id: str,
    orchestrator: AdvancementOrchestrator = Depends(get_orchestrator),
) -> BatchCancelResponse:
    orchestrator.cancel(batch_id)
    return BatchCancelResponse(batch_id=batch_id, cancellation_requested=True)


@router.get(
    "/batches/{batch_id}",
    response_model=BatchTransitionsResponse,
    summary="Transitions written by a batch",
)
async def get_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
) -> BatchTransitionsResponse:
    transitions = await get_batch_transitions(db, batch_id)
    return BatchTransitionsResponse.model_validate({"batch_id": batch_id, "transitions": transitions})


# ==================== Recruiting cycles ===================== #
@router.get("/cycles", response_model=list[CycleResponse], summary="List recruiting cycles")
async def list_cycles(db: AsyncSession = Depends(get_db)) -> list[CycleResponse]:
    return [CycleResponse.model_validate(c) for c in await cycle_service.list_cycles(db)]


@router.get("/cycles/active", response_model=CycleResponse, summary="Get the active cycle")
async def get_active_cycle(db: AsyncSession = Depends(get_db)) -> CycleResponse:
    cycle = await cycle_service.get_active_cycle(db)
    return CycleResponse.model_validate(cycle_service.serialize_cycle(cycle))


@router.post(
    "/cycles",
    response_model=CycleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a recruiting cycle",
    description="Creating an active cycle deactivates every other cycle.",
)
async def create_cycle(
    request: CycleCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> CycleResponse:
    default_policy = VerdictPolicy(settings.default_verdict_policy)
    config = request.round_config.to_configuration(default_policy) if request.round_config else None
    cycle = await cycle_service.create_cycle(
        db,
        name=request.name,
        form_url=request.form_url,
        start_date=request.start_date,
        end_date=request.end_date,
        is_active=request.is_active,
        round_config=config,
        default_policy=default_policy,
    )
    return CycleResponse.model_validate(cycle)


@router.patch("/cycles/{cycle_id}", response_model=CycleResponse, summary="Update a recruiting cycle")
async def update_cycle(
    cycle_id: int,
    request: CycleUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> CycleResponse:
    cycle = await cycle_service.update_cycle(db, cycle_id, request.model_dump(exclude_unset=True))
    return CycleResponse.model_validate(cycle)


@router.post("/cycles/{cycle_id}/activate", response_model=CycleResponse, summary="Activate a cycle")
async def activate_cycle(cycle_id: int, db: AsyncSession = Depends(get_db)) -> CycleResponse:
    return CycleResponse.model_validate(await cycle_service.activate_cycle(db, cycle_id))


@router.post("/cycles/{cycle_id}/close", response_model=CycleResponse, summary="Close a cycle")
async def close_cycle(cycle_id: int, db: AsyncSession = Depends(get_db)) -> CycleResponse:
    return CycleResponse.model_validate(await cycle_service.close_cycle(db, cycle_id))


@router.delete(
    "/cycles/{cycle_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a cycle without applications",
)
async def delete_cycle(cycle_id: int, db: AsyncSession = Depends(get_db)) -> Response:
    await cycle_service.delete_cycle(db, cycle_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==================== Reporting & notifications ===================== #
@router.get("/stats", response_model=CycleStatsResponse, summary="Application counts of the active cycle")
async def get_stats(db: AsyncSession = Depends(get_db)) -> CycleStatsResponse:
    cycle = await cycle_service.get_active_cycle(db)
    return CycleStatsResponse.model_validate(await cycle_service.get_cycle_stats(db, cycle))


@router.post(
    "/notifications/redeliver",
    response_model=RedeliveryResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry failed notifications",
    description="Queues every failed delivery of the active cycle on the background worker.",
)
async def redeliver_failed_notifications(db: AsyncSession = Depends(get_db)) -> RedeliveryResponse:
    cycle = await cycle_service.get_active_cycle(db)
    delivery_ids = await failed_delivery_ids(db, cycle.id)
    for delivery_id in delivery_ids:
        redeliver_notification.delay(delivery_id)

    logger.info(f"Queued {len(delivery_ids)} notification redeliveries", extra={"cycle_id": cycle.id})
    return RedeliveryResponse(cycle_id=cycle.id, queued=len(delivery_ids), delivery_ids=delivery_ids)
