"""Batch advancement schemas."""

from pydantic import Field

from api.schemas.applications import TransitionResponse
from api.schemas.common import CamelModel
from core.workflow.rounds import Round


class BatchErrorDetail(CamelModel):
    application_id: int
    code: str
    message: str


class BatchReportResponse(CamelModel):
    """
    Result of a batch advancement run.

    Returned with 200 even when some applications failed; see ``errors``
    and ``errorDetails``.
    """

    batch_id: str
    cycle_id: int
    round: Round
    advanced: int = Field(ge=0)
    accepted: int = Field(ge=0)
    rejected: int = Field(ge=0)
    reconsideration: int = Field(ge=0)
    indeterminate: int = Field(ge=0)
    no_decision: int = Field(ge=0)
    errors: int = Field(ge=0)
    emails_sent: int = Field(ge=0)
    emails_failed: int = Field(ge=0)
    not_processed: int = Field(ge=0)
    cancelled: bool
    unclear_application_ids: list[int]
    error_details: list[BatchErrorDetail]


class BatchCancelResponse(CamelModel):
    batch_id: str
    cancellation_requested: bool


class BatchTransitionsResponse(CamelModel):
    batch_id: str
    transitions: list[TransitionResponse]


class RedeliveryResponse(CamelModel):
    cycle_id: int
    queued: int
    delivery_ids: list[int]


class RunningBatchesResponse(CamelModel):
    batch_ids: list[str]
