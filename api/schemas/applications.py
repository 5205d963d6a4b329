"""Application and transition schemas."""

from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field, field_validator

from api.schemas.common import CamelModel
from core.workflow.rounds import Outcome, Round, Verdict
from core.workflow.state_machine import TransitionKind


class ApplicationCreateRequest(CamelModel):
    """Schema for manual application intake into the active cycle."""

    student_id: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)

    @field_validator("student_id", "full_name", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v


class CandidateSummary(CamelModel):
    id: int
    student_id: str
    email: str
    full_name: str


class ApplicationResponse(CamelModel):
    """Schema for application response."""

    id: int
    cycle_id: int
    current_round: Round
    outcome: Outcome
    version: int
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    candidate: Optional[CandidateSummary] = None


class TransitionResponse(CamelModel):
    """One entry of the transition ledger."""

    id: int
    application_id: int
    kind: TransitionKind
    from_round: Round
    to_round: Round
    outcome: Outcome
    verdict: Optional[Verdict] = None
    batch_id: str
    decision_ids: list[int]
    created_at: Optional[datetime] = None
