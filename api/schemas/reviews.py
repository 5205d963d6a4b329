"""Reviewer decision schemas."""

from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator

from api.schemas.common import CamelModel, normalize_enum_name
from core.workflow.rounds import Round, Verdict


class DecisionCreateRequest(CamelModel):
    """Schema for recording a reviewer decision."""

    application_id: int = Field(..., ge=1)
    round: Round
    verdict: Verdict
    is_override: bool = Field(default=False, description="Admin final word")
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator("round", "verdict", mode="before")
    @classmethod
    def normalize_names(cls, v):
        return normalize_enum_name(v)

    @field_validator("round")
    @classmethod
    def reviewable_round(cls, v: Round) -> Round:
        if v == Round.DONE:
            raise ValueError("DONE is not a reviewable round")
        return v


class DecisionResponse(CamelModel):
    """Schema for a ledger entry."""

    id: int
    application_id: int
    round: Round
    reviewer_id: int
    verdict: Verdict
    is_override: bool
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
