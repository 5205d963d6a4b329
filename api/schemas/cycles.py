"""Recruiting cycle API schemas."""

from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator

from api.schemas.common import CamelModel, TimestampMixin, normalize_enum_name
from core.workflow.rounds import Round, RoundConfiguration, VerdictPolicy


class RoundConfigSchema(CamelModel):
    """Ordered rounds of a cycle and how a NO verdict is treated."""

    rounds: list[Round] = Field(..., min_length=1, description="Rounds in pipeline order")
    reconsider_on_no: Optional[list[Round]] = Field(
        None,
        description="Intermediate rounds where NO keeps the candidate for a re-vote",
    )
    verdict_policy: Optional[VerdictPolicy] = Field(
        None, description="last_writer_wins or admin_override"
    )

    @field_validator("rounds", "reconsider_on_no", mode="before")
    @classmethod
    def normalize_rounds(cls, v):
        if isinstance(v, list):
            return [normalize_enum_name(r) for r in v]
        return v

    @field_validator("verdict_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def to_configuration(self, default_policy: VerdictPolicy) -> RoundConfiguration:
        return RoundConfiguration.build(
            rounds=[r.value for r in self.rounds],
            reconsider_on_no=[r.value for r in self.reconsider_on_no] if self.reconsider_on_no is not None else None,
            verdict_policy=(self.verdict_policy or default_policy).value,
        )


class CycleCreateRequest(CamelModel):
    """Schema for creating a recruiting cycle."""

    name: str = Field(..., min_length=1, max_length=255)
    form_url: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = Field(default=False, description="Make this the active cycle")
    round_config: Optional[RoundConfigSchema] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v


class CycleUpdateRequest(CamelModel):
    """Schema for updating a cycle. The round configuration is fixed at creation."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    form_url: Optional[str] = Field(None, max_length=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def name_not_null(cls, v):
        if v is None:
            raise ValueError("Cycle name cannot be null")
        if isinstance(v, str):
            return v.strip()
        return v


class CycleResponse(TimestampMixin):
    """Schema for recruiting cycle response."""

    id: int
    name: str
    form_url: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool
    closed_at: Optional[datetime] = None
    round_config: RoundConfigSchema


class CycleStatsResponse(CamelModel):
    """Application counts of a cycle."""

    cycle_id: int
    cycle_name: str
    total: int
    by_round: dict[str, int]
    by_outcome: dict[str, int]
