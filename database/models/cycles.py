"""
Recruiting Cycle Models

A recruiting cycle is one admission season. Exactly one cycle is active at a
time and owns the round configuration its applications move through.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    func,
    JSON,
    Index,
)
from database.engine import Base, BigIntPK
from core.workflow.rounds import RoundConfiguration
from datetime import datetime
from typing import Any


class RecruitingCycle(Base):
    """One admission season with its round configuration."""

    __tablename__: str = "recruiting_cycles"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    form_url: Mapped[str | None] = mapped_column(String(1000))
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Written once at creation, see RoundConfiguration.to_dict
    round_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (Index("idx_cycle_active", "is_active"),)

    @property
    def configuration(self) -> RoundConfiguration:
        return RoundConfiguration.from_dict(self.round_config)
