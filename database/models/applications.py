"""
Application Models

One candidate's participation in one recruiting cycle. The round and outcome
columns are only ever written by the advancement orchestrator, guarded by
the ``version`` counter.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    ForeignKey,
    BigInteger,
    Integer,
    DateTime,
    func,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, BigIntPK
from core.workflow.rounds import Outcome, Round
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.candidates import Candidate
    from database.models.cycles import RecruitingCycle


class Application(Base):
    """A candidate's application within one recruiting cycle."""

    __tablename__: str = "applications"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    candidate_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False
    )
    cycle_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("recruiting_cycles.id", ondelete="RESTRICT"), nullable=False
    )

    current_round: Mapped[Round] = mapped_column(
        SQLEnum(Round, native_enum=False, length=50),
        nullable=False,
        default=Round.RESUME_REVIEW,
    )
    outcome: Mapped[Outcome] = mapped_column(
        SQLEnum(Outcome, native_enum=False, length=50),
        nullable=False,
        default=Outcome.PENDING,
    )
    # Optimistic concurrency counter, bumped by every transition
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    candidate: Mapped["Candidate"] = relationship("Candidate", back_populates="applications")
    cycle: Mapped["RecruitingCycle"] = relationship("RecruitingCycle")

    __table_args__ = (
        UniqueConstraint("candidate_id", "cycle_id", name="uq_application_candidate_cycle"),
        Index("idx_application_cycle_round", "cycle_id", "current_round", "outcome"),
    )
