"""
Transition Ledger

Append-only audit of every state change applied to an application. The
latest record per (application, round) also marks which decisions were
consumed, so a reconsidered application is only re-evaluated on new votes.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    DateTime,
    func,
    JSON,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, BigIntPK
from core.workflow.rounds import Outcome, Round, Verdict
from core.workflow.state_machine import TransitionKind
from datetime import datetime


class TransitionRecord(Base):
    """One applied transition."""

    __tablename__: str = "transition_records"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    application_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("applications.id", ondelete="RESTRICT"), nullable=False
    )
    kind: Mapped[TransitionKind] = mapped_column(
        SQLEnum(TransitionKind, native_enum=False, length=50), nullable=False
    )
    from_round: Mapped[Round] = mapped_column(
        SQLEnum(Round, native_enum=False, length=50), nullable=False
    )
    to_round: Mapped[Round] = mapped_column(
        SQLEnum(Round, native_enum=False, length=50), nullable=False
    )
    outcome: Mapped[Outcome] = mapped_column(
        SQLEnum(Outcome, native_enum=False, length=50), nullable=False
    )
    verdict: Mapped[Verdict | None] = mapped_column(
        SQLEnum(Verdict, native_enum=False, length=50)
    )
    batch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Decisions considered, plus the highest of them as the re-vote watermark
    decision_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    last_decision_id: Mapped[int | None] = mapped_column(BigInteger)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_transition_application_round", "application_id", "from_round", "id"),
    )
