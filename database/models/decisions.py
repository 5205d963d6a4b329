from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    Boolean,
    ForeignKey,
    BigInteger,
    DateTime,
    func,
    Text,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, BigIntPK
from core.workflow.rounds import Round, Verdict
from datetime import datetime


class Decision(Base):
    """
    One reviewer's vote on an application in one round.

    Rows are never updated; a changed mind is a new row.
    """

    __tablename__: str = "decisions"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    application_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("applications.id", ondelete="RESTRICT"), nullable=False
    )
    round: Mapped[Round] = mapped_column(
        SQLEnum(Round, native_enum=False, length=50), nullable=False
    )
    reviewer_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    verdict: Mapped[Verdict] = mapped_column(
        SQLEnum(Verdict, native_enum=False, length=50), nullable=False
    )
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_decision_application_round", "application_id", "round", "id"),
    )
