from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    BigInteger,
    Integer,
    DateTime,
    func,
    Text,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base, BigIntPK
from core.workflow.rounds import NotificationKind
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Delivery Status ===================== #
class DeliveryStatus(str, PyEnum):
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationDelivery(Base):
    """Outcome of delivering one candidate notification."""

    __tablename__: str = "notification_deliveries"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    application_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("applications.id", ondelete="RESTRICT"), nullable=False
    )
    transition_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("transition_records.id", ondelete="SET NULL")
    )
    kind: Mapped[NotificationKind] = mapped_column(
        SQLEnum(NotificationKind, native_enum=False, length=50), nullable=False
    )
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(DeliveryStatus, native_enum=False, length=20), nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    last_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_delivery_status", "status"),
        Index("idx_delivery_application", "application_id"),
    )
