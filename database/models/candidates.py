from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    DateTime,
    func,
)
from database.engine import Base, BigIntPK
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applications import Application


class Candidate(Base):
    """
    A person applying to the organization.

    Identity fields are set at creation and never updated; candidates with
    applications are never deleted.
    """

    __tablename__: str = "candidates"
    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    student_id: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    applications: Mapped[list["Application"]] = relationship(
        "Application", back_populates="candidate"
    )
