"""ORM models. Importing this package registers every table on Base.metadata."""

from database.models.users import User, UserRole
from database.models.cycles import RecruitingCycle
from database.models.candidates import Candidate
from database.models.applications import Application
from database.models.decisions import Decision
from database.models.transitions import TransitionRecord
from database.models.notifications import DeliveryStatus, NotificationDelivery

__all__ = [
    "Application",
    "Candidate",
    "Decision",
    "DeliveryStatus",
    "NotificationDelivery",
    "RecruitingCycle",
    "TransitionRecord",
    "User",
    "UserRole",
]
