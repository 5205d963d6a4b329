"""
Domain error taxonomy.

Every error raised by the services layer derives from RecruitingError and
carries the HTTP status and machine-readable code used when it reaches the
API boundary.
"""

from typing import Any, Optional


class RecruitingError(Exception):
    """Base class for all recruiting domain errors."""

    status_code: int = 500
    code: str = "RECRUITING_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(RecruitingError):
    """Malformed request: unknown round, invalid verdict, missing reference."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NoActiveCycleError(ValidationError):
    """Raised when an operation needs the active recruiting cycle and none exists."""

    code = "NO_ACTIVE_CYCLE"

    def __init__(self, message: str = "No active recruiting cycle"):
        super().__init__(message)


class NoEligibleApplicationsError(ValidationError):
    """Raised when a batch finds no pending applications at the requested round."""

    code = "NO_ELIGIBLE_APPLICATIONS"


class NotFoundError(RecruitingError):
    """Referenced application, candidate, cycle or batch does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ConcurrencyConflict(RecruitingError):
    """The row changed since it was read, or the round lock is held elsewhere."""

    status_code = 409
    code = "CONCURRENCY_CONFLICT"


class NotificationDeliveryError(RecruitingError):
    """Email delivery failed. Never affects persisted state."""

    status_code = 502
    code = "NOTIFICATION_DELIVERY_FAILED"


class StorageError(RecruitingError):
    """A transaction or write failed."""

    status_code = 500
    code = "STORAGE_ERROR"


class InvalidTransitionInput(RecruitingError):
    """The state machine was called with a state it cannot evaluate.

    This is a programming error (unknown round, terminal application,
    missing configuration), never a user-facing validation problem.
    """

    status_code = 500
    code = "INVALID_TRANSITION_INPUT"
