"""
Scheduler exceptions.

Each carries a stable ``code`` so the API layer can map it to a status code
without inspecting messages. A detected conflict is *not* an exception: it is
an ordinary outcome of ``SchedulingService.propose`` (see ``ProposalResult``).

Usage:
    from campus_scheduler.core.exceptions import ReservationNotFound

    if reservation is None:
        raise ReservationNotFound(reservation_id)
"""

from __future__ import annotations

from typing import Any


class SchedulerError(Exception):
    """Base exception for all scheduler errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# ============================================
# Caller errors (fix the input and resubmit)
# ============================================


class InvalidInterval(SchedulerError):
    """start is not strictly before end"""

    def __init__(self, start: Any, end: Any):
        super().__init__(
            "start must be before end",
            code="INVALID_INTERVAL",
            details={"start": str(start), "end": str(end)},
        )


class InvalidRequest(SchedulerError):
    """A required field is missing or blank"""

    def __init__(self, field: str):
        super().__init__(
            f"{field} must not be empty",
            code="INVALID_REQUEST",
            details={"field": field},
        )


class ReservationNotFound(SchedulerError):
    def __init__(self, reservation_id: str):
        super().__init__(
            f"Reservation not found: {reservation_id}",
            code="NOT_FOUND",
            details={"reservation_id": reservation_id},
        )


class InvalidStatusTransition(SchedulerError):
    """The reservation's current status does not allow the requested change"""

    def __init__(self, reservation_id: str, current: str, target: str):
        super().__init__(
            f"Cannot move reservation {reservation_id} from {current} to {target}",
            code="INVALID_TRANSITION",
            details={
                "reservation_id": reservation_id,
                "current": current,
                "target": target,
            },
        )


# ============================================
# Infrastructure errors (retryable)
# ============================================


class StoreUnavailable(SchedulerError):
    """The backing store could not serve the request"""

    def __init__(self, message: str = "Reservation store unavailable", resource_key: str | None = None):
        details = {"resource_key": resource_key} if resource_key else {}
        super().__init__(message, code="STORE_UNAVAILABLE", details=details)
