"""Domain events emitted after a reservation change has been committed."""

from __future__ import annotations

from pydantic import BaseModel

from campus_scheduler.domain.models import ReservationStatus


class ReservationCreated(BaseModel):
    """Fired once a proposal has been admitted and stored."""

    reservation_id: str


class ReservationCancelled(BaseModel):
    """Fired when an active reservation is cancelled (not on repeat cancels)."""

    reservation_id: str


class ReservationStatusChanged(BaseModel):
    """Fired by the clock-driven rollover (scheduled -> ongoing -> completed)."""

    reservation_id: str
    previous: ReservationStatus
    current: ReservationStatus
