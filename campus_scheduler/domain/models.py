"""Domain models for venue reservations."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ReservationStatus(StrEnum):
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed moves; cancelled and completed are terminal.
ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.SCHEDULED: frozenset(
        {ReservationStatus.ONGOING, ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.ONGOING: frozenset(
        {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}


class TimelineEntryType(StrEnum):
    CREATED = "created"
    CANCELLED = "cancelled"
    STATUS_CHANGED = "status_changed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so every comparison is between aware values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Interval(BaseModel):
    """A half-open time range ``[start, end)`` on one resource (e.g. a venue)."""

    model_config = ConfigDict(frozen=True)

    resource_key: str
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _normalize_tz(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def _start_before_end(self) -> Interval:
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class Reservation(BaseModel):
    id: str = Field(default_factory=_new_id)
    interval: Interval
    owner_id: str
    status: ReservationStatus = ReservationStatus.SCHEDULED
    metadata: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def resource_key(self) -> str:
        return self.interval.resource_key

    @property
    def start(self) -> datetime:
        return self.interval.start

    @property
    def end(self) -> datetime:
        return self.interval.end

    @property
    def title(self) -> str | None:
        title = self.metadata.get("title")
        return str(title) if title is not None else None

    @property
    def is_active(self) -> bool:
        return self.status != ReservationStatus.CANCELLED


class ConflictEntry(BaseModel):
    """What a rejected proposer is shown about one clashing reservation."""

    id: str
    title: str | None = None
    start: datetime
    end: datetime

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> ConflictEntry:
        return cls(
            id=reservation.id,
            title=reservation.title,
            start=reservation.start,
            end=reservation.end,
        )


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    reservation_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)


class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    text: str
    type: str = "info"
    category: str = "event"
    link: str | None = None
    reservation_id: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
    read: bool = False


class AudienceMember(BaseModel):
    user_id: str
    role: str


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ReservationProposal(BaseModel):
    """Input to ``SchedulingService.propose``.

    ``resource_key`` and ``owner_id`` default to empty so that a missing value
    is reported by the service as ``InvalidRequest`` rather than a schema error.
    """

    resource_key: str = ""
    start: datetime
    end: datetime
    owner_id: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = None

    @field_validator("start", "end")
    @classmethod
    def _normalize_tz(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("resource_key", "owner_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class ProposalResult(BaseModel):
    """Outcome of a proposal: either an admitted reservation or the full conflict set."""

    reservation: Reservation | None = None
    conflicts: list[ConflictEntry] = Field(default_factory=list)
    replayed: bool = False

    @property
    def admitted(self) -> bool:
        return self.reservation is not None


class ConflictResponse(BaseModel):
    error: str = "Conflict detected"
    conflicts: list[ConflictEntry]


class TickResponse(BaseModel):
    time: datetime
    changed: list[str]
