"""FastAPI application: entry point for the venue reservation service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from campus_scheduler.core.config import settings
from campus_scheduler.core.exceptions import SchedulerError
from campus_scheduler.core.logging_config import setup_logging
from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.handlers import HandlerRegistry
from campus_scheduler.domain.models import (
    AudienceMember,
    ConflictResponse,
    Notification,
    Reservation,
    ReservationProposal,
    TickResponse,
    TimelineEntry,
)
from campus_scheduler.repos.memory import (
    AudienceDirectory,
    NotificationRepository,
    ReservationRepository,
    TimelineRepository,
)
from campus_scheduler.services.notifications import NotificationFanout
from campus_scheduler.services.scheduling import SchedulingService

setup_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
reservation_repo = ReservationRepository(lock_timeout=settings.lock_timeout_seconds)
timeline_repo = TimelineRepository()
notification_repo = NotificationRepository()
audience_directory = AudienceDirectory()

fanout = NotificationFanout(
    directory=audience_directory,
    notification_repo=notification_repo,
    default_roles=settings.notify_roles,
)
handler_registry = HandlerRegistry(
    bus=event_bus,
    reservation_repo=reservation_repo,
    timeline_repo=timeline_repo,
    fanout=fanout,
)
scheduling_service = SchedulingService(repo=reservation_repo, bus=event_bus)

_STATUS_BY_CODE = {
    "INVALID_INTERVAL": 400,
    "INVALID_REQUEST": 400,
    "NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "STORE_UNAVAILABLE": 503,
}


@app.exception_handler(SchedulerError)
async def scheduler_error_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    status_code = _STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# ── Routes ────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post(
    "/reservations",
    status_code=201,
    response_model=Reservation,
    responses={409: {"model": ConflictResponse}},
)
def create_reservation(payload: ReservationProposal, response: Response):
    """Admit a reservation, or answer 409 with every clashing reservation."""
    result = scheduling_service.propose(payload)
    if not result.admitted:
        body = ConflictResponse(conflicts=result.conflicts)
        return JSONResponse(status_code=409, content=body.model_dump(mode="json"))
    if result.replayed:
        response.status_code = 200
    return result.reservation


@app.get("/reservations", response_model=list[Reservation])
def list_reservations() -> list[Reservation]:
    """Return all reservations sorted by start time."""
    return reservation_repo.list_all()


@app.get("/reservations/{reservation_id}", response_model=Reservation)
def get_reservation(reservation_id: str) -> Reservation:
    return scheduling_service.get(reservation_id)


@app.post("/reservations/{reservation_id}/cancel", response_model=Reservation)
def cancel_reservation(reservation_id: str) -> Reservation:
    """Cancel a reservation; repeating the call is harmless."""
    return scheduling_service.cancel(reservation_id)


@app.get("/reservations/{reservation_id}/timeline", response_model=list[TimelineEntry])
def get_timeline(reservation_id: str) -> list[TimelineEntry]:
    scheduling_service.get(reservation_id)
    return timeline_repo.list_for_reservation(reservation_id)


@app.get("/resources/{resource_key}/reservations", response_model=list[Reservation])
def list_for_resource(
    resource_key: str,
    start: datetime | None = None,
    end: datetime | None = None,
    include_cancelled: bool = False,
) -> list[Reservation]:
    return scheduling_service.list_for_resource(
        resource_key, start, end, include_cancelled=include_cancelled
    )


@app.post("/tick", response_model=TickResponse)
def tick(now: datetime | None = None) -> TickResponse:
    """Advance the simulated clock and roll reservation statuses forward.

    Defaults to ``datetime.now(timezone.utc)`` when *now* is omitted.
    """
    current_time = now or datetime.now(timezone.utc)
    changed = scheduling_service.advance_statuses(current_time)
    return TickResponse(time=current_time, changed=changed)


@app.post("/users", status_code=201, response_model=AudienceMember)
def register_user(member: AudienceMember) -> AudienceMember:
    audience_directory.add(member)
    return member


@app.get("/users/{user_id}/notifications", response_model=list[Notification])
def list_notifications(user_id: str) -> list[Notification]:
    return notification_repo.list_for_user(user_id)
