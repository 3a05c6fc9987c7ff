"""Domain event handlers, wired up at application startup."""

from __future__ import annotations

from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.events import (
    ReservationCancelled,
    ReservationCreated,
    ReservationStatusChanged,
)
from campus_scheduler.domain.models import TimelineEntry, TimelineEntryType
from campus_scheduler.repos.memory import ReservationRepository, TimelineRepository
from campus_scheduler.services.notifications import NotificationFanout


class HandlerRegistry:
    """Wires timeline and notification handlers to the bus."""

    def __init__(
        self,
        bus: EventBus,
        reservation_repo: ReservationRepository,
        timeline_repo: TimelineRepository,
        fanout: NotificationFanout,
    ) -> None:
        self.bus = bus
        self.reservation_repo = reservation_repo
        self.timeline_repo = timeline_repo
        self.fanout = fanout
        self._register()

    def _register(self) -> None:
        # Timeline first so it is recorded even if fan-out fails.
        self.bus.subscribe(ReservationCreated, self.on_created_timeline)
        self.bus.subscribe(ReservationCreated, self.on_created_notify)
        self.bus.subscribe(ReservationCancelled, self.on_cancelled_timeline)
        self.bus.subscribe(ReservationCancelled, self.on_cancelled_notify)
        self.bus.subscribe(ReservationStatusChanged, self.on_status_changed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_created_timeline(self, event: ReservationCreated) -> None:
        stored = self.reservation_repo.get(event.reservation_id)
        if stored is None:
            return
        self.timeline_repo.add(
            TimelineEntry(
                reservation_id=stored.id,
                type=TimelineEntryType.CREATED,
                payload={
                    "resource_key": stored.resource_key,
                    "start": stored.start.isoformat(),
                    "end": stored.end.isoformat(),
                    "owner_id": stored.owner_id,
                },
            )
        )

    def on_created_notify(self, event: ReservationCreated) -> None:
        stored = self.reservation_repo.get(event.reservation_id)
        if stored is None:
            return
        self.fanout.notify(stored, "created")

    def on_cancelled_timeline(self, event: ReservationCancelled) -> None:
        if self.reservation_repo.get(event.reservation_id) is None:
            return
        self.timeline_repo.add(
            TimelineEntry(
                reservation_id=event.reservation_id, type=TimelineEntryType.CANCELLED
            )
        )

    def on_cancelled_notify(self, event: ReservationCancelled) -> None:
        stored = self.reservation_repo.get(event.reservation_id)
        if stored is None:
            return
        self.fanout.notify(stored, "cancelled")

    def on_status_changed(self, event: ReservationStatusChanged) -> None:
        if self.reservation_repo.get(event.reservation_id) is None:
            return
        self.timeline_repo.add(
            TimelineEntry(
                reservation_id=event.reservation_id,
                type=TimelineEntryType.STATUS_CHANGED,
                payload={"previous": event.previous, "current": event.current},
            )
        )
