"""Admission of venue reservations: validate, check for clashes, store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from campus_scheduler.core.exceptions import (
    InvalidInterval,
    InvalidRequest,
    InvalidStatusTransition,
    ReservationNotFound,
)
from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.events import (
    ReservationCancelled,
    ReservationCreated,
    ReservationStatusChanged,
)
from campus_scheduler.domain.models import (
    ConflictEntry,
    Interval,
    ProposalResult,
    Reservation,
    ReservationProposal,
    ReservationStatus,
    as_utc,
)
from campus_scheduler.repos.memory import ReservationRepository

logger = logging.getLogger(__name__)


def _detached(reservation: Reservation) -> Reservation:
    """Copy handed to callers; stored state only changes through the repository."""
    return reservation.model_copy(deep=True)


class SchedulingService:
    """Orchestrates proposals and cancellations against a ``ReservationRepository``.

    The check-then-insert step is delegated to the repository's atomic
    ``insert_if_no_conflict``; this class only validates input, translates
    outcomes and publishes domain events after a change is committed.
    """

    def __init__(self, repo: ReservationRepository, bus: EventBus) -> None:
        self.repo = repo
        self.bus = bus

    def propose(self, proposal: ReservationProposal) -> ProposalResult:
        """Admit *proposal* or return every reservation it clashes with.

        Raises ``InvalidInterval`` / ``InvalidRequest`` before touching the
        store when the input is malformed.
        """
        if proposal.start >= proposal.end:
            raise InvalidInterval(proposal.start, proposal.end)
        if not proposal.resource_key:
            raise InvalidRequest("resource_key")
        if not proposal.owner_id:
            raise InvalidRequest("owner_id")

        candidate = Reservation(
            interval=Interval(
                resource_key=proposal.resource_key,
                start=proposal.start,
                end=proposal.end,
            ),
            owner_id=proposal.owner_id,
            metadata=dict(proposal.metadata),
            idempotency_key=proposal.idempotency_key,
        )
        outcome = self.repo.insert_if_no_conflict(candidate)

        if outcome.stored is None:
            logger.info(
                "Rejected proposal on %s [%s, %s): %d conflict(s)",
                proposal.resource_key,
                proposal.start.isoformat(),
                proposal.end.isoformat(),
                len(outcome.conflicts),
            )
            return ProposalResult(
                conflicts=[ConflictEntry.from_reservation(c) for c in outcome.conflicts]
            )

        if outcome.replayed:
            logger.info(
                "Replayed reservation %s for idempotency key %s",
                outcome.stored.id,
                proposal.idempotency_key,
            )
            return ProposalResult(reservation=_detached(outcome.stored), replayed=True)

        logger.info(
            "Admitted reservation %s on %s [%s, %s)",
            outcome.stored.id,
            outcome.stored.resource_key,
            outcome.stored.start.isoformat(),
            outcome.stored.end.isoformat(),
        )
        self.bus.publish(ReservationCreated(reservation_id=outcome.stored.id))
        return ProposalResult(reservation=_detached(outcome.stored))

    def cancel(self, reservation_id: str) -> Reservation:
        """Cancel a reservation. Cancelling an already-cancelled one is a no-op."""
        change = self.repo.mark_cancelled(reservation_id)
        if change.changed:
            logger.info("Cancelled reservation %s", reservation_id)
            self.bus.publish(ReservationCancelled(reservation_id=reservation_id))
        return _detached(change.reservation)

    def get(self, reservation_id: str) -> Reservation:
        reservation = self.repo.get(reservation_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)
        return _detached(reservation)

    def list_for_resource(
        self,
        resource_key: str,
        start: datetime | None = None,
        end: datetime | None = None,
        include_cancelled: bool = False,
    ) -> list[Reservation]:
        """Reservations on *resource_key* overlapping the range, sorted by start."""
        if start is not None:
            start = as_utc(start)
        if end is not None:
            end = as_utc(end)
        if start is not None and end is not None and start >= end:
            raise InvalidInterval(start, end)
        found = self.repo.query_by_resource_and_range(
            resource_key, start, end, include_cancelled=include_cancelled
        )
        return [_detached(r) for r in found]

    def advance_statuses(self, now: datetime | None = None) -> list[str]:
        """Roll reservations forward by the clock; return ids whose status changed.

        scheduled -> ongoing once started, scheduled|ongoing -> completed once ended.
        """
        now = as_utc(now or datetime.now(timezone.utc))
        changed: list[str] = []
        for reservation in self.repo.list_active():
            if reservation.end <= now:
                target = ReservationStatus.COMPLETED
            elif reservation.start <= now:
                target = ReservationStatus.ONGOING
            else:
                continue
            if reservation.status == target or reservation.status == ReservationStatus.COMPLETED:
                continue

            try:
                change = self.repo.update_status(reservation.id, target)
            except InvalidStatusTransition:
                # Cancelled between the listing and the update.
                continue
            if not change.changed:
                continue
            changed.append(reservation.id)
            self.bus.publish(
                ReservationStatusChanged(
                    reservation_id=reservation.id,
                    previous=change.previous,
                    current=target,
                )
            )

        if changed:
            logger.info("Status rollover at %s changed %d reservation(s)", now.isoformat(), len(changed))
        return changed
