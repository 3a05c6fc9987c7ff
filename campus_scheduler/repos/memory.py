"""In-memory repositories for reservations, timelines and notifications."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, NamedTuple

from campus_scheduler.core.exceptions import (
    InvalidStatusTransition,
    ReservationNotFound,
    StoreUnavailable,
)
from campus_scheduler.domain.models import (
    ALLOWED_TRANSITIONS,
    AudienceMember,
    Interval,
    Notification,
    Reservation,
    ReservationStatus,
    TimelineEntry,
)
from campus_scheduler.repos.index import ConflictIndex

logger = logging.getLogger(__name__)


class InsertOutcome(NamedTuple):
    """Result of ``insert_if_no_conflict``.

    Exactly one of ``stored`` / ``conflicts`` is meaningful: ``stored`` is set
    when the reservation was admitted (or replayed by idempotency key),
    otherwise ``conflicts`` lists every clashing active reservation.
    """

    stored: Reservation | None
    conflicts: list[Reservation]
    replayed: bool = False


class StatusChange(NamedTuple):
    reservation: Reservation
    previous: ReservationStatus
    changed: bool


class ReservationRepository:
    """Dict-backed reservation store with atomic conflict-checked inserts.

    Admission on a resource key is serialized by a per-key lock held across
    the conflict lookup and the insert, so two overlapping proposals can never
    both be stored. Different keys never share a lock.
    """

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self.lock_timeout = lock_timeout
        self._store: dict[str, Reservation] = {}
        self._index = ConflictIndex()
        self._by_idempotency_key: dict[str, Reservation] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._idempotency_guard = threading.Lock()

    @contextmanager
    def _resource_lock(self, resource_key: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(resource_key, threading.Lock())
        if not lock.acquire(timeout=self.lock_timeout):
            logger.error("Timed out waiting for lock on resource %s", resource_key)
            raise StoreUnavailable(
                "Timed out waiting for the reservation store",
                resource_key=resource_key,
            )
        try:
            yield
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_if_no_conflict(self, reservation: Reservation) -> InsertOutcome:
        key = reservation.idempotency_key
        with self._resource_lock(reservation.resource_key):
            if key is not None:
                replay = self._replay(key)
                if replay is not None:
                    return InsertOutcome(stored=replay, conflicts=[], replayed=True)

            conflicts = self._index.find_conflicts(reservation.interval)
            if conflicts:
                return InsertOutcome(stored=None, conflicts=conflicts)

            with self._idempotency_guard:
                # Key claim and store write are one step: another resource may be
                # admitting the same key under its own lock.
                if key is not None:
                    existing = self._by_idempotency_key.get(key)
                    if existing is not None:
                        return InsertOutcome(stored=existing, conflicts=[], replayed=True)
                    self._by_idempotency_key[key] = reservation
                self._store[reservation.id] = reservation
                self._index.add(reservation)
            return InsertOutcome(stored=reservation, conflicts=[])

    def update_status(
        self, reservation_id: str, status: ReservationStatus
    ) -> StatusChange:
        """Move a reservation to *status*, enforcing the allowed transitions.

        Setting the status a reservation already has is a no-op
        (``changed=False``). Cancelling drops it from conflict consideration
        before the lock is released.
        """
        reservation = self._store.get(reservation_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)

        with self._resource_lock(reservation.resource_key):
            previous = reservation.status
            if previous == status:
                return StatusChange(reservation, previous, changed=False)
            if status not in ALLOWED_TRANSITIONS[previous]:
                raise InvalidStatusTransition(reservation_id, previous, status)

            reservation.status = status
            reservation.updated_at = datetime.now(timezone.utc)
            if status == ReservationStatus.CANCELLED:
                self._index.remove(reservation)
            return StatusChange(reservation, previous, changed=True)

    def mark_cancelled(self, reservation_id: str) -> StatusChange:
        return self.update_status(reservation_id, ReservationStatus.CANCELLED)

    def clear(self) -> None:
        with self._locks_guard:
            self._store.clear()
            self._index.clear()
            self._by_idempotency_key.clear()
            self._locks.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _replay(self, idempotency_key: str) -> Reservation | None:
        with self._idempotency_guard:
            return self._by_idempotency_key.get(idempotency_key)

    def get(self, reservation_id: str) -> Reservation | None:
        return self._store.get(reservation_id)

    def get_by_idempotency_key(self, idempotency_key: str) -> Reservation | None:
        return self._replay(idempotency_key)

    def find_conflicts(self, interval: Interval) -> list[Reservation]:
        return self._index.find_conflicts(interval)

    def query_by_resource_and_range(
        self,
        resource_key: str,
        start: datetime | None = None,
        end: datetime | None = None,
        include_cancelled: bool = False,
    ) -> list[Reservation]:
        """Reservations on *resource_key* overlapping ``[start, end)``, by start ascending."""
        if not include_cancelled:
            return self._index.in_range(resource_key, start, end)
        return sorted(
            (
                r
                for r in self._store.values()
                if r.resource_key == resource_key
                and (end is None or r.start < end)
                and (start is None or start < r.end)
            ),
            key=lambda r: (r.start, r.created_at),
        )

    def list_all(self) -> list[Reservation]:
        return sorted(self._store.values(), key=lambda r: (r.start, r.created_at))

    def list_active(self) -> list[Reservation]:
        return [r for r in self.list_all() if r.is_active]


class TimelineRepository:
    """List-backed store for TimelineEntry instances."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []

    def add(self, entry: TimelineEntry) -> None:
        self._entries.append(entry)

    def list_for_reservation(self, reservation_id: str) -> list[TimelineEntry]:
        return sorted(
            [e for e in self._entries if e.reservation_id == reservation_id],
            key=lambda e: e.timestamp,
        )

    def clear(self) -> None:
        self._entries.clear()


class NotificationRepository:
    """List-backed store for Notification instances."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add_many(self, notifications: list[Notification]) -> None:
        self._items.extend(notifications)

    def list_for_user(self, user_id: str) -> list[Notification]:
        return sorted(
            [n for n in self._items if n.user_id == user_id],
            key=lambda n: n.timestamp,
            reverse=True,
        )

    def list_for_reservation(self, reservation_id: str) -> list[Notification]:
        return [n for n in self._items if n.reservation_id == reservation_id]

    def clear(self) -> None:
        self._items.clear()


class AudienceDirectory:
    """Who may be notified, keyed by user id."""

    def __init__(self) -> None:
        self._members: dict[str, AudienceMember] = {}

    def add(self, member: AudienceMember) -> None:
        self._members[member.user_id] = member

    def with_roles(self, roles: list[str]) -> list[AudienceMember]:
        wanted = set(roles)
        return [m for m in self._members.values() if m.role in wanted]

    def clear(self) -> None:
        self._members.clear()
