"""Per-resource index of active reservations, ordered by start time."""

from __future__ import annotations

from bisect import bisect_left, insort
from datetime import datetime

from campus_scheduler.domain.models import Interval, Reservation


def _start(reservation: Reservation) -> datetime:
    return reservation.start


class ConflictIndex:
    """Sorted-by-start list of active reservations for each resource key.

    Entries on one key never overlap (the store only admits through a conflict
    check), so their ends ascend along with their starts. A lookup bisects to
    the last entry starting before the candidate ends and walks backwards until
    an entry ends at or before the candidate starts.
    """

    def __init__(self) -> None:
        self._by_resource: dict[str, list[Reservation]] = {}

    def add(self, reservation: Reservation) -> None:
        entries = self._by_resource.setdefault(reservation.resource_key, [])
        insort(entries, reservation, key=_start)

    def remove(self, reservation: Reservation) -> None:
        entries = self._by_resource.get(reservation.resource_key)
        if not entries:
            return
        self._by_resource[reservation.resource_key] = [
            r for r in entries if r.id != reservation.id
        ]
        if not self._by_resource[reservation.resource_key]:
            del self._by_resource[reservation.resource_key]

    def find_conflicts(self, interval: Interval) -> list[Reservation]:
        """Return every indexed reservation overlapping *interval*, by start ascending."""
        entries = self._by_resource.get(interval.resource_key, [])
        found: list[Reservation] = []
        i = bisect_left(entries, interval.end, key=_start) - 1
        while i >= 0 and entries[i].end > interval.start:
            found.append(entries[i])
            i -= 1
        found.reverse()
        return found

    def in_range(
        self,
        resource_key: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Reservation]:
        """Entries on *resource_key* overlapping ``[start, end)``; open bounds allowed."""
        entries = self._by_resource.get(resource_key, [])
        return [
            r
            for r in entries
            if (end is None or r.start < end) and (start is None or start < r.end)
        ]

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._by_resource.values())

    def clear(self) -> None:
        self._by_resource.clear()
