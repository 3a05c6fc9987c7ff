"""Overlap rules for reservations competing for the same resource."""

from __future__ import annotations

from typing import Iterable

from campus_scheduler.domain.models import Interval, Reservation


def overlaps(a: Interval, b: Interval) -> bool:
    """Return True if *a* and *b* clash.

    Intervals on different resources never clash. On the same resource the
    rule is half-open: conflict if a.start < b.end AND b.start < a.end, so
    exact boundary touches (a.end == b.start) are NOT conflicts.
    """
    if a.resource_key != b.resource_key:
        return False
    return a.start < b.end and b.start < a.end


def find_conflicts(
    candidate: Interval,
    existing: Iterable[Reservation],
) -> list[Reservation]:
    """Return every active reservation in *existing* that clashes with *candidate*.

    Linear scan; ``ConflictIndex`` is the sorted equivalent used by the store.
    """
    return [
        reservation
        for reservation in existing
        if reservation.is_active and overlaps(candidate, reservation.interval)
    ]
