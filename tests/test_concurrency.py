"""Concurrent admission: overlapping proposals on one venue have exactly one winner."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from campus_scheduler.core.exceptions import StoreUnavailable
from campus_scheduler.domain.models import ReservationProposal

_START = datetime(2024, 12, 10, 9, 0, tzinfo=timezone.utc)
_END = datetime(2024, 12, 10, 11, 0, tzinfo=timezone.utc)


def _slow_conflict_lookup(repo, delay: float = 0.05) -> None:
    """Widen the window between the conflict lookup and the insert."""
    original = repo._index.find_conflicts

    def slow(interval):
        found = original(interval)
        time.sleep(delay)
        return found

    repo._index.find_conflicts = slow


def _race(service, proposals):
    barrier = threading.Barrier(len(proposals))

    def run(proposal):
        barrier.wait()
        return service.propose(proposal)

    with ThreadPoolExecutor(max_workers=len(proposals)) as pool:
        return list(pool.map(run, proposals))


def test_race_has_exactly_one_winner(env):
    _slow_conflict_lookup(env.repo)
    proposals = [
        ReservationProposal(
            resource_key="Main Hall",
            start=_START,
            end=_END,
            owner_id=f"principal-{i}",
            metadata={"title": f"Event {i}"},
        )
        for i in range(2)
    ]

    results = _race(env.service, proposals)

    winners = [r for r in results if r.admitted]
    losers = [r for r in results if not r.admitted]
    assert len(winners) == 1 and len(losers) == 1
    assert [c.id for c in losers[0].conflicts] == [winners[0].reservation.id]
    assert len(env.repo.list_active()) == 1


def test_many_racers_on_many_venues(env):
    _slow_conflict_lookup(env.repo, delay=0.01)
    venues = ["A", "B", "C"]
    proposals = [
        ReservationProposal(resource_key=venue, start=_START, end=_END, owner_id=f"p{i}")
        for i in range(4)
        for venue in venues
    ]

    results = _race(env.service, proposals)

    assert sum(r.admitted for r in results) == len(venues)
    assert sorted(r.resource_key for r in env.repo.list_active()) == venues


def test_lock_timeout_surfaces_as_store_unavailable(env):
    env.repo.lock_timeout = 0.05
    proposal = ReservationProposal(
        resource_key="Main Hall", start=_START, end=_END, owner_id="principal-1"
    )

    with env.repo._resource_lock("Main Hall"):
        with pytest.raises(StoreUnavailable) as exc_info:
            env.service.propose(proposal)

    assert exc_info.value.details == {"resource_key": "Main Hall"}
    assert env.repo.list_all() == []


def test_same_idempotency_key_on_two_resources_admits_once(env):
    _slow_conflict_lookup(env.repo)
    proposals = [
        ReservationProposal(
            resource_key=venue,
            start=_START,
            end=_END,
            owner_id="principal-1",
            idempotency_key="req-1",
        )
        for venue in ("Main Hall", "Lab 2")
    ]

    results = _race(env.service, proposals)

    assert all(r.admitted for r in results)
    assert sorted(r.replayed for r in results) == [False, True]
    assert results[0].reservation.id == results[1].reservation.id
    assert len(env.repo.list_all()) == 1
    assert env.repo.get_by_idempotency_key("req-1").id == results[0].reservation.id
