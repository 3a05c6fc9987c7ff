"""Tests for the event bus lifecycle: timeline and notification fan-out."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.events import ReservationCreated
from campus_scheduler.domain.models import (
    AudienceMember,
    ReservationProposal,
    TimelineEntryType,
)

_START = datetime(2024, 12, 10, 9, 0, tzinfo=timezone.utc)
_END = datetime(2024, 12, 10, 11, 0, tzinfo=timezone.utc)


def _seed_audience(env) -> None:
    for user_id, role in [
        ("s1", "student"),
        ("s2", "student"),
        ("t1", "teacher"),
        ("h1", "hod"),
        ("principal-1", "principal"),
    ]:
        env.directory.add(AudienceMember(user_id=user_id, role=role))


def _propose(env, **metadata):
    return env.service.propose(
        ReservationProposal(
            resource_key="Main Hall",
            start=_START,
            end=_END,
            owner_id="principal-1",
            metadata={"title": "Seminar", **metadata},
        )
    )


# ---------------------------------------------------------------------------
# Timeline entries
# ---------------------------------------------------------------------------


def test_created_cancelled_and_rollover_timeline(env):
    reservation = _propose(env).reservation
    env.service.advance_statuses(datetime(2024, 12, 10, 10, 0, tzinfo=timezone.utc))
    env.service.cancel(reservation.id)

    entries = env.timeline_repo.list_for_reservation(reservation.id)
    assert [e.type for e in entries] == [
        TimelineEntryType.CREATED,
        TimelineEntryType.STATUS_CHANGED,
        TimelineEntryType.CANCELLED,
    ]
    assert entries[0].payload["resource_key"] == "Main Hall"
    assert entries[1].payload == {"previous": "scheduled", "current": "ongoing"}


def test_rejected_proposal_leaves_no_trace(env):
    _seed_audience(env)
    _propose(env)
    rejected = _propose(env)

    assert not rejected.admitted
    assert len(env.notification_repo.list_for_user("s1")) == 1


# ---------------------------------------------------------------------------
# Notification fan-out
# ---------------------------------------------------------------------------


def test_created_notifies_students_and_teachers_by_default(env):
    _seed_audience(env)
    reservation = _propose(env).reservation

    notified = {n.user_id for n in env.notification_repo.list_for_reservation(reservation.id)}
    assert notified == {"s1", "s2", "t1"}

    note = env.notification_repo.list_for_user("s1")[0]
    assert note.text == "New event scheduled: Seminar on 2024-12-10"
    assert note.link == "/student/events"
    assert note.category == "event"
    assert note.read is False


def test_target_audience_narrows_fanout(env):
    _seed_audience(env)
    reservation = _propose(env, targetAudience=["hod"], eventType="exam").reservation

    notes = env.notification_repo.list_for_reservation(reservation.id)
    assert [n.user_id for n in notes] == ["h1"]
    assert notes[0].link == "/student"


def test_owner_is_not_notified(env):
    _seed_audience(env)
    _propose(env, targetAudience=["principal", "teacher"])

    assert env.notification_repo.list_for_user("principal-1") == []
    assert len(env.notification_repo.list_for_user("t1")) == 1


def test_cancel_notifies_once(env):
    _seed_audience(env)
    reservation = _propose(env).reservation

    env.service.cancel(reservation.id)
    env.service.cancel(reservation.id)

    texts = [n.text for n in env.notification_repo.list_for_user("t1")]
    assert sorted(texts) == [
        "Event cancelled: Seminar on 2024-12-10",
        "New event scheduled: Seminar on 2024-12-10",
    ]


def test_fanout_failure_does_not_undo_admission(env, monkeypatch):
    _seed_audience(env)

    def boom(*args, **kwargs):
        raise RuntimeError("notification store down")

    monkeypatch.setattr(env.notification_repo, "add_many", boom)

    result = _propose(env)

    assert result.admitted
    assert env.repo.get(result.reservation.id) is not None
    entries = env.timeline_repo.list_for_reservation(result.reservation.id)
    assert [e.type for e in entries] == [TimelineEntryType.CREATED]


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------


def test_bus_keeps_calling_handlers_after_a_failure(caplog, monkeypatch):
    # setup_logging() stops propagation; caplog listens on the root logger.
    monkeypatch.setattr(logging.getLogger("campus_scheduler"), "propagate", True)
    bus = EventBus()
    seen = []

    def broken(event):
        raise ValueError("boom")

    bus.subscribe(ReservationCreated, broken)
    bus.subscribe(ReservationCreated, seen.append)

    bus.publish(ReservationCreated(reservation_id="r1"))

    assert [e.reservation_id for e in seen] == ["r1"]
    assert "failed for ReservationCreated" in caplog.text
