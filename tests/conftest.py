"""Shared fixtures: a fresh bus, repositories and service per test."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from campus_scheduler.domain.bus import EventBus
from campus_scheduler.domain.handlers import HandlerRegistry
from campus_scheduler.repos.memory import (
    AudienceDirectory,
    NotificationRepository,
    ReservationRepository,
    TimelineRepository,
)
from campus_scheduler.services.notifications import NotificationFanout
from campus_scheduler.services.scheduling import SchedulingService


@pytest.fixture()
def env():
    bus = EventBus()
    repo = ReservationRepository(lock_timeout=2.0)
    timeline_repo = TimelineRepository()
    notification_repo = NotificationRepository()
    directory = AudienceDirectory()
    fanout = NotificationFanout(
        directory=directory,
        notification_repo=notification_repo,
        default_roles=["student", "teacher"],
    )
    registry = HandlerRegistry(
        bus=bus,
        reservation_repo=repo,
        timeline_repo=timeline_repo,
        fanout=fanout,
    )
    service = SchedulingService(repo=repo, bus=bus)
    return SimpleNamespace(
        bus=bus,
        repo=repo,
        timeline_repo=timeline_repo,
        notification_repo=notification_repo,
        directory=directory,
        fanout=fanout,
        registry=registry,
        service=service,
    )
