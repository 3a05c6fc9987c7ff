"""Fan-out of reservation notifications to the interested audience."""

from __future__ import annotations

import logging
from typing import Literal

from campus_scheduler.domain.models import Notification, Reservation
from campus_scheduler.repos.memory import AudienceDirectory, NotificationRepository

logger = logging.getLogger(__name__)

FanoutEvent = Literal["created", "cancelled"]


def _audience_roles(reservation: Reservation, default_roles: list[str]) -> list[str]:
    audience = reservation.metadata.get("targetAudience")
    if isinstance(audience, str):
        audience = [audience]
    if audience:
        return [str(role) for role in audience]
    return list(default_roles)


def _link_for(reservation: Reservation) -> str:
    if reservation.metadata.get("eventType") == "exam":
        return "/student"
    return "/student/events"


def _text_for(reservation: Reservation, event_type: FanoutEvent) -> str:
    title = reservation.title or reservation.resource_key
    day = reservation.start.date().isoformat()
    if event_type == "cancelled":
        return f"Event cancelled: {title} on {day}"
    return f"New event scheduled: {title} on {day}"


class NotificationFanout:
    """Creates one Notification per audience member for a committed reservation change."""

    def __init__(
        self,
        directory: AudienceDirectory,
        notification_repo: NotificationRepository,
        default_roles: list[str],
    ) -> None:
        self.directory = directory
        self.notification_repo = notification_repo
        self.default_roles = default_roles

    def notify(self, reservation: Reservation, event_type: FanoutEvent) -> list[Notification]:
        roles = _audience_roles(reservation, self.default_roles)
        recipients = [
            m for m in self.directory.with_roles(roles) if m.user_id != reservation.owner_id
        ]
        text = _text_for(reservation, event_type)
        link = _link_for(reservation)
        notifications = [
            Notification(
                user_id=member.user_id,
                text=text,
                link=link,
                reservation_id=reservation.id,
            )
            for member in recipients
        ]
        if notifications:
            self.notification_repo.add_many(notifications)
        logger.info(
            "Sent %d %s notification(s) for reservation %s",
            len(notifications),
            event_type,
            reservation.id,
        )
        return notifications
