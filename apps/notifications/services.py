"""Notification collaborator of the booking engine.

``notify(user_id, event, payload)`` is fire-and-forget: a failure to hand
the notification over is logged and never reaches the booking transition
that triggered it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


# ============================================================================
# MESSAGES
# ============================================================================

MESSAGES: dict[str, tuple[str, str]] = {
    "booking_requested": (
        "New booking request",
        "A guest requested your property for {check_in} - {check_out}.",
    ),
    "booking_confirmed": (
        "Booking confirmed",
        "The booking for {check_in} - {check_out} is confirmed.",
    ),
    "booking_declined": (
        "Booking request declined",
        "Your request for {check_in} - {check_out} was declined. You will not be charged.",
    ),
    "booking_cancelled": (
        "Booking cancelled",
        "The booking for {check_in} - {check_out} was cancelled by the {cancelled_by}. "
        "Refund: {refund_percent}% ({refund_amount}).",
    ),
    "booking_completed": (
        "How was your stay?",
        "Your stay of {check_in} - {check_out} has ended. Leave a review for your host.",
    ),
}


def render_notification(event: str, payload: dict[str, Any]) -> tuple[str, str]:
    """Title and message text for ``event``; unknown events get a generic text."""

    if event not in MESSAGES:
        return "Booking update", f"Booking {payload.get('booking_id', '')} was updated."

    title, template = MESSAGES[event]
    try:
        return title, template.format(**payload)
    except KeyError as exc:
        logger.warning(f"Notification payload for {event} misses {exc}")
        return title, template.split(".")[0] + "."


# ============================================================================
# NOTIFIERS
# ============================================================================


class AbstractNotifier(ABC):
    """Fire-and-forget delivery of a notification to one user."""

    @abstractmethod
    def notify(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        """Hand the notification over; never raises"""


class CeleryNotifier(AbstractNotifier):
    """Queues ``deliver_notification`` on the Celery broker."""

    def notify(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        from .tasks import deliver_notification

        try:
            deliver_notification.delay(user_id, event, payload)
        except Exception as exc:
            logger.error(
                f"Failed to queue {event} notification for user {user_id}: {exc}",
                exc_info=True,
            )


class InMemoryNotifier(AbstractNotifier):
    """Keeps notifications in a list, for embedders without a broker."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def notify(self, user_id: str, event: str, payload: dict[str, Any]) -> None:
        self.sent.append((user_id, event, payload))

    def for_user(self, user_id: str) -> list[tuple[str, dict[str, Any]]]:
        return [(event, payload) for uid, event, payload in self.sent if uid == user_id]
