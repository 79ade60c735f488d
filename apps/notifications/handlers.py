"""Message-bus subscribers turning booking events into notifications.

Who hears about what:

- booking_requested: the host
- booking_confirmed: the guest, and the host too on instant book
- booking_declined: the guest
- booking_cancelled: the party that did not cancel
- booking_completed: the guest
"""

from __future__ import annotations

import logging
from typing import Callable

from apps.bookings.domain.events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingDeclined,
    BookingEvent,
    BookingRequested,
)
from shared.application.message_bus import MessageBus

from .services import AbstractNotifier

logger = logging.getLogger(__name__)


def recipients_for(event: BookingEvent) -> list[str]:
    if isinstance(event, BookingRequested):
        return [event.host_id]
    if isinstance(event, BookingConfirmed):
        return [event.guest_id, event.host_id] if event.instant else [event.guest_id]
    if isinstance(event, BookingCancelled):
        return [event.host_id] if event.cancelled_by == 'guest' else [event.guest_id]
    if isinstance(event, (BookingDeclined, BookingCompleted)):
        return [event.guest_id]
    return []


def notification_handler(notifier: AbstractNotifier) -> Callable[[BookingEvent], None]:
    def notify_parties(event: BookingEvent) -> None:
        payload = event.to_dict()
        for user_id in recipients_for(event):
            notifier.notify(user_id, event.name, payload)

    notify_parties.__name__ = f"notify_parties[{type(notifier).__name__}]"
    return notify_parties


def register_handlers(bus: MessageBus, notifier: AbstractNotifier) -> Callable[[BookingEvent], None]:
    """Subscribe ``notifier`` to every booking event on ``bus``."""

    handler = notification_handler(notifier)
    for event_type in (BookingRequested, BookingConfirmed, BookingDeclined, BookingCancelled, BookingCompleted):
        bus.register_event_handler(event_type, handler)
    logger.debug(f"Booking notifications routed to {type(notifier).__name__}")
    return handler
