"""Celery tasks of the notifications app."""

from __future__ import annotations

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name="notifications.deliver_notification")
def deliver_notification(user_id: str, event: str, payload: dict) -> int:
    """Store an in-app notification for ``user_id``; returns its id."""

    from .models import Notification
    from .services import render_notification

    title, message = render_notification(event, payload)
    notification = Notification.objects.create(
        user_id=user_id,
        event=event,
        title=title,
        message=message,
        payload=payload,
    )
    logger.info(f"Delivered {event} notification {notification.pk} to user {user_id}")
    return notification.pk
