"""Notification model.

Stores the in-app notifications the booking engine sends to guests and
hosts after a booking changes status. Rows are written by the
``deliver_notification`` Celery task; recipients are opaque user ids
handed to the engine by the identity provider.
"""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Notification(models.Model):
    """A message sent to a user about a booking event."""

    user_id = models.CharField(max_length=128, db_index=True)
    event = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    message = models.TextField()
    payload = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Notification")
        verbose_name_plural = _("Notifications")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user_id', 'is_read']),
        ]

    def __str__(self) -> str:
        return f"Notification to {self.user_id}: {self.title}"
