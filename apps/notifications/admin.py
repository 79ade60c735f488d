"""Admin registration for notifications."""

from __future__ import annotations

from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user_id", "event", "title", "is_read", "created_at")
    list_filter = ("event", "is_read")
    search_fields = ("user_id", "title")
    readonly_fields = ("payload", "created_at")
