"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, BookingCalendar


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "property_id",
        "guest_id",
        "host_id",
        "status",
        "check_in",
        "check_out",
        "total",
        "created_at",
    )
    list_filter = ("status", "cancellation_policy", "check_in", "check_out")
    search_fields = ("id", "property_id", "guest_id", "host_id")
    # Status and money are changed through BookingLifecycle only
    readonly_fields = tuple(
        field.name for field in Booking._meta.fields if field.name != "special_requests"
    )


@admin.register(BookingCalendar)
class BookingCalendarAdmin(admin.ModelAdmin):
    list_display = ("property_id", "version", "updated_at")
    readonly_fields = ("property_id", "version", "updated_at")
