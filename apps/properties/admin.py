"""Admin registrations for properties domain."""

from __future__ import annotations

from django.contrib import admin

from .models import Property, PropertyBlockedDate


class PropertyBlockedDateInline(admin.TabularInline):
    model = PropertyBlockedDate
    extra = 0
    fields = ("date", "reason")


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "host_id",
        "base_price_per_night",
        "max_guests",
        "minimum_stay",
        "maximum_stay",
        "instant_book",
        "cancellation_policy",
        "created_at",
    )
    list_filter = ("instant_book", "cancellation_policy")
    search_fields = ("title", "host_id")
    readonly_fields = ("created_at", "updated_at")
    inlines = [PropertyBlockedDateInline]


@admin.register(PropertyBlockedDate)
class PropertyBlockedDateAdmin(admin.ModelAdmin):
    list_display = ("property", "date", "reason")
    list_filter = ("date",)
    search_fields = ("property__title", "reason")
