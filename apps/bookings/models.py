"""Booking documents stored through the Django ORM.

Rows are plain documents: identifiers of guests, hosts and properties are
opaque strings, and every pricing input is copied onto the booking so the
breakdown can be recomputed from the row alone. Mapping to and from the
domain aggregate lives in ``apps.bookings.repositories``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


def _new_booking_id() -> str:
    return uuid4().hex


class Booking(models.Model):
    """Reservation of a property for a stay window."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        COMPLETED = "completed", _("Completed")

    class CancelledBy(models.TextChoices):
        GUEST = "guest", _("Guest")
        HOST = "host", _("Host")

    id = models.CharField(primary_key=True, max_length=64, default=_new_booking_id, editable=False)
    property_id = models.CharField(max_length=64)
    guest_id = models.CharField(max_length=128)
    host_id = models.CharField(max_length=128)
    check_in = models.DateField()
    check_out = models.DateField()
    adults = models.PositiveSmallIntegerField(default=1)
    children = models.PositiveSmallIntegerField(default=0)
    infants = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    special_requests = models.TextField(blank=True)
    cancellation_policy = models.CharField(max_length=20)

    # Pricing inputs captured at request time
    base_price_per_night = models.DecimalField(max_digits=10, decimal_places=2)
    weekly_discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    monthly_discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    guest_service_fee_rate = models.DecimalField(max_digits=6, decimal_places=4)
    host_service_fee_rate = models.DecimalField(max_digits=6, decimal_places=4)
    tax_rate = models.DecimalField(max_digits=6, decimal_places=4)

    # Price breakdown
    nights = models.PositiveSmallIntegerField()
    nightly_rate = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cleaning_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    guest_service_fee = models.DecimalField(max_digits=12, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    host_payout = models.DecimalField(max_digits=12, decimal_places=2)

    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=8, choices=CancelledBy.choices, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    refund_percent = models.PositiveSmallIntegerField(null=True, blank=True)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["property_id", "status", "check_in"]),
            models.Index(fields=["guest_id", "created_at"]),
            models.Index(fields=["host_id", "status"]),
        ]

    def __str__(self) -> str:
        return f"Booking {self.pk} for {self.property_id}"


class BookingCalendar(models.Model):
    """Compare-and-swap token guarding a property's confirmed-booking set.

    Every write that adds a confirmed booking bumps ``version`` with a
    conditional UPDATE; a writer that read an older version loses.
    """

    property_id = models.CharField(primary_key=True, max_length=64)
    version = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking calendar")
        verbose_name_plural = _("Booking calendars")

    def __str__(self) -> str:
        return f"Calendar {self.property_id} v{self.version}"
