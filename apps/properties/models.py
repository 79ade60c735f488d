"""Property models for the booking engine.

Listings are owned and edited by hosts outside the booking engine. The engine
only reads them, through ``Property.to_snapshot()``, which turns a row and its
blocked dates into the immutable ``PropertySnapshot`` the domain works with.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import uuid4

from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.entities import PropertySnapshot
from apps.bookings.domain.exceptions import InvalidPricingInput
from apps.bookings.domain.pricing import PricingRules

logger = logging.getLogger(__name__)


def _new_property_id() -> str:
    return uuid4().hex


class Property(models.Model):
    """Listing available for short-term rental."""

    class CancellationPolicy(models.TextChoices):
        FLEXIBLE = "flexible", _("Flexible (full refund up to 24 hours before check-in)")
        MODERATE = "moderate", _("Moderate (full refund up to 5 days before check-in)")
        STRICT = "strict", _("Strict (50% refund up to 1 week before check-in)")

    id = models.CharField(primary_key=True, max_length=64, default=_new_property_id, editable=False)
    host_id = models.CharField(max_length=128, db_index=True)
    title = models.CharField(max_length=255)
    max_guests = models.PositiveSmallIntegerField(
        default=2,
        validators=[MinValueValidator(1), MaxValueValidator(16)],
    )
    minimum_stay = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    maximum_stay = models.PositiveSmallIntegerField(null=True, blank=True)
    instant_book = models.BooleanField(default=False)
    cancellation_policy = models.CharField(
        max_length=20,
        choices=CancellationPolicy.choices,
        default=CancellationPolicy.FLEXIBLE,
    )
    base_price_per_night = models.DecimalField(max_digits=10, decimal_places=2)
    cleaning_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    weekly_discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    monthly_discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Property")
        verbose_name_plural = _("Properties")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["host_id", "instant_book"]),
        ]

    def __str__(self) -> str:
        return self.title

    def to_snapshot(self) -> PropertySnapshot:
        """Read-only domain view of the listing, including blocked dates."""

        try:
            pricing = PricingRules(
                base_price_per_night=self.base_price_per_night,
                cleaning_fee=self.cleaning_fee,
                weekly_discount_percent=self.weekly_discount_percent,
                monthly_discount_percent=self.monthly_discount_percent,
            )
        except InvalidPricingInput:
            logger.error(f"Stored pricing of property {self.pk} is invalid", exc_info=True)
            raise

        return PropertySnapshot(
            id=self.pk,
            host_id=self.host_id,
            max_guests=self.max_guests,
            minimum_stay=self.minimum_stay,
            maximum_stay=self.maximum_stay,
            instant_book=self.instant_book,
            cancellation_policy_id=self.cancellation_policy,
            pricing=pricing,
            blocked_dates=frozenset(
                self.blocked_dates.values_list("date", flat=True)
            ),
        )


class PropertyBlockedDate(models.Model):
    """Day the host took off the calendar, regardless of bookings."""

    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="blocked_dates",
    )
    date = models.DateField()
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Blocked date")
        verbose_name_plural = _("Blocked dates")
        ordering = ["date"]
        constraints = [
            models.UniqueConstraint(fields=["property", "date"], name="unique_property_blocked_date"),
        ]

    def __str__(self) -> str:
        return f"{self.property_id}: {self.date}"
