"""Tests for the Django booking store and the lifecycle running on it."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from apps.bookings.application.lifecycle import BookingLifecycle
from apps.bookings.domain.entities import Booking, BookingStatus, CancelledBy, GuestCounts
from apps.bookings.domain.exceptions import (
    CalendarConflict,
    DateUnavailable,
    PersistenceError,
    StaleBooking,
)
from apps.bookings.domain.pricing import FeeSchedule, PricingRules, calculate_price
from apps.bookings.models import Booking as BookingModel
from apps.bookings.models import BookingCalendar
from apps.bookings.repositories import BookingFilter, DjangoBookingRepository
from apps.notifications.models import Notification
from apps.properties.models import Property, PropertyBlockedDate

from .factories import FEES, START, FixedClock, make_property, stay


def new_booking(**overrides) -> Booking:
    prop = make_property(**overrides)
    dates = stay(10, 13)
    return Booking.request(
        prop,
        guest_id="guest-1",
        stay=dates,
        guests=GuestCounts(adults=2, children=1, infants=1),
        pricing=calculate_price(prop.pricing, dates, FEES),
        fee_schedule=FEES,
        requested_at=START,
        special_requests="Late arrival",
    )


class DjangoBookingRepositoryTests(TestCase):
    def setUp(self) -> None:
        self.repository = DjangoBookingRepository()

    def test_round_trip(self) -> None:
        booking = new_booking(
            pricing=PricingRules(
                base_price_per_night=Decimal("120.50"),
                cleaning_fee=Decimal("40"),
                weekly_discount_percent=Decimal("10"),
            ),
        )
        self.repository.save(booking)

        loaded = self.repository.get(booking.id)

        self.assertEqual(loaded.version, 1)
        self.assertEqual(loaded.stay, booking.stay)
        self.assertEqual(loaded.guests, booking.guests)
        self.assertEqual(loaded.pricing, booking.pricing)
        self.assertEqual(loaded.pricing_rules, booking.pricing_rules)
        self.assertEqual(loaded.created_at, START)
        self.assertEqual(loaded.special_requests, "Late arrival")
        self.assertTrue(loaded.pricing_is_consistent())

    def test_round_trip_reprices_at_stored_precision(self) -> None:
        fees = FeeSchedule(
            guest_service_fee_rate=Decimal("0.1235"),
            host_service_fee_rate=Decimal("0.0299"),
            tax_rate=Decimal("0.0825"),
        )
        prop = make_property(
            pricing=PricingRules(
                base_price_per_night=Decimal("99.99"),
                cleaning_fee=Decimal("12.35"),
                weekly_discount_percent=Decimal("7.25"),
            ),
        )
        dates = stay(1, 9)
        booking = Booking.request(
            prop,
            guest_id="guest-1",
            stay=dates,
            guests=GuestCounts(adults=2),
            pricing=calculate_price(prop.pricing, dates, fees),
            fee_schedule=fees,
            requested_at=START,
        )
        self.repository.save(booking)

        loaded = self.repository.get(booking.id)

        self.assertEqual(loaded.fee_schedule, fees)
        self.assertEqual(loaded.pricing, booking.pricing)
        self.assertEqual(loaded.reprice(), booking.pricing)
        self.assertTrue(loaded.pricing_is_consistent())

    def test_missing_booking(self) -> None:
        self.assertIsNone(self.repository.get("missing"))

    def test_cancellation_is_stored(self) -> None:
        booking = new_booking()
        self.repository.save(booking)
        booking.decline(START + timedelta(hours=2), "no pets")
        self.repository.save(booking)

        loaded = self.repository.get(booking.id)

        self.assertEqual(loaded.status, BookingStatus.CANCELLED)
        self.assertEqual(loaded.cancelled_by, CancelledBy.HOST)
        self.assertEqual(loaded.refund_amount, booking.pricing.total)
        self.assertEqual(loaded.cancellation.reason, "no pets")
        self.assertEqual(loaded.version, 2)

    def test_stale_write_is_rejected(self) -> None:
        booking = new_booking()
        self.repository.save(booking)
        outdated = self.repository.get(booking.id)
        booking.confirm(START)
        self.repository.save(booking)

        outdated.decline(START)
        with self.assertRaises(StaleBooking):
            self.repository.save(outdated)

        self.assertEqual(self.repository.get(booking.id).status, BookingStatus.CONFIRMED)

    def test_run_transaction_bumps_calendar_version(self) -> None:
        booking = new_booking(instant_book=True)

        self.repository.run_transaction("prop-1", lambda snapshot: booking)

        self.assertEqual(BookingCalendar.objects.get(pk="prop-1").version, 1)
        self.assertEqual(len(self.repository.get_confirmed_bookings("prop-1")), 1)

    def test_run_transaction_detects_concurrent_writer(self) -> None:
        booking = new_booking(instant_book=True)

        def racing(snapshot):
            # Another writer commits between our read and our write
            BookingCalendar.objects.filter(pk="prop-1").update(version=snapshot.version + 1)
            return booking

        with self.assertRaises(CalendarConflict):
            self.repository.run_transaction("prop-1", racing)

        self.assertFalse(BookingModel.objects.filter(pk=booking.id).exists())

    def test_blocked_dates_come_from_property(self) -> None:
        prop = Property.objects.create(
            id="prop-1", host_id="host-1", title="Loft", base_price_per_night=Decimal("100")
        )
        PropertyBlockedDate.objects.create(property=prop, date=date(2025, 7, 12))

        self.assertEqual(self.repository.get_blocked_dates("prop-1"), [date(2025, 7, 12)])

    def test_query_filters_and_orders_newest_first(self) -> None:
        older = new_booking()
        newer = new_booking()
        newer.created_at = newer.updated_at = START + timedelta(days=1)
        other = new_booking(id="prop-2", host_id="host-2")
        for booking in (older, newer, other):
            self.repository.save(booking)

        found = self.repository.query(BookingFilter(host_id="host-1", statuses=(BookingStatus.PENDING,)))

        self.assertEqual([b.id for b in found], [newer.id, older.id])

    def test_database_errors_become_persistence_errors(self) -> None:
        with mock.patch.object(BookingModel.objects, "filter", side_effect=DatabaseError("gone")):
            with self.assertRaises(PersistenceError):
                self.repository.get("anything")


class LifecycleOnDjangoTests(TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock()
        self.repository = DjangoBookingRepository()
        self.lifecycle = BookingLifecycle(self.repository, clock=self.clock)

    def test_default_fee_schedule_comes_from_settings(self) -> None:
        self.assertEqual(self.lifecycle.fee_schedule, FEES)
        self.assertEqual(self.lifecycle.grace_period, timedelta(hours=48))
        self.assertEqual(self.lifecycle.conflict_retries, 1)

    def test_host_is_notified_after_commit(self) -> None:
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            booking = self.lifecycle.create(make_property(), "guest-1", stay(10, 13))

        self.assertEqual(len(callbacks), 1)
        notification = Notification.objects.get(user_id="host-1")
        self.assertEqual(notification.event, "booking_requested")
        self.assertEqual(notification.payload["booking_id"], booking.id)

    def test_second_overlapping_accept_fails(self) -> None:
        prop = make_property()
        first = self.lifecycle.create(prop, "guest-1", stay(10, 15))
        second = self.lifecycle.create(prop, "guest-2", stay(12, 18))
        self.lifecycle.accept(first.id)

        with self.assertRaises(DateUnavailable):
            self.lifecycle.accept(second.id)

        self.assertEqual(BookingModel.objects.get(pk=second.id).status, BookingModel.Status.PENDING)
        self.assertEqual(BookingCalendar.objects.get(pk="prop-1").version, 1)

    def test_host_blocks_are_respected_on_instant_book(self) -> None:
        prop = Property.objects.create(
            host_id="host-1",
            title="Cabin",
            base_price_per_night=Decimal("100"),
            instant_book=True,
        )
        PropertyBlockedDate.objects.create(property=prop, date=date(2025, 7, 11))

        with self.assertRaises(DateUnavailable):
            self.lifecycle.create(prop.to_snapshot(), "guest-1", stay(10, 13))

    def test_full_lifecycle(self) -> None:
        booking = self.lifecycle.create(make_property(cancellation_policy_id="moderate"), "guest-1", stay(10, 13))
        self.lifecycle.accept(booking.id)
        self.clock.now = booking.stay.end_instant

        completed = self.lifecycle.complete_due(property_id="prop-1")

        self.assertEqual([b.id for b in completed], [booking.id])
        row = BookingModel.objects.get(pk=booking.id)
        self.assertEqual(row.status, BookingModel.Status.COMPLETED)
        self.assertEqual(row.version, 3)
