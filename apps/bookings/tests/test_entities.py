"""Tests for the booking aggregate and its state machine."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase

from apps.bookings.domain.cancellation import RefundDecision, RefundReason
from apps.bookings.domain.entities import (
    Booking,
    BookingStatus,
    CancelledBy,
    GuestCounts,
    effective_status,
)
from apps.bookings.domain.events import BookingCancelled, BookingConfirmed, BookingDeclined, BookingRequested
from apps.bookings.domain.exceptions import IllegalTransition, InvalidStayRequest
from apps.bookings.domain.pricing import calculate_price
from apps.bookings.domain.stay_rules import validate_stay_request

from .factories import FEES, START, make_property, stay


def request(prop=None, dates=None) -> Booking:
    prop = prop or make_property()
    dates = dates or stay(10, 13)
    return Booking.request(
        prop,
        guest_id="guest-1",
        stay=dates,
        guests=GuestCounts(adults=2),
        pricing=calculate_price(prop.pricing, dates, FEES),
        fee_schedule=FEES,
        requested_at=START,
    )


class BookingRequestTests(SimpleTestCase):
    def test_request_is_pending(self) -> None:
        booking = request()

        self.assertEqual(booking.status, BookingStatus.PENDING)
        self.assertEqual(booking.host_id, "host-1")
        self.assertEqual(booking.created_at, START)
        self.assertEqual([type(e) for e in booking.events], [BookingRequested])

    def test_instant_book_skips_pending(self) -> None:
        booking = request(make_property(instant_book=True))

        self.assertEqual(booking.status, BookingStatus.CONFIRMED)
        self.assertEqual(booking.confirmed_at, START)
        event = booking.events[0]
        self.assertIsInstance(event, BookingConfirmed)
        self.assertTrue(event.instant)

    def test_pricing_can_be_reproduced(self) -> None:
        booking = request()

        self.assertTrue(booking.pricing_is_consistent())
        self.assertEqual(booking.reprice(), booking.pricing)


class TransitionTests(SimpleTestCase):
    def test_confirm_pending(self) -> None:
        booking = request()
        booking.confirm(START + timedelta(hours=1))

        self.assertEqual(booking.status, BookingStatus.CONFIRMED)
        self.assertIsInstance(booking.events[-1], BookingConfirmed)

    def test_decline_refunds_everything(self) -> None:
        booking = request()
        booking.decline(START + timedelta(hours=1), "dates no longer work")

        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertEqual(booking.cancelled_by, CancelledBy.HOST)
        self.assertEqual(booking.refund_percent, 100)
        self.assertEqual(booking.refund_amount, booking.pricing.total)
        self.assertIsInstance(booking.events[-1], BookingDeclined)

    def test_decline_requires_pending(self) -> None:
        booking = request(make_property(instant_book=True))

        with self.assertRaises(IllegalTransition):
            booking.decline(START)

    def test_cancel_records_refund_once(self) -> None:
        booking = request()
        refund = RefundDecision(100, booking.pricing.total, RefundReason.GRACE_PERIOD)
        booking.cancel(CancelledBy.GUEST, refund, START + timedelta(hours=1))

        with self.assertRaises(IllegalTransition):
            booking.cancel(CancelledBy.GUEST, RefundDecision(0, Decimal("0.00"), RefundReason.AFTER_CUTOFF), START)

        self.assertEqual(booking.refund_amount, booking.pricing.total)
        event = booking.events[-1]
        self.assertIsInstance(event, BookingCancelled)
        self.assertEqual(event.previous_status, "pending")

    def test_complete_only_after_check_out(self) -> None:
        booking = request(make_property(instant_book=True))

        with self.assertRaises(IllegalTransition):
            booking.complete(booking.stay.end_instant - timedelta(seconds=1))

        booking.complete(booking.stay.end_instant)
        self.assertEqual(booking.status, BookingStatus.COMPLETED)

    def test_pending_cannot_complete(self) -> None:
        booking = request()

        with self.assertRaises(IllegalTransition):
            booking.complete(booking.stay.end_instant + timedelta(days=1))

    def test_terminal_states(self) -> None:
        self.assertTrue(BookingStatus.CANCELLED.is_terminal)
        self.assertTrue(BookingStatus.COMPLETED.is_terminal)
        self.assertFalse(BookingStatus.PENDING.is_terminal)
        self.assertEqual(BookingStatus.CONFIRMED.label, "Confirmed")


class EffectiveStatusTests(SimpleTestCase):
    def test_confirmed_stay_is_completed_from_check_out(self) -> None:
        booking = request(make_property(instant_book=True))

        self.assertEqual(effective_status(booking, booking.stay.end_instant - timedelta(seconds=1)),
                         BookingStatus.CONFIRMED)
        self.assertEqual(effective_status(booking, booking.stay.end_instant), BookingStatus.COMPLETED)
        self.assertEqual(booking.status, BookingStatus.CONFIRMED)

    def test_pending_stays_pending(self) -> None:
        booking = request()

        self.assertEqual(booking.effective_status(booking.stay.end_instant + timedelta(days=5)),
                         BookingStatus.PENDING)


class StayRuleTests(SimpleTestCase):
    def test_valid_request_returns_nights(self) -> None:
        self.assertEqual(validate_stay_request(make_property(), stay(10, 13), GuestCounts(adults=2)), 3)

    def assertRule(self, rule, prop, dates, guests) -> None:
        with self.assertRaises(InvalidStayRequest) as ctx:
            validate_stay_request(prop, dates, guests)
        self.assertEqual(ctx.exception.rule, rule)

    def test_minimum_stay(self) -> None:
        self.assertRule("minimum_stay", make_property(minimum_stay=3), stay(10, 12), GuestCounts())

    def test_maximum_stay(self) -> None:
        self.assertRule("maximum_stay", make_property(maximum_stay=5), stay(10, 16), GuestCounts())

    def test_too_many_guests(self) -> None:
        self.assertRule("max_guests", make_property(max_guests=2), stay(10, 12), GuestCounts(adults=2, children=1))

    def test_infants_do_not_count(self) -> None:
        nights = validate_stay_request(make_property(max_guests=2), stay(10, 12), GuestCounts(adults=2, infants=2))

        self.assertEqual(nights, 2)

    def test_adult_required(self) -> None:
        self.assertRule("min_adults", make_property(), stay(10, 12), GuestCounts(adults=0, children=2))

    def test_negative_counts(self) -> None:
        self.assertRule("negative_guests", make_property(), stay(10, 12), GuestCounts(adults=1, children=-1))
