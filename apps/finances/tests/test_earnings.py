"""Tests for host earnings reporting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.bookings.application.lifecycle import BookingLifecycle
from apps.bookings.domain.entities import CancelledBy
from apps.bookings.repositories import InMemoryBookingRepository
from apps.bookings.tests.factories import FEES, FixedClock, make_property, stay
from apps.finances.services import daily_earnings, host_earnings, period_window, summarize_earnings
from shared.application.message_bus import MessageBus

NOW = datetime(2025, 7, 20, 12, tzinfo=timezone.utc)


@pytest.fixture
def booked():
    clock = FixedClock(datetime(2025, 7, 1, tzinfo=timezone.utc))
    repository = InMemoryBookingRepository()
    lifecycle = BookingLifecycle(repository, message_bus=MessageBus(), fee_schedule=FEES, clock=clock)
    instant = make_property(instant_book=True)

    finished = lifecycle.create(instant, "guest-1", stay(10, 13))
    clock.advance(days=5)
    upcoming = lifecycle.create(instant, "guest-2", stay(25, 28))
    clock.advance(days=1)
    lifecycle.create(make_property(), "guest-3", stay(1, 4, month=8))
    cancelled = lifecycle.create(instant, "guest-4", stay(14, 16))
    lifecycle.cancel(cancelled.id, CancelledBy.GUEST)

    clock.now = datetime(2025, 6, 15, tzinfo=timezone.utc)
    old = lifecycle.create(make_property(id="prop-2", instant_book=True), "guest-5", stay(1, 3))

    return repository, {"finished": finished, "upcoming": upcoming, "old": old}


def test_month_summary_counts_confirmed_and_lazily_completed(booked):
    repository, bookings = booked

    summary = host_earnings(repository, "host-1", "month", now=NOW)

    assert summary.booking_count == 2
    assert summary.gross_total == Decimal("725.76")
    assert summary.host_payout == Decimal("703.98")
    assert summary.average_nightly_rate == Decimal("100.00")
    assert summary.nights == 6
    assert summary.completed_count == 1
    assert summary.upcoming_count == 1


def test_all_period_includes_older_bookings(booked):
    repository, bookings = booked

    summary = host_earnings(repository, "host-1", "all", now=NOW)

    assert summary.booking_count == 3
    assert summary.gross_total == Decimal("967.68")


def test_week_window(booked):
    repository, bookings = booked

    summary = host_earnings(repository, "host-1", "week", now=datetime(2025, 7, 8, 12, tzinfo=timezone.utc))

    assert summary.booking_count == 1


def test_empty_summary():
    summary = summarize_earnings([], "year", now=NOW)

    assert summary.booking_count == 0
    assert summary.gross_total == Decimal("0.00")
    assert summary.average_nightly_rate == Decimal("0.00")


def test_unknown_period():
    with pytest.raises(ValueError):
        period_window("decade", NOW)


def test_month_window_covers_calendar_month():
    start, end = period_window("month", NOW)

    assert start == datetime(2025, 7, 1, tzinfo=timezone.utc)
    assert end == datetime(2025, 8, 1, tzinfo=timezone.utc) - timedelta(microseconds=1)


def test_daily_earnings(booked):
    repository, bookings = booked
    all_bookings = [repository.get(b.id) for b in bookings.values()]

    series = daily_earnings(all_bookings, days=30, now=NOW)

    assert len(series) == 31
    assert series[0].day == NOW.date() - timedelta(days=30)
    by_day = {point.day: point for point in series}
    assert by_day[datetime(2025, 7, 1).date()].gross_total == Decimal("362.88")
    assert by_day[datetime(2025, 7, 6).date()].booking_count == 1
    assert by_day[datetime(2025, 7, 2).date()].gross_total == Decimal("0.00")
