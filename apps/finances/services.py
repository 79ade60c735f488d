"""Host earnings reporting.

Aggregates confirmed and completed bookings of a host. A stored CONFIRMED
booking whose check-out has passed counts as completed here, through the
same ``effective_status`` every other reader uses; nothing is written back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable

from django.utils import timezone  # type: ignore

from apps.bookings.domain.entities import Booking, BookingStatus, effective_status
from apps.bookings.repositories import AbstractBookingRepository, BookingFilter
from shared.domain.value_objects import quantize_money

PERIODS = ("week", "month", "year", "all")
EARNING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class EarningsSummary:
    period: str
    booking_count: int
    gross_total: Decimal
    host_payout: Decimal
    average_nightly_rate: Decimal
    nights: int
    completed_count: int
    upcoming_count: int


@dataclass(frozen=True)
class DailyEarnings:
    day: date
    gross_total: Decimal
    booking_count: int


def period_window(period: str, now: datetime) -> tuple[datetime | None, datetime]:
    """
    Creation-time window of a reporting period.

    ``week`` is the last seven days, ``month`` the calendar month of ``now``,
    ``year`` the calendar year up to ``now``; ``all`` has no lower bound.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown earnings period {period!r}; expected one of {', '.join(PERIODS)}")

    if period == "week":
        return now - timedelta(days=7), now
    if period == "month":
        start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end - timedelta(microseconds=1)
    if period == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0), now
    return None, now


def earning_bookings(bookings: Iterable[Booking], now: datetime) -> list[Booking]:
    return [b for b in bookings if effective_status(b, now) in EARNING_STATUSES]


def summarize_earnings(
    bookings: Iterable[Booking],
    period: str = "month",
    now: datetime | None = None,
) -> EarningsSummary:
    """Totals over bookings created within ``period``."""

    now = now or timezone.now()
    start, end = period_window(period, now)
    selected = [
        b for b in earning_bookings(bookings, now)
        if start is None or start <= b.created_at <= end
    ]

    gross = sum((b.pricing.total for b in selected), ZERO)
    payout = sum((b.pricing.host_payout for b in selected), ZERO)
    if selected:
        average_rate = quantize_money(
            sum((b.pricing.nightly_rate for b in selected), ZERO) / len(selected)
        )
    else:
        average_rate = ZERO

    statuses = [effective_status(b, now) for b in selected]
    return EarningsSummary(
        period=period,
        booking_count=len(selected),
        gross_total=quantize_money(gross),
        host_payout=quantize_money(payout),
        average_nightly_rate=average_rate,
        nights=sum(b.nights for b in selected),
        completed_count=statuses.count(BookingStatus.COMPLETED),
        upcoming_count=sum(
            1 for b, status in zip(selected, statuses)
            if status == BookingStatus.CONFIRMED and b.check_in >= now.date()
        ),
    )


def daily_earnings(
    bookings: Iterable[Booking],
    days: int = 30,
    now: datetime | None = None,
) -> list[DailyEarnings]:
    """Gross total per creation day for the last ``days`` days, oldest first."""

    now = now or timezone.now()
    today = now.date()
    first = today - timedelta(days=days)

    totals: dict[date, Decimal] = {}
    counts: dict[date, int] = {}
    for booking in earning_bookings(bookings, now):
        day = booking.created_at.date()
        if first <= day <= today:
            totals[day] = totals.get(day, ZERO) + booking.pricing.total
            counts[day] = counts.get(day, 0) + 1

    return [
        DailyEarnings(
            day=first + timedelta(days=offset),
            gross_total=quantize_money(totals.get(first + timedelta(days=offset), ZERO)),
            booking_count=counts.get(first + timedelta(days=offset), 0),
        )
        for offset in range(days + 1)
    ]


def host_earnings(
    repository: AbstractBookingRepository,
    host_id: str,
    period: str = "month",
    now: datetime | None = None,
) -> EarningsSummary:
    bookings = repository.query(BookingFilter(host_id=host_id, statuses=EARNING_STATUSES))
    return summarize_earnings(bookings, period, now)
