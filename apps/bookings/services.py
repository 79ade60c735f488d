"""Read-side booking queries for trips pages and host dashboards.

Nothing here writes: a confirmed stay whose check-out has passed is
reported as completed through ``effective_status`` and left for
``BookingLifecycle.complete_due`` to persist.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Iterable, List, Optional

from django.utils import timezone  # type: ignore

from shared.domain.value_objects import DateRange
from shared.infrastructure.timestamps import normalize_timestamp

from .domain.availability import AvailabilityIndex, CalendarDay
from .domain.entities import Booking, BookingStatus, effective_status
from .repositories import AbstractBookingRepository, BookingFilter

OPEN_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
BOOKED_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class BookingQueries:
    """Booking lists and calendars as guests and hosts see them."""

    def __init__(
        self,
        repository: AbstractBookingRepository,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.repository = repository
        self.clock = clock

    def now(self) -> datetime:
        return normalize_timestamp(self.clock())

    def today(self) -> date:
        return self.now().date()

    def status_of(self, booking: Booking) -> BookingStatus:
        return effective_status(booking, self.now())

    def status_label(self, booking: Booking) -> str:
        return self.status_of(booking).label

    def _filter(self, bookings: Iterable[Booking], statuses: Iterable[BookingStatus] | None) -> List[Booking]:
        if statuses is None:
            return list(bookings)
        wanted = set(statuses)
        now = self.now()
        return [b for b in bookings if effective_status(b, now) in wanted]

    def guest_bookings(self, guest_id: str, statuses: Iterable[BookingStatus] | None = None) -> List[Booking]:
        """All bookings of a guest, newest request first."""

        return self._filter(self.repository.query(BookingFilter(guest_id=guest_id)), statuses)

    def host_bookings(self, host_id: str, statuses: Iterable[BookingStatus] | None = None) -> List[Booking]:
        """All bookings on a host's listings, newest request first."""

        return self._filter(self.repository.query(BookingFilter(host_id=host_id)), statuses)

    def upcoming_for_guest(self, guest_id: str) -> List[Booking]:
        today = self.today()
        upcoming = [
            b for b in self.guest_bookings(guest_id, OPEN_STATUSES)
            if b.check_in >= today
        ]
        return sorted(upcoming, key=lambda b: b.check_in)

    def past_for_guest(self, guest_id: str) -> List[Booking]:
        today = self.today()
        past = [b for b in self.guest_bookings(guest_id) if b.check_out < today]
        return sorted(past, key=lambda b: b.check_out, reverse=True)

    def pending_for_host(self, host_id: str) -> List[Booking]:
        """Requests waiting for the host's decision, newest request first."""

        return self.host_bookings(host_id, (BookingStatus.PENDING,))

    def active_booking_for_property(self, property_id: str, guest_id: str | None = None) -> Optional[Booking]:
        """
        The next pending or confirmed stay at a property that has not ended.

        With ``guest_id`` only that guest's bookings are considered, which is
        what the booking widget uses to show "you already booked this".
        """
        now = self.now()
        candidates = [
            b for b in self.repository.query(BookingFilter(
                property_id=property_id,
                guest_id=guest_id,
                statuses=OPEN_STATUSES,
            ))
            if effective_status(b, now) in OPEN_STATUSES and b.stay.end_instant > now
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda b: b.check_in)

    def calendar(
        self,
        property_id: str,
        year: int,
        month: int,
        blocked_dates: Iterable[date] = (),
    ) -> List[CalendarDay]:
        """
        Day-by-day occupancy of a property for one month.

        Stays that have ended stay tagged as booked, whether or not their
        completion has been persisted yet.
        """
        stays = self.repository.query(BookingFilter(property_id=property_id, statuses=BOOKED_STATUSES))
        index = AvailabilityIndex.build(
            property_id,
            stays,
            set(self.repository.get_blocked_dates(property_id)) | set(blocked_dates),
            statuses=BOOKED_STATUSES,
        )
        return index.list_occupied(DateRange.for_month(year, month))
